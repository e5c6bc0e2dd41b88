"""Exceptions raised by the wagl memory plugin.

Command failures (binary missing, timeout, non-zero exit) are reported as
CommandResult outcomes rather than exceptions; these classes cover misuse
and misconfiguration only.
"""


class WaglError(Exception):
    """Base class for wagl plugin errors."""


class ConfigError(WaglError, ValueError):
    """Raised when plugin configuration is invalid."""
