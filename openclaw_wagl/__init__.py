"""
openclaw-wagl - wagl memory backend for the OpenClaw agent runtime

Public API for hosts and embedding code.
This module re-exports the core components from the plugin packages.
"""

# Host protocols and tool types
from .plugins.base import ContextInjection, HostAPI, HostLogger, MemoryPlugin
from .plugins.types import ToolResponse, ToolSchema

# wagl plugin
from .plugins.wagl import (
    PLUGIN_ID,
    CommandOutcome,
    CommandRequest,
    CommandResult,
    ConfigError,
    RecallResult,
    StoreResult,
    WaglBridge,
    WaglConfig,
    WaglError,
    WaglMemoryPlugin,
    create_plugin,
    register,
    run_command,
)

__version__ = "0.1.0"

__all__ = [
    # Host protocols
    "ContextInjection",
    "HostAPI",
    "HostLogger",
    "MemoryPlugin",
    # Tool types
    "ToolResponse",
    "ToolSchema",
    # wagl plugin
    "PLUGIN_ID",
    "CommandOutcome",
    "CommandRequest",
    "CommandResult",
    "ConfigError",
    "RecallResult",
    "StoreResult",
    "WaglBridge",
    "WaglConfig",
    "WaglError",
    "WaglMemoryPlugin",
    "create_plugin",
    "register",
    "run_command",
]
