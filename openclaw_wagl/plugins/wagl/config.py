"""Configuration for the wagl memory plugin.

Settings are resolved with the following priority:
1. Plugin entry in the host config (plugins.entries["memory-wagl"].config)
2. WAGL_* environment variables
3. Defaults
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError

PLUGIN_ID = "memory-wagl"

# ============================================================
# Environment Variable Names
# ============================================================

ENV_DB_PATH = "WAGL_DB_PATH"
ENV_AUTO_RECALL = "WAGL_AUTO_RECALL"
ENV_AUTO_CAPTURE = "WAGL_AUTO_CAPTURE"
ENV_RECALL_QUERY = "WAGL_RECALL_QUERY"
ENV_BINARY = "WAGL_BIN"
ENV_TIMEOUT_MS = "WAGL_TIMEOUT_MS"

# Passed through to the wagl process as its environment, never read back
ENV_EMBED_BASE_URL = "WAGL_EMBED_BASE_URL"
ENV_EMBED_MODEL = "WAGL_EMBED_MODEL"
ENV_VECTOR_INDEX_PATH = "WAGL_VECTOR_INDEX_PATH"

# ============================================================
# Defaults
# ============================================================

DEFAULT_DB_PATH = "~/.wagl/memory.db"
DEFAULT_RECALL_QUERY = "who am I, current focus, working rules"
DEFAULT_BINARY = "wagl"
DEFAULT_TIMEOUT_MS = 10_000

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _parse_bool(value: Any, source: str) -> bool:
    """Parse a boolean from a config value or env string."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"{source}: expected a boolean, got {value!r}")


def _parse_timeout_ms(value: Any, source: str) -> float:
    """Parse a millisecond timeout and return it in seconds."""
    if isinstance(value, bool):
        raise ConfigError(f"{source}: expected milliseconds, got {value!r}")
    try:
        millis = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{source}: expected milliseconds, got {value!r}") from None
    if millis <= 0:
        raise ConfigError(f"{source}: timeout must be positive, got {value!r}")
    return millis / 1000.0


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def plugin_entry_config(host_config: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Extract this plugin's config dict from the host-wide settings.

    Args:
        host_config: Host settings, shaped like
            {"plugins": {"entries": {"memory-wagl": {"config": {...}}}}}

    Returns:
        The plugin's config dict, or {} if any level is missing.
    """
    node: Any = host_config or {}
    for key in ("plugins", "entries", PLUGIN_ID, "config"):
        if not isinstance(node, Mapping):
            return {}
        node = node.get(key)
    return dict(node) if isinstance(node, Mapping) else {}


@dataclass(frozen=True)
class WaglConfig:
    """Resolved configuration for the wagl memory plugin.

    Attributes:
        db_path: Path to the wagl database, passed as --db.
        auto_recall: Inject recalled memory before the agent starts.
        auto_capture: Store the final assistant message when the agent ends.
        recall_query: Query used for automatic recall.
        binary: Name or path of the wagl executable.
        timeout: Per-invocation timeout in seconds.
        embed_base_url: Optional embedding backend URL for wagl.
        embed_model: Optional embedding model name for wagl.
        vector_index_path: Optional vector index location for wagl.
    """
    db_path: str = os.path.expanduser(DEFAULT_DB_PATH)
    auto_recall: bool = True
    auto_capture: bool = True
    recall_query: str = DEFAULT_RECALL_QUERY
    binary: str = DEFAULT_BINARY
    timeout: float = DEFAULT_TIMEOUT_MS / 1000.0
    embed_base_url: Optional[str] = None
    embed_model: Optional[str] = None
    vector_index_path: Optional[str] = None

    def env_overlay(self) -> Dict[str, str]:
        """Environment variables to set on the wagl process only."""
        overlay = {
            ENV_EMBED_BASE_URL: self.embed_base_url,
            ENV_EMBED_MODEL: self.embed_model,
            ENV_VECTOR_INDEX_PATH: self.vector_index_path,
        }
        return {key: value for key, value in overlay.items() if value}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict (for display and logging)."""
        return {
            'db_path': self.db_path,
            'auto_recall': self.auto_recall,
            'auto_capture': self.auto_capture,
            'recall_query': self.recall_query,
            'binary': self.binary,
            'timeout': self.timeout,
            'embed_base_url': self.embed_base_url,
            'embed_model': self.embed_model,
            'vector_index_path': self.vector_index_path,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'WaglConfig':
        """Create a WaglConfig from a plugin config dict, without env lookups.

        Args:
            data: Plugin config dict using the host's camelCase keys:
                {
                    "dbPath": "...",
                    "autoRecall": true,
                    "autoCapture": true,
                    "recallQuery": "...",
                    "binary": "wagl",
                    "timeoutMs": 10000,
                    "embedBaseUrl": "...",
                    "embedModel": "...",
                    "vectorIndexPath": "..."
                }

        Returns:
            WaglConfig instance.
        """
        return cls.resolve({"plugins": {"entries": {PLUGIN_ID: {"config": dict(data)}}}}, environ={})

    @classmethod
    def resolve(
        cls,
        host_config: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> 'WaglConfig':
        """Resolve configuration from host settings, environment and defaults.

        Args:
            host_config: Host-wide settings object (see plugin_entry_config).
            environ: Environment mapping; defaults to os.environ.

        Returns:
            WaglConfig instance.

        Raises:
            ConfigError: If a boolean or timeout value cannot be parsed.
        """
        entry = plugin_entry_config(host_config)
        env = os.environ if environ is None else environ

        def pick(key: str, env_name: str) -> Optional[Any]:
            value = entry.get(key)
            if value is not None:
                return value
            return env.get(env_name) or None

        db_path = pick("dbPath", ENV_DB_PATH) or DEFAULT_DB_PATH

        auto_recall = pick("autoRecall", ENV_AUTO_RECALL)
        auto_capture = pick("autoCapture", ENV_AUTO_CAPTURE)
        timeout_ms = pick("timeoutMs", ENV_TIMEOUT_MS)

        return cls(
            db_path=os.path.expanduser(str(db_path)),
            auto_recall=True if auto_recall is None else _parse_bool(auto_recall, "autoRecall"),
            auto_capture=True if auto_capture is None else _parse_bool(auto_capture, "autoCapture"),
            recall_query=str(pick("recallQuery", ENV_RECALL_QUERY) or DEFAULT_RECALL_QUERY),
            binary=str(pick("binary", ENV_BINARY) or DEFAULT_BINARY),
            timeout=(
                DEFAULT_TIMEOUT_MS / 1000.0 if timeout_ms is None
                else _parse_timeout_ms(timeout_ms, "timeoutMs")
            ),
            embed_base_url=_optional_str(pick("embedBaseUrl", ENV_EMBED_BASE_URL)),
            embed_model=_optional_str(pick("embedModel", ENV_EMBED_MODEL)),
            vector_index_path=_optional_str(pick("vectorIndexPath", ENV_VECTOR_INDEX_PATH)),
        )
