"""wagl memory plugin for the OpenClaw host.

This plugin takes the host's memory slot and delegates storage and
retrieval to the external `wagl` command line tool:
- Before the agent starts, recalled memory is prepended to the session
- When a successful run ends, the final assistant message is stored
- The agent can call wagl_recall and wagl_store directly

Usage:
    # Host configuration
    plugins.slots.memory = "memory-wagl"
    plugins.entries["memory-wagl"].config = {"dbPath": "~/.wagl/memory.db"}

    # Host entry point
    from openclaw_wagl.plugins.wagl import register
    register(api)
"""

from .bridge import MemoryRecord, RecallResult, StoreResult, WaglBridge
from .config import PLUGIN_ID, WaglConfig
from .errors import ConfigError, WaglError
from .plugin import WaglMemoryPlugin, create_plugin, register
from .runner import CommandOutcome, CommandRequest, CommandResult, run_command

__all__ = [
    'CommandOutcome',
    'CommandRequest',
    'CommandResult',
    'ConfigError',
    'MemoryRecord',
    'PLUGIN_ID',
    'RecallResult',
    'StoreResult',
    'WaglBridge',
    'WaglConfig',
    'WaglError',
    'WaglMemoryPlugin',
    'create_plugin',
    'register',
    'run_command',
]
