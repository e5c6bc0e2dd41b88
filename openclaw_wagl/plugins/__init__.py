"""Plugin system for connecting OpenClaw to external memory backends.

This package provides the host-facing protocols and types shared by memory
plugins, plus the plugins themselves.

Usage:
    from openclaw_wagl.plugins.wagl import create_plugin

    plugin = create_plugin()
    plugin.register(api)  # api implements HostAPI

    # Or drive the plugin directly
    plugin.initialize({"dbPath": "/tmp/memory.db"})
    executors = plugin.get_executors()
"""

from .base import ContextInjection, HostAPI, HostLogger, MemoryPlugin
from .types import ToolResponse, ToolSchema

__all__ = ['ContextInjection', 'HostAPI', 'HostLogger', 'MemoryPlugin', 'ToolResponse', 'ToolSchema']
