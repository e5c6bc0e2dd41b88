"""Base protocols for host plugins and the host API they are handed."""

from dataclasses import dataclass
from typing import Protocol, List, Dict, Any, Awaitable, Callable, Optional, runtime_checkable

from .types import ToolExecutor, ToolSchema


# Lifecycle hook handler type
#
# Handlers receive the raw event dict from the host and may return a dict
# (e.g., {"prependContext": "..."}) that the host merges into its state,
# or None to leave the session untouched.
HookHandler = Callable[[Dict[str, Any]], Awaitable[Optional[Dict[str, Any]]]]

# Host lifecycle event names
EVENT_BEFORE_AGENT_START = "before_agent_start"
EVENT_AGENT_END = "agent_end"


@dataclass
class ContextInjection:
    """Context a plugin wants prepended to the agent's session.

    Attributes:
        prepend_context: Text the host places ahead of the agent's prompt.
    """
    prepend_context: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the hook result shape understood by the host."""
        return {'prependContext': self.prepend_context}


@runtime_checkable
class HostLogger(Protocol):
    """Structured logger optionally supplied by the host."""

    def info(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        ...


@runtime_checkable
class HostAPI(Protocol):
    """Interface of the API object the host passes to a plugin's register().

    Only `config` and `on` are required. Hosts may additionally expose:

        register_tool(schema: ToolSchema, execute: HostToolExecute) -> None
            Register an agent tool. `execute` is awaited with the tool call
            id and the argument dict and returns {"content": [...], ...}.

        logger: HostLogger
            Host-side structured logger with info/warn levels.

    Plugins must look these up with getattr() and degrade gracefully when
    they are missing.
    """

    config: Dict[str, Any]

    def on(self, event: str, handler: HookHandler) -> None:
        """Subscribe `handler` to the named lifecycle event."""
        ...


@runtime_checkable
class MemoryPlugin(Protocol):
    """Interface that memory plugins implement.

    Memory plugins provide two kinds of capabilities:
    1. Lifecycle hooks: recall before the agent starts, capture when it ends
    2. Agent tools: functions the agent can invoke directly

    Tools are declared via get_tool_schemas() and executed via
    get_executors(). register() wires both into a host.
    """

    @property
    def name(self) -> str:
        """Unique identifier for this plugin (its host slot name)."""
        ...

    def initialize(self, config: Optional[Any] = None) -> None:
        """Called once before the plugin is used.

        Args:
            config: Optional plugin configuration.
        """
        ...

    def shutdown(self) -> None:
        """Called when the plugin is unloaded. Clean up resources here."""
        ...

    def get_tool_schemas(self) -> List[ToolSchema]:
        """Return ToolSchema objects for this plugin's tools."""
        ...

    def get_executors(self) -> Dict[str, ToolExecutor]:
        """Return a mapping of tool names to their async executor callables."""
        ...

    def register(self, api: HostAPI) -> None:
        """Subscribe hooks and register tools with the host."""
        ...

