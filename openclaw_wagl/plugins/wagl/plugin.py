"""wagl memory plugin: maps host lifecycle events and tool calls onto wagl."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from ..base import EVENT_AGENT_END, EVENT_BEFORE_AGENT_START, ContextInjection, HostAPI
from ..types import HostToolExecute, ToolExecutor, ToolResponse, ToolSchema
from .bridge import WaglBridge, format_d_score
from .config import PLUGIN_ID, WaglConfig
from .runner import CommandRunner

logger = logging.getLogger(__name__)

LOG_PREFIX = "[openclaw-wagl]"

MEMORY_HEADING = "## Memory (wagl)"
SESSION_NOTE_PREFIX = "Session note: "
NO_MEMORIES_TEXT = "(no memories found)"

# Prompts shorter than this don't trigger automatic recall
MIN_PROMPT_LENGTH = 5
# Assistant text must be longer than this to be captured
MIN_CAPTURE_LENGTH = 20
# Captured assistant text is cut to this many characters
MAX_CAPTURE_CHARS = 500

D_SCORE_MIN = -10
D_SCORE_MAX = 10


def message_text(message: Any) -> str:
    """Extract the text of a host message.

    Content is either a plain string or a list of typed blocks; only
    blocks with type "text" contribute, concatenated in order.
    """
    if not isinstance(message, Mapping):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [
            block.get("text", "") for block in content
            if isinstance(block, Mapping)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        ]
        return "".join(parts).strip()
    return ""


def last_assistant_text(messages: List[Any], min_length: int = MIN_CAPTURE_LENGTH) -> Optional[str]:
    """Return the newest assistant message text longer than min_length."""
    for message in reversed(messages):
        if not isinstance(message, Mapping) or message.get("role") != "assistant":
            continue
        text = message_text(message)
        if len(text) > min_length:
            return text
    return None


class WaglMemoryPlugin:
    """Plugin connecting the host's memory slot to the wagl CLI.

    The plugin:
    1. Prepends recalled memory to the session before the agent starts
    2. Captures the final assistant message as a memory when the agent ends
    3. Exposes wagl_recall and wagl_store as agent tools

    Failures inside wagl never reach the host: hooks log and return None,
    tools return an error response.
    """

    def __init__(self, runner: Optional[CommandRunner] = None):
        """Initialize the wagl memory plugin.

        Args:
            runner: Optional command runner, replaced by fakes in tests.
        """
        self._name = PLUGIN_ID
        self._runner = runner
        self._config: Optional[WaglConfig] = None
        self._bridge: Optional[WaglBridge] = None
        self._host_logger: Optional[Any] = None

    @property
    def name(self) -> str:
        """Return plugin name."""
        return self._name

    @property
    def config(self) -> Optional[WaglConfig]:
        return self._config

    @property
    def bridge(self) -> Optional[WaglBridge]:
        return self._bridge

    def initialize(self, config: Optional[Union[WaglConfig, Mapping[str, Any]]] = None) -> None:
        """Resolve configuration and create the bridge.

        Args:
            config: A resolved WaglConfig, a plugin config dict using the
                host's keys (dbPath, autoRecall, ...), or None to resolve
                from WAGL_* environment variables and defaults.
        """
        if isinstance(config, WaglConfig):
            self._config = config
        elif config is None:
            self._config = WaglConfig.resolve()
        else:
            self._config = WaglConfig.from_dict(config)
        self._bridge = WaglBridge.from_config(self._config, runner=self._runner)

    def shutdown(self) -> None:
        """Drop the bridge and host references."""
        self._bridge = None
        self._config = None
        self._host_logger = None

    # ===== Logging =====

    def _log(self, level: int, message: str) -> None:
        text = f"{LOG_PREFIX} {message}"
        logger.log(level, text)

        host_logger = self._host_logger
        if host_logger is None:
            return
        names = ("warn", "warning") if level >= logging.WARNING else ("info",)
        for method_name in names:
            method = getattr(host_logger, method_name, None)
            if callable(method):
                try:
                    method(text)
                except Exception:
                    logger.debug("Host logger raised", exc_info=True)
                return

    # ===== Host registration =====

    def register(self, api: HostAPI) -> None:
        """Subscribe lifecycle hooks and register tools with the host.

        Args:
            api: Host API object (see HostAPI).

        Raises:
            ConfigError: If the host or environment carries invalid settings.
        """
        self._host_logger = getattr(api, "logger", None)
        self.initialize(WaglConfig.resolve(getattr(api, "config", None)))
        config = self._config

        if config.auto_recall:
            api.on(EVENT_BEFORE_AGENT_START, self.on_before_agent_start)
        if config.auto_capture:
            api.on(EVENT_AGENT_END, self.on_agent_end)

        register_tool = getattr(api, "register_tool", None)
        if callable(register_tool):
            executors = self.get_executors()
            for schema in self.get_tool_schemas():
                register_tool(schema, self._host_execute(executors[schema.name]))

        self._log(
            logging.INFO,
            f"registered (db={config.db_path}, autoRecall={config.auto_recall}, "
            f"autoCapture={config.auto_capture})"
        )

    @staticmethod
    def _host_execute(executor: ToolExecutor) -> HostToolExecute:
        async def execute(tool_call_id: str, params: Any) -> Dict[str, Any]:
            args = dict(params) if isinstance(params, Mapping) else {}
            response = await executor(args)
            return response.to_dict()
        return execute

    # ===== Lifecycle hooks =====

    async def on_before_agent_start(self, event: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Recall memory and prepend it to the session context.

        Args:
            event: Host event carrying the incoming "prompt".

        Returns:
            {"prependContext": ...} when memory was recalled, otherwise None.
        """
        if self._bridge is None or not self._config.auto_recall:
            return None

        prompt = event.get("prompt") if isinstance(event, Mapping) else None
        if not isinstance(prompt, str) or len(prompt) < MIN_PROMPT_LENGTH:
            return None

        try:
            result = await self._bridge.recall(self._config.recall_query)
        except Exception as exc:
            self._log(logging.WARNING, f"recall skipped: {exc}")
            return None

        if result.error:
            self._log(logging.WARNING, f"recall skipped: {result.error}")
            return None
        if not result.found:
            return None

        self._log(logging.INFO, f"recall injected ({len(result.payload)} chars)")
        return ContextInjection(f"{MEMORY_HEADING}\n{result.payload}").to_dict()

    async def on_agent_end(self, event: Mapping[str, Any]) -> None:
        """Store the final assistant message of a successful run.

        Args:
            event: Host event carrying "success" and "messages".
        """
        if self._bridge is None or not self._config.auto_capture:
            return None
        if not isinstance(event, Mapping) or not event.get("success"):
            return None

        messages = event.get("messages")
        if not isinstance(messages, list) or not messages:
            return None

        try:
            text = last_assistant_text(messages)
            if text is None:
                return None
            snippet = text[:MAX_CAPTURE_CHARS].strip()
            result = await self._bridge.store(f"{SESSION_NOTE_PREFIX}{snippet}", 0)
        except Exception as exc:
            self._log(logging.WARNING, f"capture skipped: {exc}")
            return None

        if result.success:
            self._log(logging.INFO, "session memory captured")
        else:
            self._log(logging.WARNING, f"capture skipped: {result.error}")
        return None

    # ===== Tools =====

    def get_tool_schemas(self) -> List[ToolSchema]:
        """Return tool declarations for wagl_recall and wagl_store."""
        return [
            ToolSchema(
                name='wagl_recall',
                label='wagl Recall',
                description='Recall memories matching a query from the wagl DB.',
                parameters={
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["query"],
                    "properties": {
                        "query": {"type": "string", "description": "What to recall"}
                    }
                }
            ),
            ToolSchema(
                name='wagl_store',
                label='wagl Store',
                description='Store a memory in the wagl DB with an optional d-score (-10 to +10).',
                parameters={
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["content"],
                    "properties": {
                        "content": {"type": "string", "description": "Memory content to store"},
                        "d_score": {
                            "type": "number",
                            "minimum": D_SCORE_MIN,
                            "maximum": D_SCORE_MAX,
                            "description": "Sentiment score -10 to +10 (default 0)"
                        }
                    }
                }
            ),
        ]

    def get_executors(self) -> Dict[str, ToolExecutor]:
        """Return tool executors keyed by tool name."""
        return {
            "wagl_recall": self._execute_recall,
            "wagl_store": self._execute_store,
        }

    async def _execute_recall(self, args: Dict[str, Any]) -> ToolResponse:
        query = str(args.get("query") or "").strip()
        if not query:
            return ToolResponse.from_error("query is required")
        if self._bridge is None:
            return ToolResponse.from_error("wagl plugin not initialized")

        try:
            result = await self._bridge.recall(query)
        except Exception as exc:
            return ToolResponse.from_error(f"wagl recall failed: {exc}")

        if result.error:
            return ToolResponse.from_error(f"wagl recall failed: {result.error}")
        return ToolResponse.from_text(result.payload or NO_MEMORIES_TEXT)

    async def _execute_store(self, args: Dict[str, Any]) -> ToolResponse:
        content = str(args.get("content") or "").strip()
        if not content:
            return ToolResponse.from_error("content is required")

        d_score = args.get("d_score")
        if d_score is None:
            d_score = 0
        elif isinstance(d_score, bool) or not isinstance(d_score, (int, float)):
            return ToolResponse.from_error("d_score must be a number")
        elif not D_SCORE_MIN <= d_score <= D_SCORE_MAX:
            return ToolResponse.from_error(
                f"d_score must be between {D_SCORE_MIN} and {D_SCORE_MAX}"
            )

        if self._bridge is None:
            return ToolResponse.from_error("wagl plugin not initialized")

        try:
            result = await self._bridge.store(content, d_score)
        except Exception as exc:
            return ToolResponse.from_error(f"wagl store failed: {exc}")

        if not result.success:
            return ToolResponse.from_error(f"wagl store failed: {result.error}")

        text = f"Stored memory (d_score={format_d_score(d_score)})"
        if result.memory_id:
            text += f" id={result.memory_id}"
        return ToolResponse.from_text(text)


def create_plugin(runner: Optional[CommandRunner] = None) -> WaglMemoryPlugin:
    """Factory function to create the wagl memory plugin instance.

    Returns:
        WaglMemoryPlugin instance
    """
    return WaglMemoryPlugin(runner=runner)


def register(api: HostAPI) -> WaglMemoryPlugin:
    """Host entry point: create the plugin and wire it into `api`."""
    plugin = create_plugin()
    plugin.register(api)
    return plugin
