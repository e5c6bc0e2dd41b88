"""Recall and store operations on top of the wagl command line.

The bridge owns the wagl command contract:

    wagl recall <query> --db <path>
    wagl put --text <content> --d-score <score> --db <path>
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

from .config import DEFAULT_BINARY, WaglConfig
from .normalizer import normalize_recall
from .runner import DEFAULT_TIMEOUT, CommandRequest, CommandResult, CommandRunner, run_command

logger = logging.getLogger(__name__)

RECALL_COMMAND = "recall"
STORE_COMMAND = "put"

Number = Union[int, float]


@dataclass
class RecallResult:
    """Result of a recall.

    Attributes:
        payload: Normalized memory text, None when there is nothing to inject.
        error: Failure description when the wagl command failed.
    """
    payload: Optional[str] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.payload)


@dataclass
class StoreResult:
    """Result of a store.

    Attributes:
        success: Whether wagl accepted the memory.
        memory_id: Identifier reported by wagl, "" if it reported none.
        error: Failure description when success is False.
    """
    success: bool
    memory_id: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class MemoryRecord:
    """Content and d-score submitted in a single store call."""
    content: str
    d_score: Number = 0

    def store_args(self) -> tuple:
        return ("--text", self.content, "--d-score", format_d_score(self.d_score))


def format_d_score(d_score: Optional[Number]) -> str:
    """Render a d-score the way wagl expects it ("0", "-3", "2.5")."""
    if d_score is None:
        return "0"
    if isinstance(d_score, float) and d_score.is_integer():
        return str(int(d_score))
    return str(d_score)


def parse_memory_id(stdout: str) -> str:
    """Extract a memory id from a JSON store response, or "" if absent."""
    try:
        data = json.loads(stdout)
    except ValueError:
        return ""
    if not isinstance(data, dict):
        return ""
    for key in ("id", "memory_id"):
        value = data.get(key)
        if value is not None and value != "":
            return str(value)
    return ""


class WaglBridge:
    """Recall/store operations against a wagl database.

    Defaults for the database path and environment overlay are fixed at
    construction; each call may override them for that call only.
    """

    def __init__(
        self,
        binary: str = DEFAULT_BINARY,
        db_path: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        runner: Optional[CommandRunner] = None
    ):
        self.binary = binary
        self.db_path = db_path
        self.env = dict(env or {})
        self.timeout = timeout
        self._runner = runner or run_command

    @classmethod
    def from_config(cls, config: WaglConfig, runner: Optional[CommandRunner] = None) -> 'WaglBridge':
        """Create a bridge from resolved plugin configuration."""
        return cls(
            binary=config.binary,
            db_path=config.db_path,
            env=config.env_overlay(),
            timeout=config.timeout,
            runner=runner,
        )

    def _request(
        self,
        args: tuple,
        db_path: Optional[str],
        env: Optional[Mapping[str, str]]
    ) -> CommandRequest:
        overlay: Dict[str, str] = dict(self.env)
        if env:
            overlay.update(env)
        return CommandRequest(
            binary=self.binary,
            args=args,
            db_path=db_path if db_path is not None else self.db_path,
            env={key: str(value) for key, value in overlay.items() if value},
            timeout=self.timeout,
        )

    async def _run(self, request: CommandRequest) -> CommandResult:
        result = await self._runner(request)
        if not result.ok:
            logger.warning("wagl %s failed (%s): %s", request.args[0], result.outcome.value, result.error)
        return result

    async def recall(
        self,
        query: str,
        db_path: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None
    ) -> RecallResult:
        """Recall memories matching a query.

        Args:
            query: What to recall. Blank queries return immediately.
            db_path: Database override for this call.
            env: Environment overlay entries for this call.

        Returns:
            RecallResult; payload is None when nothing should be injected.
        """
        if not query or not query.strip():
            return RecallResult()

        result = await self._run(self._request((RECALL_COMMAND, query.strip()), db_path, env))
        if not result.ok:
            return RecallResult(error=result.error)
        return RecallResult(payload=normalize_recall(result.stdout))

    async def store(
        self,
        content: str,
        d_score: Optional[Number] = 0,
        db_path: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None
    ) -> StoreResult:
        """Store a memory.

        Args:
            content: Memory text. Blank content fails immediately.
            d_score: Signed weight, conventionally -10..+10 (default 0).
            db_path: Database override for this call.
            env: Environment overlay entries for this call.

        Returns:
            StoreResult carrying the id wagl reported, if any.
        """
        if not content or not content.strip():
            return StoreResult(success=False, error="content is required")

        record = MemoryRecord(content=content, d_score=0 if d_score is None else d_score)
        result = await self._run(self._request((STORE_COMMAND, *record.store_args()), db_path, env))
        if not result.ok:
            return StoreResult(success=False, error=result.error)
        return StoreResult(success=True, memory_id=parse_memory_id(result.stdout))
