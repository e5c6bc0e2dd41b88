"""Process runner for invoking the wagl executable.

Every call spawns one process, waits for it under a timeout and classifies
the outcome. Nothing is retried and no state is shared between calls.
"""

import asyncio
import errno
import logging
import os
import signal
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

# Upper bound on waiting for a killed process group to be reaped
REAP_TIMEOUT = 2.0

# Lower-cased stderr fragments that mean the binary (or something it needs) is missing
NOT_FOUND_MARKERS = ("not found", "no such file")


class CommandOutcome(str, Enum):
    """Terminal classification of a command invocation."""
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class CommandRequest:
    """A single invocation of an external binary.

    Attributes:
        binary: Executable name (resolved via PATH) or path.
        args: Ordered argument list, excluding the binary itself.
        db_path: Optional database path, appended as a trailing --db pair.
        env: Variables overlaid on the ambient environment for this call only.
        timeout: Seconds to wait before the process is killed.
    """
    binary: str
    args: Tuple[str, ...] = ()
    db_path: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT

    def argv(self) -> List[str]:
        """Full argument vector, binary first."""
        argv = [self.binary, *self.args]
        if self.db_path:
            argv.extend(["--db", self.db_path])
        return argv

    def environment(self) -> Dict[str, str]:
        """Ambient environment with the overlay applied."""
        env = os.environ.copy()
        env.update(self.env)
        return env


@dataclass
class CommandResult:
    """Outcome of running a CommandRequest.

    Attributes:
        outcome: Exactly one terminal classification.
        stdout: Captured standard output.
        stderr: Captured standard error.
        exit_code: Process exit status, None if it never ran to completion.
        error: Human-readable failure description, None on success.
    """
    outcome: CommandOutcome
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is CommandOutcome.SUCCESS

    @property
    def not_found(self) -> bool:
        return self.outcome is CommandOutcome.NOT_FOUND

    @property
    def timed_out(self) -> bool:
        return self.outcome is CommandOutcome.TIMED_OUT


# Signature shared by run_command and the fakes used in tests
CommandRunner = Callable[[CommandRequest], Awaitable[CommandResult]]


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def _stderr_reports_not_found(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in NOT_FOUND_MARKERS)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill a child and everything it spawned, then reap it.

    The child leads its own session, so killing its process group also takes
    down wrapper-spawned grandchildren that would otherwise hold the output
    pipes open. The reap is bounded by REAP_TIMEOUT.
    """
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    try:
        await asyncio.wait_for(proc.wait(), timeout=REAP_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("Process %s was not reaped within %ss", proc.pid, REAP_TIMEOUT)


def classify_exit(binary: str, exit_code: int, stdout: str, stderr: str) -> CommandResult:
    """Build the CommandResult for a process that ran to completion.

    A zero exit is always SUCCESS. A non-zero exit whose stderr mentions a
    missing file or command is NOT_FOUND; any other non-zero exit is FAILED.
    """
    if exit_code == 0:
        return CommandResult(CommandOutcome.SUCCESS, stdout, stderr, exit_code)

    detail = stderr.strip()
    if _stderr_reports_not_found(stderr):
        return CommandResult(
            CommandOutcome.NOT_FOUND, stdout, stderr, exit_code,
            error=f"{binary} not found: {detail}",
        )
    return CommandResult(
        CommandOutcome.FAILED, stdout, stderr, exit_code,
        error=f"{binary} exited with code {exit_code}" + (f": {detail}" if detail else ""),
    )


async def run_command(request: CommandRequest) -> CommandResult:
    """Run a CommandRequest and classify its outcome.

    The process gets a closed stdin and its output is captured as text. The
    call never waits longer than request.timeout for the process; a process
    still running at the deadline is killed together with any processes it
    started, and reaped.

    Args:
        request: The invocation to perform.

    Returns:
        CommandResult with exactly one outcome.
    """
    argv = request.argv()
    logger.debug("Running %s (timeout=%ss)", argv, request.timeout)

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=request.environment(),
            start_new_session=True,
        )
    except FileNotFoundError:
        return CommandResult(
            CommandOutcome.NOT_FOUND,
            error=f"{request.binary} binary not found on PATH",
        )
    except OSError as exc:
        if exc.errno == errno.ENOENT:
            return CommandResult(
                CommandOutcome.NOT_FOUND,
                error=f"{request.binary} binary not found on PATH",
            )
        return CommandResult(
            CommandOutcome.FAILED,
            error=f"{request.binary} could not be started: {exc}",
        )

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=request.timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        return CommandResult(
            CommandOutcome.TIMED_OUT,
            exit_code=proc.returncode,
            error=f"{request.binary} timed out after {request.timeout:g}s",
        )
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    return classify_exit(request.binary, proc.returncode, _decode(stdout), _decode(stderr))
