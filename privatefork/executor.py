"""
Process Executor - Run an external command with a wall-clock timeout.

Every invocation resolves to exactly one CommandOutcome. The process
finishing on its own and the timeout timer firing race each other; a
lock-guarded single-assignment slot decides which one wins, so a timer
that fires microseconds before or after natural exit can never produce
two results (or none).

## Usage

    from privatefork.executor import ProcessExecutor

    executor = ProcessExecutor()
    outcome = executor.execute("git", ["status"], working_dir=repo, timeout=30)
    if outcome.ok:
        print(outcome.stdout)
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

# Shell convention for "command not found"
EXIT_COMMAND_NOT_FOUND = 127


class OutcomeStatus(str, Enum):
    """How an invocation ended."""
    SUCCESS = "success"
    COMMAND_NOT_FOUND = "command_not_found"
    EXECUTION_FAILED = "execution_failed"
    TIMEOUT = "timeout"
    INVALID_WORKING_DIRECTORY = "invalid_working_directory"


@dataclass(frozen=True)
class CommandInvocation:
    """A single command to run."""

    program: str
    arguments: List[str] = field(default_factory=list)
    working_dir: Optional[Path] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def command_line(self) -> str:
        return " ".join([self.program, *self.arguments])


@dataclass(frozen=True)
class CommandOutcome:
    """
    Result of a command invocation. Never raised, always returned.

    stdout is trimmed on success; stderr is trimmed on failure.
    """

    status: OutcomeStatus
    program: str
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    duration: Optional[float] = None
    working_dir: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @classmethod
    def success(cls, program: str, stdout: str) -> "CommandOutcome":
        return cls(status=OutcomeStatus.SUCCESS, program=program, stdout=stdout, exit_code=0)

    @classmethod
    def command_not_found(cls, program: str) -> "CommandOutcome":
        return cls(
            status=OutcomeStatus.COMMAND_NOT_FOUND,
            program=program,
            exit_code=EXIT_COMMAND_NOT_FOUND,
        )

    @classmethod
    def execution_failed(cls, program: str, exit_code: int, stderr: str) -> "CommandOutcome":
        return cls(
            status=OutcomeStatus.EXECUTION_FAILED,
            program=program,
            exit_code=exit_code,
            stderr=stderr,
        )

    @classmethod
    def timed_out(cls, program: str, duration: float) -> "CommandOutcome":
        return cls(status=OutcomeStatus.TIMEOUT, program=program, duration=duration)

    @classmethod
    def invalid_working_directory(cls, program: str, working_dir: Path) -> "CommandOutcome":
        return cls(
            status=OutcomeStatus.INVALID_WORKING_DIRECTORY,
            program=program,
            working_dir=working_dir,
        )

    def describe(self) -> str:
        """Human-readable description of the outcome."""
        if self.status == OutcomeStatus.SUCCESS:
            return f"Command '{self.program}' succeeded"
        if self.status == OutcomeStatus.COMMAND_NOT_FOUND:
            return f"Command not found: {self.program}"
        if self.status == OutcomeStatus.EXECUTION_FAILED:
            return f"Command failed with exit code {self.exit_code}: {self.stderr}"
        if self.status == OutcomeStatus.TIMEOUT:
            return f"Command '{self.program}' timed out after {self.duration} seconds"
        return f"Invalid working directory: {self.working_dir}"


class _CompletionSlot:
    """
    Single-assignment holder for the outcome.

    The first resolve() wins; later calls are ignored and return False.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcome: Optional[CommandOutcome] = None

    def resolve(self, outcome: CommandOutcome) -> bool:
        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = outcome
            return True

    @property
    def outcome(self) -> Optional[CommandOutcome]:
        with self._lock:
            return self._outcome


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace").strip()


def _kill_process_tree(process: subprocess.Popen) -> None:
    """Kill the process and anything it spawned (git forks helpers)."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except (ProcessLookupError, PermissionError):
        # Already gone
        pass


class ProcessExecutor:
    """
    Spawns external commands and classifies how they ended.

    No retries: this is a mechanical primitive, policy lives in callers.
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.default_timeout = default_timeout

    def execute(
        self,
        program: str,
        args: Sequence[str] = (),
        working_dir: Optional[Union[str, Path]] = None,
        timeout: Optional[float] = None,
    ) -> CommandOutcome:
        """
        Run ``program args...`` and return its outcome.

        Args:
            program: Executable name, resolved on PATH
            args: Ordered argument vector
            working_dir: Directory to run in (must already exist)
            timeout: Seconds before the process is killed.
                     Defaults to the executor's default timeout.

        Returns:
            CommandOutcome, produced exactly once
        """
        invocation = CommandInvocation(
            program=program,
            arguments=list(args),
            working_dir=Path(working_dir) if working_dir is not None else None,
            timeout=self.default_timeout if timeout is None else timeout,
        )
        return self.run(invocation)

    def run(self, invocation: CommandInvocation) -> CommandOutcome:
        """Execute a prepared invocation."""
        program = invocation.program
        working_dir = invocation.working_dir

        if working_dir is not None and not working_dir.is_dir():
            logger.warning(f"[exec] Invalid working directory: {working_dir}")
            return CommandOutcome.invalid_working_directory(program, working_dir)

        logger.debug(f"[exec] Running: {invocation.command_line} (timeout={invocation.timeout}s)")

        try:
            process = subprocess.Popen(
                [program, *invocation.arguments],
                cwd=str(working_dir) if working_dir is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except FileNotFoundError:
            logger.warning(f"[exec] Command not found: {program}")
            return CommandOutcome.command_not_found(program)
        except PermissionError as e:
            logger.warning(f"[exec] Cannot launch {program}: {e}")
            return CommandOutcome.command_not_found(program)

        slot = _CompletionSlot()
        started = time.monotonic()

        def _on_timeout() -> None:
            # returncode is only set once communicate() has reaped the child
            if process.returncode is not None:
                return
            if slot.resolve(CommandOutcome.timed_out(program, invocation.timeout)):
                logger.warning(
                    f"[exec] {invocation.command_line} timed out after {invocation.timeout}s, killing"
                )
                _kill_process_tree(process)

        timer = threading.Timer(invocation.timeout, _on_timeout)
        timer.daemon = True
        timer.start()

        try:
            # Returns once the process has exited and both pipes are drained
            # (which the timeout kill also guarantees).
            stdout, stderr = process.communicate()
            # Claim the slot before cancelling, so a late timer cannot win.
            slot.resolve(self._classify(program, process.returncode, stdout, stderr))
        finally:
            timer.cancel()

        outcome = slot.outcome
        logger.debug(
            f"[exec] {program} finished: {outcome.status.value} "
            f"in {time.monotonic() - started:.2f}s"
        )
        return outcome

    @staticmethod
    def _classify(
        program: str,
        returncode: int,
        stdout: Optional[bytes],
        stderr: Optional[bytes],
    ) -> CommandOutcome:
        if returncode == 0:
            return CommandOutcome.success(program, _decode(stdout))
        if returncode == EXIT_COMMAND_NOT_FOUND:
            return CommandOutcome.command_not_found(program)
        return CommandOutcome.execution_failed(program, returncode, _decode(stderr))
