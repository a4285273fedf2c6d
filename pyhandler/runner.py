"""Command runner — structured subprocess execution for dependency tools.

Provides ``run()`` for executing shell commands (``pipenv``, ``poetry``,
``pip`` and user install commands) and returning a structured
``RunResult``.  The build pipeline depends only on the
``CommandExecutor`` signature, so tests substitute a fake.

No timeout is applied: a hung tool blocks its build.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import time
from typing import Awaitable, Protocol

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class RunResult(BaseModel):
    """Structured result of a subprocess invocation."""

    model_config = ConfigDict(frozen=True)

    exit_code: int = Field(..., description="Process exit code (-1 if it never ran)")
    stdout: str = Field(default="", description="Captured stdout")
    stderr: str = Field(default="", description="Captured stderr")
    duration_ms: int = Field(default=0, ge=0, description="Wall-clock duration in ms")
    command: str = Field(..., description="The command that was executed")

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def error_text(self) -> str:
        """Best available description of a failure, tool output verbatim."""
        if self.stderr.strip():
            return self.stderr
        if self.stdout.strip():
            return self.stdout
        return f"Command '{self.command}' exited with code {self.exit_code}"


class CommandExecutor(Protocol):
    """Anything that runs a shell command the way ``run`` does."""

    def __call__(
        self,
        command: str,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> Awaitable[RunResult]: ...


# ---------------------------------------------------------------------------
# Core runner
# ---------------------------------------------------------------------------


async def run(
    command: str,
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
) -> RunResult:
    """Execute *command* through the shell and return a ``RunResult``.

    Parameters
    ----------
    command:
        Shell command string.  Redirections are honoured.
    cwd:
        Working directory for the subprocess.  ``None`` → inherit.
    env:
        Extra environment variables merged on top of ``os.environ``.
    """
    merged_env = {**os.environ, **(env or {})}
    start = time.perf_counter()

    def _sync() -> tuple[int, str, str]:
        """Run in a thread so the event loop stays free."""
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            cwd=cwd,
            env=merged_env,
            shell=True,
        )
        return result.returncode, result.stdout or "", result.stderr or ""

    logger.debug("[runner] $ %s (cwd=%s)", command, cwd)
    loop = asyncio.get_running_loop()
    try:
        exit_code, stdout, stderr = await loop.run_in_executor(None, _sync)
    except OSError as exc:
        return RunResult(
            exit_code=-1,
            stderr=f"Error: {exc}",
            duration_ms=_elapsed_ms(start),
            command=command,
        )

    elapsed = _elapsed_ms(start)
    logger.debug("[runner] exit=%d in %dms: %s", exit_code, elapsed, command)
    return RunResult(
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        duration_ms=elapsed,
        command=command,
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
