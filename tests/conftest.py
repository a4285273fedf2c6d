"""Shared test fixtures — source trees, fake collaborators and settings.

Provides:
- ``FakePool`` / ``pool`` — records worker output and exits, with async waits
- ``FakeExecutor`` / ``executor`` — scripted stand-in for ``runner.run``
- ``shim`` — a tiny runtime shim that reports argv, cwd and env and can
  leave a child process holding its pipes
- ``test_settings`` — ``Settings`` wired to the current interpreter + shim
- ``make_tree`` — helper that lays out files under ``tmp_path``
"""

from __future__ import annotations

import asyncio
import sys
import textwrap
from collections import defaultdict
from pathlib import Path
from typing import Callable

import pytest

from pyhandler.config import Settings
from pyhandler.contracts import ServerConfig
from pyhandler.runner import RunResult


# ---------------------------------------------------------------------------
# Marker registration
# ---------------------------------------------------------------------------


def pytest_configure(config):
    """Register custom markers.

    Tests that spawn real interpreter processes are decorated with
    ``@pytest.mark.process``; run ``-m 'not process'`` to skip them.
    """
    config.addinivalue_line(
        "markers",
        "process: tests that spawn real worker subprocesses",
    )


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakePool:
    """Worker pool double: collects merged output and exit notifications."""

    def __init__(self) -> None:
        self.chunks: dict[str, list[str]] = defaultdict(list)
        self.exits: list[str] = []
        self._exited: dict[str, asyncio.Event] = defaultdict(asyncio.Event)

    def exited(self, worker_id: str) -> None:
        self.exits.append(worker_id)
        self._exited[worker_id].set()

    def stdout(self, worker_id: str, text: str) -> None:
        self.chunks[worker_id].append(text)

    def text(self, worker_id: str) -> str:
        return "".join(self.chunks[worker_id])

    async def wait_exit(self, worker_id: str, timeout: float = 15.0) -> None:
        await asyncio.wait_for(self._exited[worker_id].wait(), timeout)

    async def wait_text(self, worker_id: str, needle: str, timeout: float = 15.0) -> None:
        async def _poll() -> None:
            while needle not in self.text(worker_id):
                await asyncio.sleep(0.05)

        await asyncio.wait_for(_poll(), timeout)


class FakeExecutor:
    """Scripted command executor.

    ``fail`` maps a command prefix to the stderr returned with exit 1.
    ``effects`` maps a command prefix to a callback run with the cwd
    before a successful result is returned.
    """

    def __init__(
        self,
        *,
        fail: dict[str, str] | None = None,
        effects: dict[str, Callable[[Path], None]] | None = None,
    ) -> None:
        self.fail = fail or {}
        self.effects = effects or {}
        self.calls: list[tuple[str, str | None]] = []

    async def __call__(
        self,
        command: str,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> RunResult:
        self.calls.append((command, cwd))
        for prefix, stderr in self.fail.items():
            if command.startswith(prefix):
                return RunResult(exit_code=1, stderr=stderr, command=command)
        for prefix, effect in self.effects.items():
            if command.startswith(prefix):
                effect(Path(cwd) if cwd else Path.cwd())
        return RunResult(exit_code=0, stdout="", command=command)

    @property
    def commands(self) -> list[str]:
        return [c for c, _ in self.calls]


SHIM_SOURCE = textwrap.dedent(
    """\
    import json, os, subprocess, sys, time

    child = None
    if os.environ.get("SHIM_CHILD"):
        # Inherits stdout/stderr, so the pipes outlive this process.
        child = subprocess.Popen([
            sys.executable, "-c",
            "import time; time.sleep(%s)" % float(os.environ["SHIM_CHILD"]),
        ])

    keys = ("IS_LOCAL", "AWS_LAMBDA_FUNCTION_MEMORY_SIZE",
            "AWS_LAMBDA_RUNTIME_API", "CUSTOM_VAR")
    print(json.dumps({
        "argv": sys.argv[1:],
        "cwd": os.getcwd(),
        "env": {k: os.environ.get(k) for k in keys},
        "child": child.pid if child else None,
    }))
    sys.stdout.flush()
    sys.stderr.write("shim-stderr\\n")
    sys.stderr.flush()
    if os.environ.get("SHIM_SLEEP"):
        time.sleep(float(os.environ["SHIM_SLEEP"]))
    """
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def pool() -> FakePool:
    return FakePool()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def server() -> ServerConfig:
    return ServerConfig(port=13557)


@pytest.fixture
def shim(tmp_path: Path) -> Path:
    path = tmp_path / "shim" / "runtime.py"
    path.parent.mkdir()
    path.write_text(SHIM_SOURCE)
    return path


@pytest.fixture
def test_settings(shim: Path) -> Settings:
    """Settings that run the test shim with the current interpreter."""
    return Settings(PYTHON_EXECUTABLE=sys.executable, RUNTIME_SHIM=str(shim))


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[..., Path]:
    """Create ``{relative_path: content}`` files under a fresh directory."""

    def _make(files: dict[str, str], base: str = "project") -> Path:
        root = tmp_path / base
        for rel, content in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        root.mkdir(exist_ok=True)
        return root

    return _make
