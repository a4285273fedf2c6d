"""Worker supervisor — one local Python process per emulated worker.

Each worker runs the runtime shim under the configured interpreter with
the handler's source root as its working directory.  Process output and
exit are not delivered by callbacks: per-process pump tasks push
``WorkerEvent`` messages onto a single ``asyncio.Queue`` and one relay
task forwards them to the worker pool in arrival order.

The supervisor owns two maps:

- ``worker_id → _WorkerProcess`` — at most one live process per worker.
- ``function_id → source root`` — set on every worker start and read by
  ``should_build`` without taking a lock.

Start and stop are serialized per worker id only; operations on different
ids never wait on each other.
"""

from __future__ import annotations

import asyncio
import codecs
import inspect
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from pyhandler.config import Settings, settings as default_settings
from pyhandler.contracts import ServerConfig, StartWorkerInput, WorkerEvent, WorkerPool
from pyhandler.errors import ProcessSpawnError
from pyhandler.resolver import invocation_target, is_child, resolve_source_root

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096

# Seconds a dead worker's pipes are still read before its exit is reported.
# Descendants that inherited the pipes can keep them open indefinitely.
_DRAIN_TIMEOUT = 0.5


@dataclass
class _WorkerProcess:
    """Internal record for a spawned worker."""

    worker_id: str
    function_id: str
    process: asyncio.subprocess.Process
    root: Path
    watcher: asyncio.Task | None = None
    # Set when a newer process took over this worker id; its exit is not
    # reported so the pool never retires the replacement.
    replaced: bool = field(default=False)


class WorkerSupervisor:
    """Spawns, relays and kills worker processes.

    Usage::

        sup = WorkerSupervisor(pool, ServerConfig(port=13557))
        await sup.start_worker(StartWorkerInput(functionID="fn", workerID="w1",
                                                handler="/app/src/api.main"))
        ...
        await sup.close()
    """

    def __init__(
        self,
        pool: WorkerPool,
        server: ServerConfig,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._pool = pool
        self._server = server
        self._settings = settings or default_settings
        self._processes: dict[str, _WorkerProcess] = {}
        self._sources: dict[str, Path] = {}
        self._events: asyncio.Queue[WorkerEvent] = asyncio.Queue()
        self._locks: dict[str, asyncio.Lock] = {}
        self._relay_task: asyncio.Task | None = None

    # ── lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        """Start the relay loop (idempotent; also done on first worker start)."""
        if self._relay_task is None or self._relay_task.done():
            self._relay_task = asyncio.create_task(self._relay_loop())

    async def close(self) -> None:
        """Kill every worker, flush pending events and stop the relay."""
        await asyncio.gather(*(self.stop_worker(w) for w in list(self._processes)))
        await self.drain()
        if self._relay_task is not None:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass
            self._relay_task = None

    async def drain(self) -> None:
        """Wait until every queued event has reached the worker pool."""
        if self._relay_task is not None:
            await self._events.join()

    # ── queries (lock-free) ───────────────────────────────────

    def source_root(self, function_id: str) -> Path | None:
        """Source root recorded at the function's last worker start."""
        return self._sources.get(function_id)

    def should_build(self, function_id: str, file: str) -> bool:
        """True when *file* lies under the function's recorded source root."""
        root = self._sources.get(function_id)
        if root is None:
            return False
        return is_child(root, file)

    def is_running(self, worker_id: str) -> bool:
        entry = self._processes.get(worker_id)
        return entry is not None and entry.process.returncode is None

    def worker_ids(self) -> list[str]:
        return list(self._processes)

    # ── worker control ────────────────────────────────────────

    async def start_worker(self, request: StartWorkerInput) -> None:
        """Spawn a worker for *request*, replacing any live one with its id.

        Raises
        ------
        ResolutionError
            No source root above the handler.
        ProcessSpawnError
            The runtime shim is missing or the interpreter could not be
            started; nothing is recorded.
        """
        cfg = self._settings
        root = await resolve_source_root(request.handler, cfg.SOURCE_MARKERS)
        target, ext = invocation_target(root, request.handler)
        command = [cfg.PYTHON_EXECUTABLE, "-u", cfg.RUNTIME_SHIM, target, str(root), ext]
        env = {
            **os.environ,
            **request.environment,
            "IS_LOCAL": "true",
            "AWS_LAMBDA_FUNCTION_MEMORY_SIZE": cfg.FUNCTION_MEMORY_SIZE,
            "AWS_LAMBDA_RUNTIME_API": self._server.runtime_api(request.worker_id),
        }
        if not os.path.isfile(cfg.RUNTIME_SHIM):
            raise ProcessSpawnError(
                request.worker_id, command, f"runtime shim not found at {cfg.RUNTIME_SHIM}"
            )

        await self.start()
        async with self._lock_for(request.worker_id):
            previous = self._processes.get(request.worker_id)
            if previous is not None:
                previous.replaced = True
                await self._terminate(request.worker_id)

            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=str(root),
                    env=env,
                )
            except OSError as exc:
                if previous is not None:
                    await self._events.put(
                        WorkerEvent(worker_id=request.worker_id, kind="exit",
                                    exit_code=previous.process.returncode)
                    )
                raise ProcessSpawnError(request.worker_id, command, str(exc)) from exc

            entry = _WorkerProcess(
                worker_id=request.worker_id,
                function_id=request.function_id,
                process=process,
                root=root,
            )
            self._processes[request.worker_id] = entry
            self._sources[request.function_id] = root
            entry.watcher = asyncio.create_task(self._watch(entry))

        logger.info(
            "[supervisor] worker %s started pid=%s target=%s cwd=%s",
            request.worker_id, process.pid, target, root,
        )

    async def stop_worker(self, worker_id: str) -> None:
        """Kill the worker's process.  Unknown ids are ignored."""
        async with self._lock_for(worker_id):
            await self._terminate(worker_id)

    # ── internals ─────────────────────────────────────────────

    def _lock_for(self, worker_id: str) -> asyncio.Lock:
        lock = self._locks.get(worker_id)
        if lock is None:
            lock = self._locks[worker_id] = asyncio.Lock()
        return lock

    async def _terminate(self, worker_id: str) -> None:
        """Kill and forget *worker_id*; caller holds the worker's lock."""
        entry = self._processes.pop(worker_id, None)
        if entry is None:
            return
        if entry.process.returncode is None:
            try:
                entry.process.kill()
            except ProcessLookupError:
                pass
        await entry.process.wait()
        if entry.watcher is not None:
            await entry.watcher
        logger.info("[supervisor] worker %s stopped", worker_id)

    async def _watch(self, entry: _WorkerProcess) -> None:
        """Relay output until the process exits, then report the exit.

        Output still in the pipes is read for up to ``_DRAIN_TIMEOUT``
        seconds after exit; pumps still blocked after that are cancelled so
        no output event follows the exit event.
        """
        process = entry.process
        pumps = [
            asyncio.create_task(self._pump(entry.worker_id, process.stdout, "stdout")),
            asyncio.create_task(self._pump(entry.worker_id, process.stderr, "stderr")),
        ]
        try:
            code = await process.wait()
            _, pending = await asyncio.wait(pumps, timeout=_DRAIN_TIMEOUT)
            if pending:
                logger.debug(
                    "[supervisor] worker %s exited with its pipes still open", entry.worker_id
                )
        finally:
            for task in pumps:
                task.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)

        if self._processes.get(entry.worker_id) is entry:
            del self._processes[entry.worker_id]
        logger.debug("[supervisor] worker %s exited code=%s", entry.worker_id, code)
        if not entry.replaced:
            await self._events.put(
                WorkerEvent(worker_id=entry.worker_id, kind="exit", exit_code=code)
            )

    async def _pump(
        self,
        worker_id: str,
        stream: asyncio.StreamReader | None,
        kind: str,
    ) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            text = decoder.decode(chunk, final=not chunk)
            if text:
                await self._events.put(
                    WorkerEvent(worker_id=worker_id, kind=kind, payload=text)
                )
            if not chunk:
                return

    async def _relay_loop(self) -> None:
        """Forward queued events to the worker pool, one at a time."""
        while True:
            event = await self._events.get()
            try:
                if event.kind == "exit":
                    await _call(self._pool.exited, event.worker_id)
                else:
                    await _call(self._pool.stdout, event.worker_id, event.payload)
            except Exception:
                logger.exception(
                    "[supervisor] worker pool failed on %s event for %s",
                    event.kind, event.worker_id,
                )
            finally:
                self._events.task_done()


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async collaborator method."""
    result = fn(*args)
    if inspect.isawaitable(result):
        return await result
    return result
