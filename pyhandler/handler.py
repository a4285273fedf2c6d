"""Python runtime handler — the surface the handler registry talks to.

``PythonHandler`` composes source resolution, the build pipeline and the
worker supervisor behind five operations: ``can_handle``,
``should_build``, ``start_worker``, ``stop_worker`` and ``build``.
Registry payloads may be passed as models or as plain dicts using the
registry's camelCase keys.
"""

from __future__ import annotations

from typing import Any

from pyhandler.config import Settings, settings as default_settings
from pyhandler.contracts import (
    BuildRequest,
    BuildResult,
    ServerConfig,
    ShouldBuildInput,
    StartWorkerInput,
    WorkerPool,
)
from pyhandler.logs import setup_logging
from pyhandler.pipeline import BuildPipeline
from pyhandler.runner import CommandExecutor
from pyhandler.supervisor import WorkerSupervisor


RUNTIME_PREFIX = "python"


class PythonHandler:
    """Runtime handler for ``python*`` functions.

    One instance per dev session.  It owns its supervisor, so two
    handlers never share worker or source-root state.  Construction
    installs the session's console logging at ``LOG_LEVEL``.
    """

    def __init__(
        self,
        pool: WorkerPool,
        server: ServerConfig,
        *,
        executor: CommandExecutor | None = None,
        settings: Settings | None = None,
    ) -> None:
        cfg = settings or default_settings
        setup_logging(cfg.LOG_LEVEL)
        self.supervisor = WorkerSupervisor(pool, server, settings=cfg)
        self.pipeline = BuildPipeline(executor=executor, settings=cfg)

    def can_handle(self, runtime: str) -> bool:
        return runtime.startswith(RUNTIME_PREFIX)

    def should_build(self, request: ShouldBuildInput | dict[str, Any]) -> bool:
        request = ShouldBuildInput.model_validate(request)
        return self.supervisor.should_build(request.function_id, request.file)

    async def start_worker(self, request: StartWorkerInput | dict[str, Any]) -> None:
        await self.supervisor.start_worker(StartWorkerInput.model_validate(request))

    async def stop_worker(self, worker_id: str) -> None:
        await self.supervisor.stop_worker(worker_id)

    async def build(self, request: BuildRequest | dict[str, Any]) -> BuildResult:
        return await self.pipeline.build(BuildRequest.model_validate(request))

    async def close(self) -> None:
        await self.supervisor.close()
