"""Local Python runtime handler — source resolution, builds and dev workers.

Public API
----------
Handler facade::

    PythonHandler  — can_handle / should_build / start_worker / stop_worker / build

Registry::

    HandlerRegistry, RuntimeHandler

Contracts (Pydantic models)::

    BuildRequest, BuildProps, PythonBuildOptions, BuildResult,
    StartWorkerInput, ShouldBuildInput, WorkerEvent,
    ServerConfig, WorkerPool

Components::

    BuildPipeline, WorkerSupervisor,
    find_source_root, resolve_source_root, is_child, invocation_target,
    run, RunResult

Errors::

    HandlerError, ResolutionError, ExternalToolError,
    ProcessSpawnError, HandlerNotFound
"""

from pyhandler.config import VERSION, Settings, settings
from pyhandler.contracts import (
    BuildProps,
    BuildRequest,
    BuildResult,
    PythonBuildOptions,
    ServerConfig,
    ShouldBuildInput,
    StartWorkerInput,
    WorkerEvent,
    WorkerPool,
)
from pyhandler.errors import (
    ExternalToolError,
    HandlerError,
    HandlerNotFound,
    ProcessSpawnError,
    ResolutionError,
)
from pyhandler.handler import PythonHandler
from pyhandler.logs import setup_logging
from pyhandler.pipeline import BuildPipeline
from pyhandler.registry import HandlerRegistry, RuntimeHandler
from pyhandler.resolver import (
    find_source_root,
    invocation_target,
    is_child,
    resolve_source_root,
)
from pyhandler.runner import RunResult, run
from pyhandler.supervisor import WorkerSupervisor

__version__ = VERSION

__all__ = [
    # Facade
    "PythonHandler",
    # Registry
    "HandlerRegistry",
    "RuntimeHandler",
    # Contracts
    "BuildProps",
    "BuildRequest",
    "BuildResult",
    "PythonBuildOptions",
    "ServerConfig",
    "ShouldBuildInput",
    "StartWorkerInput",
    "WorkerEvent",
    "WorkerPool",
    # Components
    "BuildPipeline",
    "WorkerSupervisor",
    "find_source_root",
    "invocation_target",
    "is_child",
    "resolve_source_root",
    "run",
    "RunResult",
    # Errors
    "ExternalToolError",
    "HandlerError",
    "HandlerNotFound",
    "ProcessSpawnError",
    "ResolutionError",
    # Config / logging
    "Settings",
    "settings",
    "setup_logging",
]
