"""Handler contracts — Pydantic models exchanged with the handler registry.

Every request and result crossing the registry boundary is one of these
models.  All models are frozen (immutable after creation) and accept the
registry's camelCase field spellings (``functionID``, ``workerID``,
``installCommands``) as aliases.

Also defines the two collaborator seams this package consumes but does
not own: the worker pool (``WorkerPool``) and the local server
configuration (``ServerConfig``).
"""

from __future__ import annotations

from typing import Any, Awaitable, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


_FROZEN = ConfigDict(frozen=True, populate_by_name=True)


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------


class PythonBuildOptions(BaseModel):
    """Python-specific build options."""

    model_config = _FROZEN

    install_commands: list[str] = Field(
        default_factory=list,
        alias="installCommands",
        description="Extra shell commands run in the output directory, in order",
    )


class BuildProps(BaseModel):
    """Function properties relevant to a build."""

    model_config = _FROZEN

    handler: str = Field(..., min_length=1, description="Handler file path")
    python: PythonBuildOptions | None = None


class BuildRequest(BaseModel):
    """A single build of one function, consumed once."""

    model_config = _FROZEN

    mode: Literal["start", "deploy"]
    props: BuildProps
    out: str = Field(default="", description="Output directory; deploy builds fail without one")


class BuildResult(BaseModel):
    """Tagged build outcome: success with a handler, or a list of errors."""

    model_config = _FROZEN

    type: Literal["success", "error"]
    handler: str | None = None
    errors: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.type == "success"

    @classmethod
    def ok(cls, handler: str) -> BuildResult:
        return cls(type="success", handler=handler)

    @classmethod
    def fail(cls, *errors: str) -> BuildResult:
        return cls(type="error", errors=list(errors))


# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------


class StartWorkerInput(BaseModel):
    """Request to start (or restart) one emulated worker."""

    model_config = _FROZEN

    function_id: str = Field(..., alias="functionID")
    worker_id: str = Field(..., alias="workerID")
    handler: str = Field(..., min_length=1)
    environment: dict[str, str] = Field(default_factory=dict)


class ShouldBuildInput(BaseModel):
    """A file-system change event for one function."""

    model_config = _FROZEN

    function_id: str = Field(..., alias="functionID")
    file: str


class WorkerEvent(BaseModel):
    """One message on the supervisor's relay channel."""

    model_config = ConfigDict(frozen=True)

    worker_id: str
    kind: Literal["stdout", "stderr", "exit"]
    payload: str = ""
    exit_code: int | None = None


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    """Address of the local control-plane server."""

    model_config = ConfigDict(frozen=True)

    host: str = "localhost"
    port: int = Field(..., ge=1, le=65535)

    def runtime_api(self, worker_id: str) -> str:
        """Control endpoint a worker uses to reach its invocation route."""
        return f"{self.host}:{self.port}/{worker_id}"


@runtime_checkable
class WorkerPool(Protocol):
    """Worker bookkeeping owned by the host.  Methods may be sync or async."""

    def exited(self, worker_id: str) -> Awaitable[Any] | None: ...

    def stdout(self, worker_id: str, text: str) -> Awaitable[Any] | None: ...
