"""Python runtime handler error hierarchy.

Every error carries typed fields (not just a message string),
supports ``to_dict()`` for serialisation into build results and logs,
and has a readable ``__str__``.
"""

from __future__ import annotations


class HandlerError(Exception):
    """Base error for all runtime handler failures."""

    def __init__(self, message: str, *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": self.message, **self.detail}

    def __str__(self) -> str:
        return self.message


class ResolutionError(HandlerError):
    """No project marker was found above the handler path."""

    def __init__(self, handler: str, markers: list[str] | tuple[str, ...] = ()) -> None:
        self.handler = handler
        self.markers = list(markers)
        super().__init__(
            f"Could not find src for {handler}",
            detail={"handler": handler, "markers": self.markers},
        )


class ExternalToolError(HandlerError):
    """A dependency tool or user install command exited non-zero."""

    def __init__(self, command: str, exit_code: int, output: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output
        msg = output if output.strip() else f"Command '{command}' exited with code {exit_code}"
        super().__init__(
            msg,
            detail={"command": command, "exit_code": exit_code},
        )


class ProcessSpawnError(HandlerError):
    """The platform refused to create the worker subprocess."""

    def __init__(self, worker_id: str, command: list[str], reason: str) -> None:
        self.worker_id = worker_id
        self.command = command
        self.reason = reason
        super().__init__(
            f"Failed to spawn worker '{worker_id}': {reason}",
            detail={"worker_id": worker_id, "command": command, "reason": reason},
        )


class HandlerNotFound(HandlerError):
    """No registered handler accepts the requested runtime."""

    def __init__(self, runtime: str, available: list[str]) -> None:
        self.runtime = runtime
        self.available = available
        super().__init__(
            f"No handler for runtime '{runtime}'. Registered: {', '.join(available)}",
            detail={"runtime": runtime, "available": available},
        )
