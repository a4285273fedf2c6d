"""Build pipeline — turn a handler's source root into a deployable artifact.

``start`` builds are a no-op: local workers run the interpreter directly
against source.  ``deploy`` builds resolve the source root, export
lockfiles to ``requirements.txt``, install dependencies, copy the tree
into the output directory and run any user install commands.

Every external step is atomic: the first non-zero exit aborts the build
and its output is surfaced verbatim.  Nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path

from pyhandler.config import Settings, settings as default_settings
from pyhandler.contracts import BuildRequest, BuildResult
from pyhandler.errors import ExternalToolError, HandlerError
from pyhandler.resolver import resolve_source_root
from pyhandler.runner import CommandExecutor, run

logger = logging.getLogger(__name__)

REQUIREMENTS_FILE = "requirements.txt"

# (manifest that triggers the step, command that writes requirements.txt)
EXPORT_STEPS: tuple[tuple[str, str], ...] = (
    ("Pipfile", "pipenv requirements > requirements.txt"),
    (
        "poetry.lock",
        "poetry export --with-credentials --format requirements.txt --output requirements.txt",
    ),
)


class BuildPipeline:
    """Runs start/deploy builds for Python handlers.

    Parameters
    ----------
    executor:
        Coroutine used for every external command.  Defaults to
        ``pyhandler.runner.run``.
    settings:
        Configuration; defaults to the module-level settings.
    """

    def __init__(
        self,
        *,
        executor: CommandExecutor | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._execute = executor or run
        self._settings = settings or default_settings

    async def build(self, request: BuildRequest) -> BuildResult:
        """Build *request*, converting handler errors into a failed result."""
        if request.mode == "start":
            return BuildResult.ok(request.props.handler)

        try:
            handler = await self._deploy(request)
        except HandlerError as exc:
            logger.warning("[pipeline] build of %s failed: %s", request.props.handler, exc)
            return BuildResult.fail(exc.message)
        return BuildResult.ok(handler)

    # ------------------------------------------------------------------
    # Deploy steps
    # ------------------------------------------------------------------

    async def _deploy(self, request: BuildRequest) -> str:
        cfg = self._settings
        handler = request.props.handler
        if not request.out.strip():
            raise HandlerError(
                f"Deploy build of {handler} requires an output directory",
                detail={"handler": handler},
            )
        root = await resolve_source_root(handler, cfg.SOURCE_MARKERS)
        logger.info("[pipeline] building %s from %s into %s", handler, root, request.out)

        await self._export(root)

        if (root / REQUIREMENTS_FILE).exists():
            await self._check(cfg.INSTALL_COMMAND, cwd=root)

        await self._copy(root, Path(request.out))

        options = request.props.python
        if options is not None:
            for command in options.install_commands:
                await self._check(command, cwd=Path(request.out))

        return os.path.relpath(os.path.abspath(handler), root)

    async def _export(self, root: Path) -> None:
        """Export lockfiles to a plain requirements list."""
        if (
            self._settings.EXPORT_POLICY == "prefer_requirements"
            and (root / REQUIREMENTS_FILE).exists()
        ):
            logger.debug("[pipeline] %s present, skipping lockfile export", REQUIREMENTS_FILE)
            return
        for manifest, command in EXPORT_STEPS:
            if (root / manifest).exists():
                await self._check(command, cwd=root)

    async def _copy(self, root: Path, out: Path) -> None:
        state_dir = self._settings.STATE_DIR_NAME

        def _ignore(_dir: str, names: list[str]) -> set[str]:
            return {name for name in names if name == state_dir}

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: shutil.copytree(root, out, ignore=_ignore, dirs_exist_ok=True),
            )
        except OSError as exc:
            raise HandlerError(
                f"Failed to copy {root} to {out}: {exc}",
                detail={"source": str(root), "out": str(out)},
            ) from exc

    async def _check(self, command: str, *, cwd: Path) -> None:
        """Run *command*; raise ``ExternalToolError`` on a non-zero exit."""
        result = await self._execute(command, cwd=str(cwd))
        if not result.ok:
            raise ExternalToolError(command, result.exit_code, result.error_text())
        logger.info("[pipeline] ok (%dms): %s", result.duration_ms, command)
