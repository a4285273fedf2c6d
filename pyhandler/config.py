"""Handler configuration loaded from environment variables.

Uses ``pydantic-settings`` for env-var loading, type coercion and
``.env`` file support.  Components accept an optional ``Settings``
instance so tests can build independent configurations; everything
else reads the module-level ``settings``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VERSION = "0.1.0"

_DEFAULT_SHIM = Path(__file__).resolve().parent / "support" / "python-runtime" / "runtime.py"


def _default_python() -> str:
    return "python.exe" if os.name == "nt" else "python3"


class Settings(BaseSettings):
    """Runtime handler settings, sourced from environment / ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- worker process --
    PYTHON_EXECUTABLE: str = Field(default_factory=_default_python)
    RUNTIME_SHIM: str = str(_DEFAULT_SHIM)
    FUNCTION_MEMORY_SIZE: str = "1024"

    # -- source discovery --
    # All markers are checked at one directory level before ascending.
    SOURCE_MARKERS: list[str] = ["requirements.txt", "Pipfile", "poetry.lock"]

    # -- build --
    # Tooling-state directory never copied into build output.
    STATE_DIR_NAME: str = ".sst"
    INSTALL_COMMAND: str = "pip install -r requirements.txt"
    # "always": export whenever a lockfile exists.
    # "prefer_requirements": skip exports if requirements.txt is already there.
    EXPORT_POLICY: Literal["always", "prefer_requirements"] = "always"

    LOG_LEVEL: str = "INFO"

    @field_validator("SOURCE_MARKERS")
    @classmethod
    def _markers_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("SOURCE_MARKERS must name at least one marker file")
        return value


settings = Settings()
