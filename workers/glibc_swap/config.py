"""
Tool configuration
"""
import os
from pathlib import Path
from typing import Optional

import pydantic
from pydantic_settings import BaseSettings

from glibc_swap.errors import ValidationError


class Settings(BaseSettings):
    """Settings for glibc_swap, overridable through the environment or ``.env``."""

    # Cache root (Dockerfile + one directory per built version)
    GLIBC_SWAP_ROOT: str = "~/.config/glibc-swap"

    # Docker
    GLIBC_SWAP_DOCKER: str = "docker"
    GLIBC_SWAP_IMAGE: str = "glibc-swap:latest"
    GLIBC_SWAP_CONTAINER: str = "glibc-swap-builder"

    # Patching
    GLIBC_SWAP_PATCHELF: str = "patchelf"

    # Source archives
    GLIBC_SWAP_ARCHIVE_URL: str = "https://ftp.gnu.org/gnu/glibc"
    GLIBC_SWAP_HTTP_TIMEOUT: int = 30  # seconds, probe only

    # Build
    GLIBC_SWAP_JOBS: Optional[int] = None  # make -j; defaults to host CPU count

    @property
    def config_root(self) -> Path:
        """Absolute cache root with ``~`` expanded."""
        return Path(self.GLIBC_SWAP_ROOT).expanduser()

    @property
    def jobs(self) -> int:
        return self.GLIBC_SWAP_JOBS or os.cpu_count() or 4

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


def load_settings() -> Settings:
    """Read settings from the environment; a bad value is a ``ValidationError``."""
    try:
        return Settings()
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid configuration ({problems}).") from e
