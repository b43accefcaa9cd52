"""
Artifact cache — per-version glibc install trees on disk.

Filesystem layout:
    <root>/Dockerfile                      build image definition (lazy)
    <root>/.image-context/                 empty docker build context
    <root>/glibc-<version>/lib/...         installed shared objects
    <root>/glibc-<version>/receipt.json    build receipt

An entry directory exists only for a build whose install tree was copied
out completely; the builder removes it again on any later failure.
"""
import logging
import os
import re
import shutil
from importlib import resources
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from glibc_swap.errors import (
    CacheEntryNotFound,
    CacheIOError,
    LibraryNotFound,
    ValidationError,
)
from glibc_swap.io.schema import BuildReceipt
from glibc_swap.io.writer import read_receipt, write_receipt
from glibc_swap.policy.profile import BuildProfile
from glibc_swap.policy.version import GlibcVersion, parse_version

logger = logging.getLogger(__name__)

DOCKERFILE_NAME = "Dockerfile"
DOCKERFILE_RESOURCE = "glibc-builder.dockerfile"
CONTEXT_DIR_NAME = ".image-context"


class ArtifactCache:
    """Owns the cache root and every per-version entry below it."""

    def __init__(self, root: Path, profile: Optional[BuildProfile] = None):
        self.root = Path(root)
        self.profile = profile or BuildProfile.x86_64()
        self._entry_re = re.compile(
            rf"{re.escape(self.profile.entry_prefix)}-([0-9]+)\.([0-9]+)"
        )

    # -----------------------------------------------------------------
    # Entries
    # -----------------------------------------------------------------

    def entry_dir(self, version: GlibcVersion) -> Path:
        return self.root / f"{self.profile.entry_prefix}-{version}"

    def lib_dir(self, version: GlibcVersion) -> Path:
        return self.entry_dir(version) / self.profile.lib_subdir

    def exists(self, version: GlibcVersion) -> bool:
        return self.entry_dir(version).exists()

    def create(self, version: GlibcVersion) -> Path:
        entry = self.entry_dir(version)
        try:
            entry.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(f"Failed to create {entry}: {e}") from e
        return entry

    def remove(self, version: GlibcVersion) -> None:
        entry = self.entry_dir(version)
        if not entry.exists():
            raise CacheEntryNotFound(f"Glibc {version} is not found.")
        try:
            shutil.rmtree(entry)
        except OSError as e:
            raise CacheIOError(f"Failed to delete {entry}: {e}") from e
        logger.info("Deleted cached libraries of glibc %s.", version)

    def clean(self) -> None:
        """Delete the whole cache root, Dockerfile included."""
        if not self.root.exists():
            raise CacheEntryNotFound("Already cleaned.")
        try:
            shutil.rmtree(self.root)
        except OSError as e:
            raise CacheIOError(f"Failed to delete {self.root}: {e}") from e

    def list_versions(self) -> List[GlibcVersion]:
        """Cached versions in ascending numeric (major, minor) order."""
        if not self.root.is_dir():
            return []

        versions = []
        try:
            for child in self.root.iterdir():
                if not child.is_dir():
                    continue
                match = self._entry_re.fullmatch(child.name)
                if match is None:
                    continue
                versions.append(parse_version(f"{match.group(1)}.{match.group(2)}"))
        except OSError as e:
            raise CacheIOError(f"Failed to read {self.root}: {e}") from e

        return sorted(versions, key=lambda v: v.sort_key)

    # -----------------------------------------------------------------
    # Image definition
    # -----------------------------------------------------------------

    def definition_path(self) -> Path:
        return self.root / DOCKERFILE_NAME

    def ensure_definition_file(self) -> Path:
        """Write the packaged Dockerfile into the root if it is not there yet."""
        path = self.definition_path()
        if path.exists():
            return path
        source = resources.files("glibc_swap").joinpath("resources").joinpath(DOCKERFILE_RESOURCE)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_text(source.read_text(encoding="utf-8"), encoding="utf-8")
        except OSError as e:
            raise CacheIOError(f"Failed to create {path}: {e}") from e
        logger.info("Created a docker file at %s.", path)
        return path

    def build_context_dir(self) -> Path:
        """Empty directory passed to ``docker build`` as its context."""
        path = self.root / CONTEXT_DIR_NAME
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(f"Failed to create {path}: {e}") from e
        return path

    # -----------------------------------------------------------------
    # Receipts
    # -----------------------------------------------------------------

    def write_receipt(self, version: GlibcVersion, receipt: BuildReceipt) -> Path:
        try:
            return write_receipt(receipt, self.entry_dir(version))
        except OSError as e:
            raise CacheIOError(f"Failed to write the receipt of glibc {version}: {e}") from e

    def read_receipt(self, version: GlibcVersion) -> Optional[BuildReceipt]:
        return read_receipt(self.entry_dir(version))

    # -----------------------------------------------------------------
    # Install
    # -----------------------------------------------------------------

    def library_selection(self, extra: Sequence[str] = ()) -> List[str]:
        """Default libraries followed by *extra*, duplicates kept."""
        for name in extra:
            if not name or name in (".", "..") or "/" in name or os.sep in name:
                raise ValidationError(f"{name!r} is not a library file name.")
        return [*self.profile.default_libraries, *extra]

    def _resolve_library(self, lib_dir: Path, name: str) -> Path:
        src = lib_dir / name
        if src.is_symlink():
            # one level only; the link target may be absolute
            target = os.readlink(src)
            link_name = Path(target).name
            logger.info("%s is a symlink to %s.", name, link_name)
            src = lib_dir / link_name
        if not src.is_file():
            raise LibraryNotFound(name)
        return src

    def copy_to(
        self,
        version: GlibcVersion,
        dest: Path,
        extra: Sequence[str] = (),
    ) -> List[Path]:
        """
        Copy the selected libraries of *version* into *dest*.

        Every library is located before the first copy, so a missing one
        leaves *dest* untouched.  Files keep the requested (unversioned)
        names.  *dest* must already exist.
        """
        dest = Path(dest)
        if not dest.is_dir():
            raise CacheIOError(
                f"A destination of the binary of glibc {version} does not exist: {dest}"
            )

        lib_dir = self.lib_dir(version)
        plan: List[Tuple[str, Path]] = [
            (name, self._resolve_library(lib_dir, name))
            for name in self.library_selection(extra)
        ]

        copied = []
        for name, src in plan:
            target = dest / name
            try:
                shutil.copyfile(src, target)
                shutil.copymode(src, target)
            except OSError as e:
                raise CacheIOError(f"Failed to copy {name} to {dest}: {e}") from e
            logger.info("Copied %s to the designated directory.", name)
            copied.append(target)
        return copied
