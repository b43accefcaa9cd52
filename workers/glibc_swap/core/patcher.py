"""
Patcher — point an executable at a cached glibc.

One ``patchelf`` invocation rewrites both the ELF interpreter
(``PT_INTERP``) and the runtime search path.  The file is modified in
place; there is no rollback.

pyelftools is used only to report the interpreter before and after the
patch.  Whether a file is patchable is decided by patchelf.
"""
import logging
from pathlib import Path
from typing import Optional

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from glibc_swap.core.executor import Executor, run_step
from glibc_swap.errors import ValidationError
from glibc_swap.policy.profile import BuildProfile

logger = logging.getLogger(__name__)


def validate_patch_target(path: Path) -> Path:
    """Reject symlinks and anything that is not a regular file."""
    path = Path(path)
    if path.is_symlink():
        raise ValidationError(f"{path} is a symbolic link. Please pass the real file.")
    if not path.is_file():
        raise ValidationError(f"{path} is not a regular file.")
    return path


def read_interpreter(path: Path) -> Optional[str]:
    """The ``PT_INTERP`` path of an ELF file, or None if it has none / is not ELF."""
    try:
        with open(path, "rb") as f:
            elf = ELFFile(f)
            for segment in elf.iter_segments():
                if segment["p_type"] == "PT_INTERP":
                    return segment.get_interp_name()
    except (ELFError, OSError) as e:
        logger.warning("Cannot read the interpreter of %s: %s", path, e)
    return None


class Patcher:
    """Rewrites interpreter and rpath of an executable with patchelf."""

    def __init__(
        self,
        executor: Executor,
        profile: Optional[BuildProfile] = None,
        patchelf: str = "patchelf",
    ):
        self.executor = executor
        self.profile = profile or BuildProfile.x86_64()
        self.patchelf = patchelf

    def patch(self, library_dir: Path, executable: Path) -> None:
        library_dir = Path(library_dir)
        executable = Path(executable)
        loader = library_dir / self.profile.loader_name

        before = read_interpreter(executable)
        if before is not None:
            logger.debug("Current interpreter of %s: %s", executable, before)

        run_step(
            self.executor,
            f"Failed to patch {executable}. Please make sure patchelf is installed properly.",
            self.patchelf,
            [
                "--set-interpreter", str(loader),
                "--set-rpath", str(library_dir),
                str(executable),
            ],
        )

        logger.info(
            "Patched %s: interpreter %s, rpath %s.",
            executable,
            read_interpreter(executable) or loader,
            library_dir,
        )
