"""
Version — parsing of ``<major>.<minor>`` glibc release identifiers.

A raw version string ends up in download URLs and cache directory names,
so it is parsed exactly once at the edge and only ``GlibcVersion`` values
travel further into the system.
"""
import re
from dataclasses import dataclass
from typing import Tuple

from glibc_swap.errors import ValidationError

VERSION_RE = re.compile(r"([0-9]+)\.([0-9]+)")


@dataclass(frozen=True)
class GlibcVersion:
    """A validated glibc release identifier."""

    text: str
    major: int
    minor: int

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.major, self.minor)

    def __str__(self) -> str:
        return self.text


def parse_version(raw: str) -> GlibcVersion:
    """
    Validate *raw* and return it as a ``GlibcVersion``.

    Raises
    ------
    ValidationError
        If *raw* does not match ``[0-9]+\\.[0-9]+`` exactly.
    """
    match = VERSION_RE.fullmatch(raw) if isinstance(raw, str) else None
    if match is None:
        raise ValidationError(
            f'A version of glibc must follow "[0-9]+\\.[0-9]+", got "{raw}".'
        )
    return GlibcVersion(text=raw, major=int(match.group(1)), minor=int(match.group(2)))
