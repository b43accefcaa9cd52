"""
Error taxonomy for glibc_swap.

Every failure a command can hit is a ``GlibcSwapError``; the CLI prints
``str(err)`` as a single line and exits non-zero.  External-command failures
are usually wrapped in ``StepFailed`` so the message reads as
"<what we were doing> (<what the tool reported>)".
"""
from __future__ import annotations

from typing import Optional


class GlibcSwapError(Exception):
    """Base class for all user-facing failures."""


class ValidationError(GlibcSwapError):
    """Malformed input: version string, destination, patch target."""


class NetworkError(GlibcSwapError):
    """Source probe failed (bad status or transport error)."""

    def __str__(self) -> str:
        return f"Network error: {self.args[0]}"


class CacheIOError(GlibcSwapError):
    """A filesystem operation on the cache or a destination failed."""

    def __str__(self) -> str:
        return f"IO error: {self.args[0]}"


class CacheEntryNotFound(CacheIOError):
    """The requested version (or the cache root itself) is not present."""

    def __str__(self) -> str:
        return str(self.args[0])


class LibraryNotFound(CacheIOError):
    """A selected library is missing from a cache entry's lib directory."""

    def __init__(self, library: str):
        super().__init__(f"Failed to find {library}.")
        self.library = library

    def __str__(self) -> str:
        return str(self.args[0])


class ExternalCommandFailed(GlibcSwapError):
    """An external program exited non-zero or could not be spawned."""

    def __init__(
        self,
        program: str,
        returncode: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        self.program = program
        self.returncode = returncode
        self.reason = reason
        if returncode is not None:
            message = f'The program "{program}" finished with a status {returncode}.'
        else:
            message = f'The program "{program}" could not be started: {reason}.'
        super().__init__(message)


class StepFailed(GlibcSwapError):
    """Composite error: a human context message plus the underlying cause."""

    def __init__(self, context: str, cause: GlibcSwapError):
        super().__init__(context)
        self.context = context
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.context} ({self.cause})"
