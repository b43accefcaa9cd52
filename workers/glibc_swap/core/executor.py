"""
Step executor — run one external program and stream its output.

Responsibilities:
  - Spawn the program with stdout/stderr piped (never inherited).
  - Forward stdout lines at INFO and stderr lines at WARNING to the
    ``glibc_swap.subprocess`` logger while the program runs, so a long
    compile shows progress.
  - Turn a non-zero exit or a spawn failure into ``ExternalCommandFailed``.

No retries and no timeout: every call runs the program exactly once and
blocks until it exits.
"""
import logging
import subprocess
import threading
from typing import IO, List, Optional, Sequence

from glibc_swap.errors import ExternalCommandFailed, GlibcSwapError, StepFailed

logger = logging.getLogger(__name__)
subprocess_logger = logging.getLogger("glibc_swap.subprocess")


class Executor:
    """Interface: run ``program args...`` in ``cwd`` and return its stdout lines."""

    def run(
        self,
        program: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
    ) -> List[str]:
        raise NotImplementedError


def _drain(stream: IO[str], level: int, sink: Optional[List[str]] = None) -> None:
    for raw in stream:
        line = raw.rstrip("\n")
        subprocess_logger.log(level, ">> %s", line)
        if sink is not None:
            sink.append(line)
    stream.close()


class LocalExecutor(Executor):
    """Runs programs directly on the host."""

    def run(
        self,
        program: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
    ) -> List[str]:
        cmd = [program, *args]
        logger.debug("RUN: %s (cwd=%s)", " ".join(cmd), cwd)
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise ExternalCommandFailed(program, reason=e.strerror or str(e)) from e

        # stderr on a helper thread so neither pipe can fill up and stall the child
        stderr_thread = threading.Thread(
            target=_drain,
            args=(proc.stderr, logging.WARNING),
            name=f"stderr-{program}",
            daemon=True,
        )
        stderr_thread.start()

        lines: List[str] = []
        _drain(proc.stdout, logging.INFO, lines)
        stderr_thread.join()
        returncode = proc.wait()

        if returncode != 0:
            raise ExternalCommandFailed(program, returncode=returncode)
        return lines


class ContainerExecutor(Executor):
    """Runs programs inside a named container through ``docker exec``."""

    def __init__(self, host: Executor, docker: str, container: str):
        self.host = host
        self.docker = docker
        self.container = container

    def run(
        self,
        program: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
    ) -> List[str]:
        exec_args = ["exec"]
        if cwd is not None:
            exec_args += ["-w", cwd]
        exec_args += [self.container, program, *args]
        return self.host.run(self.docker, exec_args)


def run_step(
    executor: Executor,
    context: str,
    program: str,
    args: Sequence[str] = (),
    cwd: Optional[str] = None,
) -> List[str]:
    """Run one command and attach *context* to any failure."""
    try:
        return executor.run(program, args, cwd)
    except GlibcSwapError as e:
        raise StepFailed(context, e) from e
