"""
Shared pytest fixtures for glibc_swap tests.

No Docker, no network, no patchelf: components are wired to a
``RecordingExecutor`` that logs every command and answers from a small
rule table, and the cache lives under ``tmp_path``.

Fake install trees mimic glibc < 2.34, where the well-known names are
symlinks to versioned objects:

    lib/ld-2.31.so
    lib/ld-linux-x86-64.so.2 -> ld-2.31.so
    lib/libc-2.31.so
    lib/libc.so.6 -> libc-2.31.so
    lib/libm-2.31.so
    lib/libm.so.6 -> libm-2.31.so
"""
import shutil
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Sequence

import pytest

from glibc_swap.config import Settings
from glibc_swap.context import SwapContext, build_context
from glibc_swap.core.cache import ArtifactCache
from glibc_swap.core.executor import Executor
from glibc_swap.policy.profile import BuildProfile


class Call(NamedTuple):
    argv: List[str]
    cwd: Optional[str]


class RecordingExecutor(Executor):
    """Fake executor: records calls, answers by argv prefix (last rule wins)."""

    def __init__(self):
        self.calls: List[Call] = []
        self._rules = []

    def on(
        self,
        *prefix: str,
        result: Sequence[str] = (),
        error: Optional[Exception] = None,
        effect: Optional[Callable[[List[str], Optional[str]], None]] = None,
    ) -> "RecordingExecutor":
        self._rules.append((list(prefix), list(result), error, effect))
        return self

    def run(self, program, args=(), cwd=None):
        argv = [program, *args]
        self.calls.append(Call(argv, cwd))
        for prefix, result, error, effect in reversed(self._rules):
            if argv[: len(prefix)] == prefix:
                if effect is not None:
                    effect(argv, cwd)
                if error is not None:
                    raise error
                return list(result)
        return []

    def argvs(self) -> List[List[str]]:
        return [c.argv for c in self.calls]

    def docker_subcommands(self) -> List[str]:
        return [c.argv[1] for c in self.calls if c.argv[0] == "docker"]

    def exec_programs(self) -> List[str]:
        """Programs run through ``docker exec`` in call order."""
        programs = []
        for argv, _ in self.calls:
            if argv[:2] == ["docker", "exec"]:
                rest = argv[2:]
                if rest[0] == "-w":
                    rest = rest[2:]
                programs.append(rest[1])
        return programs


def write_lib_tree(lib_dir: Path, glibc: str = "2.31", names=("ld", "libc", "libm")) -> Path:
    """Write versioned objects plus the unversioned symlinks glibc installs."""
    links = {
        "ld": "ld-linux-x86-64.so.2",
        "libc": "libc.so.6",
        "libm": "libm.so.6",
        "libpthread": "libpthread.so.0",
    }
    lib_dir.mkdir(parents=True, exist_ok=True)
    for name in names:
        real = lib_dir / f"{name}-{glibc}.so"
        real.write_bytes(f"{name} {glibc}\n".encode())
        (lib_dir / links[name]).symlink_to(real.name)
    return lib_dir


def fake_docker_cp(glibc: str = "2.31") -> Callable[[List[str], Optional[str]], None]:
    """Effect for ``docker cp``: drop a fake install tree into the host dir."""

    def effect(argv, cwd):
        host_dir = Path(argv[-1])
        write_lib_tree(host_dir / "lib", glibc)
        (host_dir / "include").mkdir(exist_ok=True)

    return effect


@pytest.fixture
def profile() -> BuildProfile:
    return BuildProfile.x86_64()


@pytest.fixture
def cache_root(tmp_path) -> Path:
    return tmp_path / "glibc-swap"


@pytest.fixture
def cache(cache_root, profile) -> ArtifactCache:
    return ArtifactCache(cache_root, profile)


@pytest.fixture
def make_entry(cache) -> Callable[..., Path]:
    """Create a cache entry ``glibc-<version>`` with a fake lib tree."""

    def _make(version: str, names=("ld", "libc", "libm")) -> Path:
        entry = cache.root / f"glibc-{version}"
        write_lib_tree(entry / "lib", version, names)
        return entry

    return _make


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def docker_on_path(monkeypatch):
    monkeypatch.setattr(
        "glibc_swap.core.environment.shutil.which",
        lambda name: f"/usr/bin/{name}",
    )


@pytest.fixture
def settings(cache_root) -> Settings:
    return Settings(GLIBC_SWAP_ROOT=str(cache_root), GLIBC_SWAP_JOBS=2)


@pytest.fixture
def probe_calls() -> List[str]:
    return []


@pytest.fixture
def ctx(settings, executor, docker_on_path, probe_calls) -> SwapContext:
    """Context wired to the recording executor and an always-available source."""
    context = build_context(settings, executor)

    def probe(version, archive_url, profile, timeout):
        probe_calls.append(str(version))
        return f"{archive_url}/{profile.archive_name(version)}"

    context.builder.probe = probe
    executor.on("docker", "cp", effect=fake_docker_cp())
    return context


@pytest.fixture
def gcc_ok():
    if shutil.which("gcc") is None:
        pytest.skip("gcc not available - install gcc to run these tests")
