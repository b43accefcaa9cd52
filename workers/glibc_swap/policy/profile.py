"""
Profile — the fixed build recipe and library layout for one target.

Everything the builder and the cache need to know about *how* glibc is
configured and *what* a usable install looks like lives here, so the core
modules carry no hard-coded paths or flags.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class BuildProfile:
    """Build recipe and on-disk naming for one glibc target."""

    # Identity
    profile_id: str

    # Cache naming
    entry_prefix: str
    lib_subdir: str

    # Libraries copied on every install (loader first)
    loader_name: str
    runtime_name: str

    # Paths inside the build container
    staging_dir: str
    build_dir: str
    install_dir: str

    # Toolchain
    target_flag: str = "-m64"
    opt_flag: str = "-O2"
    extra_configure_flags: Tuple[str, ...] = ("--disable-werror",)

    @property
    def default_libraries(self) -> Tuple[str, str]:
        return (self.loader_name, self.runtime_name)

    def archive_name(self, version) -> str:
        return f"glibc-{version}.tar.xz"

    def source_dir(self, version) -> str:
        return f"{self.staging_dir}/glibc-{version}"

    def configure_args(self) -> list:
        """Arguments passed to glibc's configure script."""
        return [
            f"--prefix={self.install_dir}",
            *self.extra_configure_flags,
            f"CC=gcc {self.target_flag}",
            f"CXX=g++ {self.target_flag}",
            f"CFLAGS={self.opt_flag}",
            f"CXXFLAGS={self.opt_flag}",
        ]

    @classmethod
    def x86_64(cls) -> "BuildProfile":
        """The default profile: 64-bit x86 glibc built with gcc."""
        return cls(
            profile_id="linux-x86_64-glibc",
            entry_prefix="glibc",
            lib_subdir="lib",
            loader_name="ld-linux-x86-64.so.2",
            runtime_name="libc.so.6",
            staging_dir="/build",
            build_dir="/build/glibc-build",
            install_dir="/output",
        )
