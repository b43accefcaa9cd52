"""
Runner — command layer and CLI entry point for glibc_swap.

Each ``run_*`` function implements one command against an explicit
``SwapContext``.  Raw version strings are parsed here, before any network
or filesystem action.  ``main`` maps command-line arguments onto them and
turns every ``GlibcSwapError`` into a single error line and exit status 1.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from glibc_swap import __version__
from glibc_swap.context import SwapContext, build_context
from glibc_swap.core.patcher import validate_patch_target
from glibc_swap.errors import GlibcSwapError, ValidationError
from glibc_swap.policy.version import GlibcVersion, parse_version

logger = logging.getLogger(__name__)


def _destination(dest: Optional[Path]) -> Path:
    """Existing destination directory, cwd when none is given."""
    dest = Path(dest) if dest is not None else Path.cwd()
    if not dest.is_dir():
        raise ValidationError(f"The destination directory {dest} does not exist.")
    return dest


def run_build(
    ctx: SwapContext,
    version: str,
    force: bool = False,
    rebuild_image: bool = False,
) -> bool:
    """Make sure *version* is cached. Returns True if a build ran."""
    parsed = parse_version(version)
    return ctx.builder.ensure_built(parsed, force=force, rebuild_image=rebuild_image)


def run_remove(ctx: SwapContext, version: str) -> None:
    ctx.cache.remove(parse_version(version))


def run_clean(ctx: SwapContext) -> None:
    ctx.cache.clean()
    logger.info("Deleted all cached libraries.")


def run_list(ctx: SwapContext) -> List[GlibcVersion]:
    versions = ctx.cache.list_versions()
    for v in versions:
        logger.info("%s-%s", ctx.profile.entry_prefix, v)
    return versions


def run_install(
    ctx: SwapContext,
    version: str,
    force: bool = False,
    rebuild_image: bool = False,
    libs: Sequence[str] = (),
    dest: Optional[Path] = None,
) -> List[Path]:
    """Build if needed, then copy the selected libraries into *dest* (default: cwd)."""
    parsed = parse_version(version)
    ctx.cache.library_selection(libs)
    dest = _destination(dest)

    ctx.builder.ensure_built(parsed, force=force, rebuild_image=rebuild_image)
    copied = ctx.cache.copy_to(parsed, dest, libs)

    logger.info("Installed glibc %s to %s.", parsed, dest)
    return copied


def run_patch(
    ctx: SwapContext,
    version: str,
    executable: Path,
    force: bool = False,
    rebuild_image: bool = False,
    libs: Sequence[str] = (),
    dest: Optional[Path] = None,
) -> Path:
    """Install *version* into *dest* and point *executable* at it."""
    parsed = parse_version(version)
    target = validate_patch_target(Path(executable))
    ctx.cache.library_selection(libs)
    # interpreter and rpath must be absolute
    dest = _destination(dest).resolve()

    ctx.builder.ensure_built(parsed, force=force, rebuild_image=rebuild_image)
    ctx.cache.copy_to(parsed, dest, libs)
    ctx.patcher.patch(dest, target)

    logger.info("Patched %s with glibc %s.", target, parsed)
    return target


# ── CLI ──────────────────────────────────────────────────────────────────────

def _add_build_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("version", help="A version of glibc.")
    p.add_argument("-f", "--force", action="store_true", help="Force a rebuild of glibc.")
    p.add_argument(
        "--rebuild-image", action="store_true", help="Force a rebuild of the image."
    )


def _add_install_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-l", "--lib",
        action="append",
        default=[],
        help="Install glibc libraries other than libc.so.6 and ld-linux-x86-64.so.2.",
    )
    p.add_argument(
        "-d", "--dest",
        type=Path,
        default=None,
        help="Destination directory (default: current directory).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="glibc-swap",
        description="glibc_swap — build, cache and splice specific glibc versions",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("build", help="Build the specified glibc.")
    _add_build_flags(p)

    p = sub.add_parser("rm", help="Remove glibc from the cache.")
    p.add_argument("version", help="A version of glibc.")

    sub.add_parser("clean", help="Delete all caches and configurations.")

    p = sub.add_parser("install", help="Install the specified glibc to a directory.")
    _add_build_flags(p)
    _add_install_flags(p)

    sub.add_parser("list", help="List all pre-built glibc.")

    p = sub.add_parser("patch", help="Patch an executable to use the specified glibc.")
    _add_build_flags(p)
    p.add_argument("executable", type=Path, help="The executable to patch in place.")
    _add_install_flags(p)

    return parser


def dispatch(ctx: SwapContext, args: argparse.Namespace) -> None:
    if args.command == "build":
        run_build(ctx, args.version, args.force, args.rebuild_image)
    elif args.command == "rm":
        run_remove(ctx, args.version)
    elif args.command == "clean":
        run_clean(ctx)
    elif args.command == "install":
        run_install(ctx, args.version, args.force, args.rebuild_image, args.lib, args.dest)
    elif args.command == "list":
        run_list(ctx)
    elif args.command == "patch":
        run_patch(
            ctx, args.version, args.executable,
            args.force, args.rebuild_image, args.lib, args.dest,
        )


def main(argv: Optional[Sequence[str]] = None, ctx: Optional[SwapContext] = None) -> int:
    """CLI entry point for glibc_swap."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        dispatch(ctx or build_context(), args)
    except GlibcSwapError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
