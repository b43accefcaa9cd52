"""Explicit wiring of settings, executor and components for one invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from glibc_swap.config import Settings, load_settings
from glibc_swap.core.cache import ArtifactCache
from glibc_swap.core.environment import DockerEnvironment
from glibc_swap.core.executor import Executor, LocalExecutor
from glibc_swap.core.orchestrator import GlibcBuilder
from glibc_swap.core.patcher import Patcher
from glibc_swap.policy.profile import BuildProfile


@dataclass
class SwapContext:
    """Everything a command needs; built once per CLI invocation."""

    settings: Settings
    executor: Executor
    cache: ArtifactCache
    environment: DockerEnvironment
    builder: GlibcBuilder
    patcher: Patcher
    profile: BuildProfile = field(default_factory=BuildProfile.x86_64)


def build_context(
    settings: Optional[Settings] = None,
    executor: Optional[Executor] = None,
    profile: Optional[BuildProfile] = None,
) -> SwapContext:
    """Create a context; tests pass their own settings and a fake executor."""
    settings = settings or load_settings()
    executor = executor or LocalExecutor()
    profile = profile or BuildProfile.x86_64()

    cache = ArtifactCache(settings.config_root, profile)
    environment = DockerEnvironment(
        executor,
        cache,
        docker=settings.GLIBC_SWAP_DOCKER,
        image=settings.GLIBC_SWAP_IMAGE,
        container=settings.GLIBC_SWAP_CONTAINER,
    )
    builder = GlibcBuilder(
        environment,
        cache,
        profile,
        archive_url=settings.GLIBC_SWAP_ARCHIVE_URL,
        jobs=settings.jobs,
        http_timeout=settings.GLIBC_SWAP_HTTP_TIMEOUT,
    )
    patcher = Patcher(executor, profile, patchelf=settings.GLIBC_SWAP_PATCHELF)

    return SwapContext(
        settings=settings,
        executor=executor,
        cache=cache,
        environment=environment,
        builder=builder,
        patcher=patcher,
        profile=profile,
    )
