"""
Build orchestrator — drive one glibc build from source archive to cache entry.

The build is a fixed, ordered list of ``BuildStage`` records consumed by a
single loop; every stage runs inside the build container and a failing
stage aborts the rest.  After the last stage the install tree is copied
into a fresh cache entry and the container is torn down, on the failure
path as well as on success.

A version is either fully cached or not cached at all: an entry created
during a build that later fails is deleted again.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from glibc_swap.core.cache import ArtifactCache
from glibc_swap.core.environment import DockerEnvironment
from glibc_swap.core.executor import Executor, run_step
from glibc_swap.core.source_probe import probe_source, source_url
from glibc_swap.errors import GlibcSwapError
from glibc_swap.io.schema import BuildReceipt, StageRecord, StageStatus, now_iso
from glibc_swap.policy.profile import BuildProfile
from glibc_swap.policy.version import GlibcVersion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildStage:
    """One step of the build: run ``program args`` in ``cwd`` inside the container."""

    description: str
    cwd: str
    program: str
    args: Tuple[str, ...] = ()

    @property
    def failure_context(self) -> str:
        return f"Failed to {self.description}."

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]


def plan_stages(
    version: GlibcVersion,
    profile: BuildProfile,
    url: str,
    jobs: int,
) -> List[BuildStage]:
    """The fixed stage sequence for building *version*."""
    archive = profile.archive_name(version)
    return [
        BuildStage(
            "prepare the build directories",
            "/",
            "mkdir",
            ("-p", profile.build_dir, profile.install_dir),
        ),
        BuildStage("download a source", profile.staging_dir, "wget", ("-nv", url)),
        BuildStage("extract a source", profile.staging_dir, "tar", ("-xf", archive)),
        BuildStage(
            f"configure glibc {version}",
            profile.build_dir,
            f"{profile.source_dir(version)}/configure",
            tuple(profile.configure_args()),
        ),
        BuildStage(f"compile glibc {version}", profile.build_dir, "make", (f"-j{jobs}",)),
        BuildStage(f"install glibc {version}", profile.build_dir, "make", ("install",)),
    ]


ProbeFn = Callable[[GlibcVersion, str, BuildProfile, int], str]


class GlibcBuilder:
    """Ensures a glibc version is present in the artifact cache."""

    def __init__(
        self,
        environment: DockerEnvironment,
        cache: ArtifactCache,
        profile: Optional[BuildProfile] = None,
        archive_url: str = "https://ftp.gnu.org/gnu/glibc",
        jobs: int = 4,
        http_timeout: int = 30,
        probe: ProbeFn = probe_source,
    ):
        self.environment = environment
        self.cache = cache
        self.profile = profile or cache.profile
        self.archive_url = archive_url
        self.jobs = jobs
        self.http_timeout = http_timeout
        self.probe = probe

    def ensure_built(
        self,
        version: GlibcVersion,
        force: bool = False,
        rebuild_image: bool = False,
    ) -> bool:
        """
        Build *version* unless it is already cached.

        Returns True if a build ran, False if the cached entry was reused.
        With *force*, the existing entry is dropped and rebuilt; the source
        is probed and the image prepared first, so neither failing costs the
        old entry.
        """
        cached = self.cache.exists(version)
        if cached and not force:
            logger.info("Already built.")
            return False

        url = self.probe(version, self.archive_url, self.profile, self.http_timeout)

        self.environment.check_runtime()
        self.environment.ensure_image(rebuild_image)

        if cached:
            self.cache.remove(version)
        self.build(version, url)
        return True

    def build(self, version: GlibcVersion, url: Optional[str] = None) -> None:
        """Run every stage for *version* and copy the result into the cache."""
        url = url or source_url(self.archive_url, version, self.profile)
        stages = plan_stages(version, self.profile, url, self.jobs)
        receipt = BuildReceipt(
            profile_id=self.profile.profile_id,
            glibc_version=str(version),
            source_url=url,
            image=self.environment.image,
            jobs=self.jobs,
        )

        self.environment.ensure_container()

        entry_created = False
        succeeded = False
        try:
            executor = self.environment.executor()
            for index, stage in enumerate(stages, start=1):
                logger.info("[%d/%d] %s", index, len(stages), stage.description.capitalize())
                self._run_stage(executor, stage, receipt)

            entry = self.cache.create(version)
            entry_created = True
            self.environment.copy_out(self.profile.install_dir, entry)

            receipt.finished_at = now_iso()
            self.cache.write_receipt(version, receipt)
            succeeded = True
        finally:
            if succeeded:
                self.environment.teardown()
            else:
                self._cleanup_failed(version, entry_created)

        logger.info("Built glibc %s.", version)

    def _run_stage(self, executor: Executor, stage: BuildStage, receipt: BuildReceipt) -> None:
        started = time.monotonic()
        status = StageStatus.FAILED
        try:
            run_step(executor, stage.failure_context, stage.program, stage.args, stage.cwd)
            status = StageStatus.SUCCESS
        finally:
            receipt.stages.append(
                StageRecord(
                    description=stage.description,
                    cwd=stage.cwd,
                    argv=stage.argv,
                    status=status,
                    duration_s=round(time.monotonic() - started, 3),
                )
            )

    def _cleanup_failed(self, version: GlibcVersion, entry_created: bool) -> None:
        # The build failure is already propagating; cleanup errors are logged.
        if entry_created and self.cache.exists(version):
            try:
                self.cache.remove(version)
            except GlibcSwapError as e:
                logger.error("Failed to discard the partial cache entry: %s", e)
        try:
            self.environment.teardown()
        except GlibcSwapError as e:
            logger.error("Failed to tear down the build container: %s", e)
