"""
Execution environment — the Docker image and the throwaway build container.

Lifecycle per build:
    ensure_image()      reuse the tagged image, or (re)build it from the
                        Dockerfile materialized into the cache root
    ensure_container()  force-remove any container left under the reserved
                        name, then start a fresh idle one
    executor()          run build stages inside that container
    copy_out()          copy the install tree back to the host
    teardown()          stop and remove the container

A leftover container is never resumed: whatever state a previous build left
in it cannot be trusted.
"""
import logging
import shutil
from pathlib import Path

from glibc_swap.core.cache import ArtifactCache
from glibc_swap.core.executor import ContainerExecutor, Executor, run_step
from glibc_swap.errors import ExternalCommandFailed

logger = logging.getLogger(__name__)


class DockerEnvironment:
    """Image and container management through the ``docker`` CLI."""

    def __init__(
        self,
        host: Executor,
        cache: ArtifactCache,
        docker: str = "docker",
        image: str = "glibc-swap:latest",
        container: str = "glibc-swap-builder",
    ):
        self.host = host
        self.cache = cache
        self.docker = docker
        self.image = image
        self.container = container

    def _docker(self, context: str, *args: str) -> list:
        return run_step(self.host, context, self.docker, list(args))

    def check_runtime(self) -> None:
        if shutil.which(self.docker) is None:
            raise ExternalCommandFailed(
                self.docker,
                reason="Docker is not found. Please make sure Docker is ready",
            )
        logger.info("Found Docker.")

    # ── Image ────────────────────────────────────────────────────────────────

    def image_id(self) -> str:
        """ID of the tagged image, or an empty string if it does not exist."""
        lines = self._docker(
            "Failed to figure out whether an image exists or not.",
            "images", "-q", self.image,
        )
        return next((l.strip() for l in lines if l.strip()), "")

    def image_exists(self) -> bool:
        return bool(self.image_id())

    def ensure_image(self, force_rebuild: bool = False) -> None:
        image_id = self.image_id()
        if image_id:
            logger.info("Found %s (%s).", self.image, image_id)
            if not force_rebuild:
                return
            self._docker(f"Failed to delete the old {self.image}.", "rmi", "-f", self.image)
            logger.info("Deleted %s (%s).", self.image, image_id)
        else:
            logger.info("An image named %s is not found.", self.image)

        dockerfile = self.cache.ensure_definition_file()
        # the root holds every cached install tree; build from an empty context
        context_dir = self.cache.build_context_dir()
        logger.info("Building %s. It may take a long time.", self.image)
        self._docker(
            "Failed to build an image.",
            "build", "-t", self.image, "-f", str(dockerfile), str(context_dir),
        )
        logger.info("Built the image.")

    # ── Container ────────────────────────────────────────────────────────────

    def container_exists(self) -> bool:
        """True if a container (running or stopped) holds the reserved name."""
        lines = self._docker(
            "Failed to list containers.",
            "ps", "-a", "-q", "--filter", f"name=^/{self.container}$",
        )
        return any(l.strip() for l in lines)

    def _stop_and_remove(self) -> None:
        self._docker(f"Failed to stop {self.container}.", "stop", self.container)
        self._docker(f"Failed to remove {self.container}.", "rm", self.container)

    def ensure_container(self) -> None:
        if self.container_exists():
            logger.info("Removing a stale container %s.", self.container)
            self._stop_and_remove()

        self._docker(
            f"Failed to start {self.container}.",
            "run", "-d", "-it", "--name", self.container, self.image, "/bin/bash",
        )
        logger.info("Started %s.", self.container)

    def executor(self) -> ContainerExecutor:
        return ContainerExecutor(self.host, self.docker, self.container)

    def copy_out(self, container_path: str, host_dir: Path) -> None:
        """Recursively copy the contents of *container_path* into *host_dir*."""
        self._docker(
            f"Failed to copy {container_path} out of {self.container}.",
            "cp", f"{self.container}:{container_path.rstrip('/')}/.", str(host_dir),
        )

    def teardown(self) -> None:
        self._stop_and_remove()
        logger.info("Removed %s.", self.container)
