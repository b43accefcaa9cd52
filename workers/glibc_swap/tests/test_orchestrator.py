"""
test_orchestrator — the staged glibc build and the "ensure cached" step.

Invariants:
  - Stages run in the fixed order, each inside the build container.
  - A failing stage aborts the rest; the container is still torn down
    and no cache entry is left behind.
  - ensure_built twice in a row builds once.
  - A failed source probe stops everything before any docker call.
  - A forced rebuild keeps the old entry until the image is ready.
"""
import pytest

from glibc_swap.core.orchestrator import BuildStage, plan_stages
from glibc_swap.errors import ExternalCommandFailed, NetworkError, StepFailed
from glibc_swap.io.schema import StageStatus
from glibc_swap.policy.version import parse_version

V = parse_version("2.31")
URL = "https://ftp.gnu.org/gnu/glibc/glibc-2.31.tar.xz"

STAGE_PROGRAMS = [
    "mkdir",
    "wget",
    "tar",
    "/build/glibc-2.31/configure",
    "make",
    "make",
]


class TestPlanStages:

    def test_order_and_programs(self, profile):
        stages = plan_stages(V, profile, URL, jobs=8)
        assert [s.program for s in stages] == STAGE_PROGRAMS
        assert all(isinstance(s, BuildStage) for s in stages)

    def test_directories(self, profile):
        prepare = plan_stages(V, profile, URL, jobs=8)[0]
        assert prepare.args == ("-p", "/build/glibc-build", "/output")

    def test_fetch_and_extract(self, profile):
        stages = plan_stages(V, profile, URL, jobs=8)
        assert URL in stages[1].args
        assert stages[1].cwd == "/build"
        assert stages[2].args == ("-xf", "glibc-2.31.tar.xz")
        assert stages[2].cwd == "/build"

    def test_configure_flags(self, profile):
        configure = plan_stages(V, profile, URL, jobs=8)[3]
        assert configure.cwd == "/build/glibc-build"
        assert "--prefix=/output" in configure.args
        assert "--disable-werror" in configure.args
        assert "CC=gcc -m64" in configure.args
        assert "CFLAGS=-O2" in configure.args

    def test_compile_uses_jobs(self, profile):
        stages = plan_stages(V, profile, URL, jobs=8)
        assert stages[4].args == ("-j8",)
        assert stages[5].args == ("install",)

    def test_failure_contexts(self, profile):
        contexts = [s.failure_context for s in plan_stages(V, profile, URL, jobs=1)]
        assert contexts[1] == "Failed to download a source."
        assert contexts[2] == "Failed to extract a source."
        assert contexts[3] == "Failed to configure glibc 2.31."


class TestBuild:

    def test_full_build(self, ctx, executor, cache_root):
        ctx.builder.build(V, URL)

        assert executor.exec_programs() == STAGE_PROGRAMS
        subs = executor.docker_subcommands()
        assert subs[:2] == ["ps", "run"]
        assert subs[-3:] == ["cp", "stop", "rm"]

        entry = cache_root / "glibc-2.31"
        assert (entry / "lib" / "libc.so.6").is_symlink()
        assert (entry / "receipt.json").is_file()

    def test_copy_out_targets_new_entry(self, ctx, executor, cache_root):
        ctx.builder.build(V, URL)
        cp = next(a for a in executor.argvs() if a[:2] == ["docker", "cp"])
        assert cp[2:] == ["glibc-swap-builder:/output/.", str(cache_root / "glibc-2.31")]

    def test_receipt_records_stages(self, ctx):
        ctx.builder.build(V, URL)
        receipt = ctx.cache.read_receipt(V)

        assert receipt.source_url == URL
        assert receipt.jobs == 2
        assert receipt.finished_at is not None
        assert [s.status for s in receipt.stages] == [StageStatus.SUCCESS] * 6

    def test_stage_failure_aborts_and_tears_down(self, ctx, executor, cache_root):
        executor.on(
            "docker", "exec", "-w", "/build/glibc-build", "glibc-swap-builder",
            "/build/glibc-2.31/configure",
            error=ExternalCommandFailed("docker", returncode=1),
        )

        with pytest.raises(StepFailed, match="Failed to configure glibc 2.31."):
            ctx.builder.build(V, URL)

        assert executor.exec_programs() == STAGE_PROGRAMS[:4]
        subs = executor.docker_subcommands()
        assert "cp" not in subs
        assert subs[-2:] == ["stop", "rm"]
        assert not (cache_root / "glibc-2.31").exists()

    def test_copy_failure_discards_entry(self, ctx, executor, cache_root):
        def partial_copy(argv, cwd):
            (cache_root / "glibc-2.31" / "lib").mkdir(parents=True)

        executor.on(
            "docker", "cp",
            effect=partial_copy,
            error=ExternalCommandFailed("docker", returncode=1),
        )

        with pytest.raises(StepFailed, match="Failed to copy /output"):
            ctx.builder.build(V, URL)

        assert not (cache_root / "glibc-2.31").exists()
        assert executor.docker_subcommands()[-2:] == ["stop", "rm"]

    def test_teardown_failure_does_not_mask_stage_failure(self, ctx, executor):
        executor.on("docker", "exec", error=ExternalCommandFailed("docker", returncode=1))
        executor.on("docker", "stop", error=ExternalCommandFailed("docker", returncode=1))

        with pytest.raises(StepFailed, match="Failed to prepare the build directories."):
            ctx.builder.build(V, URL)

    def test_container_failure_skips_stages(self, ctx, executor):
        executor.on("docker", "run", error=ExternalCommandFailed("docker", returncode=125))

        with pytest.raises(StepFailed, match="Failed to start glibc-swap-builder."):
            ctx.builder.build(V, URL)

        assert executor.exec_programs() == []


class TestEnsureBuilt:

    def test_builds_once(self, ctx, executor, probe_calls):
        assert ctx.builder.ensure_built(V) is True
        assert ctx.builder.ensure_built(V) is False

        assert executor.docker_subcommands().count("run") == 1
        assert probe_calls == ["2.31"]

    def test_already_built_logged(self, ctx, make_entry, executor, caplog):
        make_entry("2.31")
        caplog.set_level("INFO")

        assert ctx.builder.ensure_built(V) is False
        assert "Already built." in caplog.text
        assert executor.calls == []

    def test_image_prepared_before_build(self, ctx, executor):
        ctx.builder.ensure_built(V)
        subs = executor.docker_subcommands()
        assert subs.index("images") < subs.index("build") < subs.index("run")

    def test_rebuild_image_flag(self, ctx, executor):
        executor.on("docker", "images", result=["abc123"])
        ctx.builder.ensure_built(V, rebuild_image=True)
        assert "rmi" in executor.docker_subcommands()

    def test_force_rebuilds_cached(self, ctx, make_entry, executor, cache_root):
        entry = make_entry("2.31")
        (entry / "marker").write_text("old build")

        assert ctx.builder.ensure_built(V, force=True) is True

        assert not (entry / "marker").exists()
        assert (entry / "receipt.json").is_file()
        assert executor.exec_programs() == STAGE_PROGRAMS

    def test_probe_failure_stops_early(self, ctx, make_entry, executor):
        entry = make_entry("2.31")

        def unavailable(version, archive_url, profile, timeout):
            raise NetworkError('The request failed with a status "404 Not Found".')

        ctx.builder.probe = unavailable

        with pytest.raises(NetworkError):
            ctx.builder.ensure_built(V, force=True)

        assert executor.calls == []
        assert entry.exists()

    def test_image_failure_keeps_cached_entry(self, ctx, make_entry, executor):
        entry = make_entry("2.31")
        executor.on("docker", "build", error=ExternalCommandFailed("docker", returncode=1))

        with pytest.raises(StepFailed, match="Failed to build an image."):
            ctx.builder.ensure_built(V, force=True)

        assert (entry / "lib" / "libc.so.6").exists()
        assert "run" not in executor.docker_subcommands()

    def test_missing_docker_keeps_cached_entry(self, ctx, make_entry, executor, monkeypatch):
        entry = make_entry("2.31")
        monkeypatch.setattr("glibc_swap.core.environment.shutil.which", lambda name: None)

        with pytest.raises(ExternalCommandFailed, match="Docker is not found"):
            ctx.builder.ensure_built(V, force=True)

        assert entry.exists()
        assert executor.calls == []
