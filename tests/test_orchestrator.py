"""Tests for rebuild/restore orchestration."""

import logging

import pytest

from build_cache.config import CacheConfig, Phase
from build_cache.errors import (
    ConfigError,
    DownloadFailure,
    NotFound,
    PhaseError,
    TransportError,
    UploadFailure,
)
from build_cache.keys import derive_key
from build_cache.orchestrator import CacheOrchestrator, execute
from build_cache.providers import FilesystemProvider


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Build workspace with three mount directories, used as the cwd."""
    ws = tmp_path / "workspace"
    for name in ("dist", "node_modules", "vendor"):
        d = ws / name
        d.mkdir(parents=True)
        (d / f"{name}.txt").write_text(f"contents of {name}\n")
    monkeypatch.chdir(ws)
    return ws


def _config(**overrides):
    values = {
        "bucket": "cache",
        "branch": "main",
        "repo": "myrepo",
        "mounts": ("./dist",),
        "rebuild": True,
    }
    values.update(overrides)
    return CacheConfig(**values)


class TestCachePath:
    """Tests for CacheOrchestrator.cache_path."""

    def test_path_is_repo_and_key(self, memory_provider):
        orchestrator = CacheOrchestrator(_config(), memory_provider)
        assert orchestrator.cache_path("./dist") == f"myrepo/{derive_key('./dist', 'main')}"

    def test_default_branch_used_when_branch_empty(self, memory_provider):
        config = _config(branch="", default_branch="trunk")
        orchestrator = CacheOrchestrator(config, memory_provider)
        assert orchestrator.cache_path("./dist") == f"myrepo/{derive_key('./dist', 'trunk')}"


class TestRebuild:
    """Tests for CacheOrchestrator.rebuild."""

    def test_uploads_each_mount_in_order(self, workspace, memory_provider):
        mounts = ("./dist", "./node_modules", "./vendor")
        orchestrator = CacheOrchestrator(_config(mounts=mounts), memory_provider)

        orchestrator.rebuild()

        expected = [("upload", f"myrepo/{derive_key(m, 'main')}") for m in mounts]
        assert memory_provider.calls == expected

    def test_logs_each_mount_and_summary(self, workspace, memory_provider, caplog):
        orchestrator = CacheOrchestrator(
            _config(mounts=("./dist", "./vendor")), memory_provider
        )

        with caplog.at_level(logging.INFO, logger="build_cache"):
            elapsed = orchestrator.rebuild()

        messages = [r.getMessage() for r in caplog.records]
        assert sum(m.startswith("archiving directory <") for m in messages) == 2
        assert "archiving directory <./dist> to remote cache <myrepo/" in messages[0]
        assert messages[-1].startswith("cache built in ")
        assert elapsed >= 0

    def test_fail_fast_without_rollback(self, workspace, make_provider):
        """Mount #2 fails: mount #3 is never tried and mount #1 stays uploaded."""
        mounts = ("./dist", "./node_modules", "./vendor")
        failing = f"myrepo/{derive_key('./node_modules', 'main')}"
        provider = make_provider(fail_on=[failing])
        orchestrator = CacheOrchestrator(_config(mounts=mounts), provider)

        with pytest.raises(UploadFailure) as exc_info:
            orchestrator.rebuild()

        error = exc_info.value
        assert error.mount == "./node_modules"
        assert error.path == failing
        assert isinstance(error.cause, TransportError)
        assert isinstance(error.__cause__, TransportError)
        assert str(error).startswith("could not upload: ")

        attempted = [key for _, key in provider.calls]
        assert attempted == [f"myrepo/{derive_key('./dist', 'main')}", failing]
        assert f"myrepo/{derive_key('./dist', 'main')}" in provider.blobs

    def test_missing_mount_is_upload_failure(self, workspace, memory_provider):
        orchestrator = CacheOrchestrator(
            _config(mounts=("./missing", "./dist")), memory_provider
        )

        with pytest.raises(UploadFailure) as exc_info:
            orchestrator.rebuild()

        assert exc_info.value.mount == "./missing"
        assert memory_provider.calls == []


class TestRestore:
    """Tests for CacheOrchestrator.restore."""

    def test_not_found_aborts_restore(self, workspace, memory_provider):
        """A cold cache is an ordinary failure."""
        orchestrator = CacheOrchestrator(
            _config(mounts=("./dist", "./vendor")), memory_provider
        )

        with pytest.raises(DownloadFailure) as exc_info:
            orchestrator.restore()

        assert isinstance(exc_info.value.cause, NotFound)
        assert exc_info.value.mount == "./dist"
        assert len(memory_provider.calls) == 1

    def test_logs_each_mount_and_summary(self, workspace, memory_provider, caplog):
        config = _config(mounts=("./dist",))
        orchestrator = CacheOrchestrator(config, memory_provider)
        orchestrator.rebuild()
        caplog.clear()

        with caplog.at_level(logging.INFO, logger="build_cache"):
            orchestrator.restore()

        messages = [r.getMessage() for r in caplog.records]
        assert messages[0].startswith("restoring directory <./dist> from remote cache <myrepo/")
        assert messages[-1].startswith("cache restored in ")


class TestRun:
    """Tests for CacheOrchestrator.run and execute."""

    def test_rebuild_then_restore_round_trip(self, workspace, memory_provider, read_tree):
        """./dist on main under myrepo is stored at myrepo/<key> and comes back intact."""
        before = read_tree(workspace / "dist")
        key = derive_key("./dist", "main")

        report = execute(_config(), provider=memory_provider)

        assert report.phases == [Phase.REBUILD]
        assert list(memory_provider.blobs) == [f"myrepo/{key}"]

        for f in (workspace / "dist").iterdir():
            f.unlink()
        (workspace / "dist").rmdir()

        report = execute(_config(rebuild=False, restore=True), provider=memory_provider)

        assert report.phases == [Phase.RESTORE]
        assert memory_provider.calls[-1] == ("download", f"myrepo/{key}")
        assert read_tree(workspace / "dist") == before

    def test_both_phases_rebuild_first(self, workspace, memory_provider):
        report = execute(_config(restore=True), provider=memory_provider)

        assert report.phases == [Phase.REBUILD, Phase.RESTORE]
        assert [op for op, _ in memory_provider.calls] == ["upload", "download"]
        assert set(report.elapsed) == {Phase.REBUILD, Phase.RESTORE}

    def test_rebuild_failure_wrapped_with_phase(self, workspace, make_provider):
        path = f"myrepo/{derive_key('./dist', 'main')}"
        provider = make_provider(fail_on=[path])

        with pytest.raises(PhaseError) as exc_info:
            execute(_config(restore=True), provider=provider)

        error = exc_info.value
        assert error.phase is Phase.REBUILD
        assert str(error).startswith("process rebuild failed: could not upload: ")
        assert isinstance(error.__cause__, UploadFailure)
        # restore never starts after a failed rebuild
        assert [op for op, _ in provider.calls] == ["upload"]

    def test_restore_failure_wrapped_with_phase(self, workspace, memory_provider):
        with pytest.raises(PhaseError) as exc_info:
            execute(_config(rebuild=False, restore=True), provider=memory_provider)

        assert exc_info.value.phase is Phase.RESTORE
        assert str(exc_info.value).startswith("process restore failed: could not download: ")

    def test_no_phase_is_config_error(self, memory_provider):
        with pytest.raises(ConfigError):
            execute(_config(rebuild=False, restore=False), provider=memory_provider)
        assert memory_provider.calls == []

    def test_report_lists_remote_paths(self, workspace, memory_provider):
        report = execute(_config(mounts=("./dist", "./vendor")), provider=memory_provider)
        assert report.paths == {
            "./dist": f"myrepo/{derive_key('./dist', 'main')}",
            "./vendor": f"myrepo/{derive_key('./vendor', 'main')}",
        }

    def test_execute_builds_provider_from_config(self, workspace, tmp_path, read_tree):
        store = tmp_path / "store"
        config = _config(provider="filesystem", root=str(store), bucket="", restore=True)

        execute(config)

        key = derive_key("./dist", "main")
        assert (store / "myrepo" / key).is_file()
        assert read_tree(workspace / "dist") == {"dist.txt": b"contents of dist\n"}

    def test_branch_isolation(self, workspace, tmp_path):
        """An entry built on one branch is not visible from another."""
        provider = FilesystemProvider(tmp_path / "store")
        execute(_config(branch="main"), provider=provider)

        with pytest.raises(PhaseError) as exc_info:
            execute(_config(branch="develop", rebuild=False, restore=True), provider=provider)

        assert isinstance(exc_info.value.cause.cause, NotFound)
