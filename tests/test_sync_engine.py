"""Tests for the sync orchestrator workflows."""

import asyncio

import pytest

from patchsync.core import SyncOrchestrator, SyncResult, SyncTask, TaskState, Workflow
from patchsync.errors import NetworkError, RemoteError
from patchsync.store import InMemoryObjectStore
from patchsync.vcs import DiffRunner, PatchApplier

from conftest import StubVersionControl


@pytest.fixture
def orchestrator(diff_runner, patch_applier, memory_store):
    orchestrator = SyncOrchestrator(
        diff_runner=diff_runner,
        patch_applier=patch_applier,
        store_factory=lambda config: memory_store,
        max_workers=2
    )
    yield orchestrator
    orchestrator.close()


def make_orchestrator(vcs, store):
    return SyncOrchestrator(
        diff_runner=DiffRunner(vcs),
        patch_applier=PatchApplier(vcs),
        store_factory=lambda config: store
    )


class FailingStore(InMemoryObjectStore):
    """Memory store whose network calls all fail."""

    async def list_keys(self, prefix=None):
        raise NetworkError("connection refused")

    async def get_object(self, key):
        self.calls.append(("get", key))
        raise NetworkError("connection refused")


class TestSyncTask:
    """Tests for the task state machine."""

    async def test_lifecycle(self):
        task = SyncTask(Workflow.DELETE, asyncio.get_running_loop())
        assert task.state == TaskState.IDLE

        task.start()
        assert task.state == TaskState.RUNNING
        assert not task.finished

        result = SyncResult(workflow=Workflow.DELETE, success=True, key="Fix.patch")
        task.complete(result)

        assert task.state == TaskState.DONE
        assert task.finished
        assert await task.wait() is result

    async def test_failed_result_marks_failed(self):
        task = SyncTask(Workflow.DELETE, asyncio.get_running_loop())
        task.start()
        task.complete(SyncResult(workflow=Workflow.DELETE, success=False, error_message="boom"))

        assert task.state == TaskState.FAILED

    async def test_cannot_complete_twice(self):
        task = SyncTask(Workflow.DELETE, asyncio.get_running_loop())
        task.start()
        task.complete(SyncResult(workflow=Workflow.DELETE, success=True))

        with pytest.raises(RuntimeError):
            task.complete(SyncResult(workflow=Workflow.DELETE, success=True))
        with pytest.raises(RuntimeError):
            task.start()

    def test_result_describe(self):
        ok = SyncResult(workflow=Workflow.LIST_AVAILABLE, success=True)
        failed = SyncResult(workflow=Workflow.DELETE, success=False, error_message="denied")

        assert ok.describe() == "list_available done"
        assert failed.describe() == "delete failed: denied"


class TestCreateAndUpload:
    """Tests for the create-and-upload workflow."""

    async def test_uploads_patch_under_name_and_extension(self, orchestrator, sync_config, memory_store, repo_root):
        result = await orchestrator.create_and_upload(sync_config)

        assert result.success
        assert result.state == TaskState.DONE
        assert result.key == "Fix.patch"
        assert result.local_path == str(repo_root / "Fix.patch")
        assert memory_store.calls == [("put", "Fix.patch", b"--- a.txt ---")]

    async def test_selection_passed_to_diff(self, orchestrator, sync_config, stub_vcs, repo_root):
        await orchestrator.create_and_upload(sync_config.with_selection(["a.txt", "src/b.py"]))

        assert stub_vcs.calls[0] == ("diff", repo_root, ["a.txt", "src/b.py"], repo_root / "Fix.patch")

    async def test_empty_selection_still_uploads(self, orchestrator, sync_config, memory_store, stub_vcs):
        result = await orchestrator.create_and_upload(sync_config.with_selection([]))

        assert result.success
        assert stub_vcs.calls[0][2] == []
        assert memory_store.calls[0][:2] == ("put", "Fix.patch")

    async def test_diff_diagnostics_skip_upload(self, sync_config, memory_store):
        orchestrator = make_orchestrator(StubVersionControl(diff_stderr="fatal: not a git repository"), memory_store)

        result = await orchestrator.create_and_upload(sync_config)
        orchestrator.close()

        assert not result.success
        assert result.state == TaskState.FAILED
        assert result.error_type == "ProcessError"
        assert "not a git repository" in result.error_message
        assert memory_store.calls == []

    async def test_invalid_repo_path(self, orchestrator, sync_config, tmp_path, memory_store):
        config = sync_config.model_copy(update={"repo_path": str(tmp_path / "nope")})

        result = await orchestrator.create_and_upload(config)

        assert not result.success
        assert result.error_type == "ConfigError"
        assert memory_store.calls == []

    async def test_upload_failure_reported(self, orchestrator, sync_config, memory_store):
        async def rejected(key, data):
            raise RemoteError("<Error><Code>AccessDenied</Code></Error>", status=403, method="PUT", key=key)

        memory_store.put_object = rejected

        result = await orchestrator.create_and_upload(sync_config)

        assert not result.success
        assert result.error_type == "RemoteError"
        assert result.error_message == "<Error><Code>AccessDenied</Code></Error>"


class TestListAvailable:
    """Tests for listing and the last-known key list."""

    async def test_lists_and_remembers_keys(self, orchestrator, sync_config, memory_store):
        memory_store.objects.update({"a.patch": b"1", "b.patch": b"2"})

        result = await orchestrator.list_available(sync_config)

        assert result.keys == ["a.patch", "b.patch"]
        assert orchestrator.last_known_keys == ["a.patch", "b.patch"]

    async def test_prefix(self, orchestrator, sync_config, memory_store):
        memory_store.objects.update({"Fix.patch": b"1", "Other.patch": b"2"})

        result = await orchestrator.list_available(sync_config, prefix="Fix")

        assert result.keys == ["Fix.patch"]
        assert memory_store.calls == [("list", "Fix")]

    async def test_failure_keeps_previous_keys(self, sync_config):
        store = FailingStore()
        orchestrator = make_orchestrator(StubVersionControl(), store)
        orchestrator.last_known_keys = ["old.patch"]

        result = await orchestrator.list_available(sync_config)

        assert not result.success
        assert result.error_type == "NetworkError"
        assert orchestrator.last_known_keys == ["old.patch"]


class TestDownloadAndApply:
    """Tests for the download-and-apply workflow."""

    async def test_downloads_then_applies(self, orchestrator, sync_config, memory_store, stub_vcs, repo_root):
        memory_store.objects["Fix.patch"] = b"--- a.txt ---"

        result = await orchestrator.download_and_apply(sync_config, "Fix.patch")

        local = repo_root / "Fix.patch"
        assert result.success
        assert result.local_path == str(local)
        assert local.read_bytes() == b"--- a.txt ---"
        assert stub_vcs.calls == [("apply", repo_root, local)]

    async def test_custom_target_dir(self, orchestrator, sync_config, memory_store, stub_vcs, tmp_path, repo_root):
        downloads = tmp_path / "downloads"
        downloads.mkdir()
        downloads = downloads.resolve()
        memory_store.objects["Fix.patch"] = b"data"

        result = await orchestrator.download_and_apply(sync_config, "Fix.patch", target_dir=str(downloads))

        assert result.success
        assert (downloads / "Fix.patch").read_bytes() == b"data"
        assert stub_vcs.calls == [("apply", repo_root, downloads / "Fix.patch")]

    async def test_missing_key_never_applies(self, orchestrator, sync_config, stub_vcs, repo_root):
        result = await orchestrator.download_and_apply(sync_config, "Missing.patch")

        assert not result.success
        assert result.error_type == "RemoteError"
        assert "NoSuchKey" in result.error_message
        assert stub_vcs.calls == []
        assert not (repo_root / "Missing.patch").exists()

    async def test_network_failure_never_applies(self, sync_config):
        vcs = StubVersionControl()
        orchestrator = make_orchestrator(vcs, FailingStore())

        result = await orchestrator.download_and_apply(sync_config, "Fix.patch")
        orchestrator.close()

        assert result.error_type == "NetworkError"
        assert vcs.calls == []

    async def test_apply_diagnostics_fail(self, sync_config):
        store = InMemoryObjectStore(objects={"Fix.patch": b"--- a.txt ---"})
        orchestrator = make_orchestrator(StubVersionControl(apply_stderr="error: patch does not apply"), store)

        result = await orchestrator.download_and_apply(sync_config, "Fix.patch")
        orchestrator.close()

        assert not result.success
        assert result.state == TaskState.FAILED
        assert result.error_type == "ProcessError"

    async def test_invalid_target_dir(self, orchestrator, sync_config, memory_store, tmp_path):
        result = await orchestrator.download_and_apply(sync_config, "Fix.patch", target_dir=str(tmp_path / "nope"))

        assert result.error_type == "ConfigError"
        assert memory_store.calls == []


class TestDelete:
    """Tests for the delete workflow."""

    async def test_delete_absent_key_succeeds(self, orchestrator, sync_config):
        result = await orchestrator.delete(sync_config, "Missing.patch")

        assert result.success
        assert result.key == "Missing.patch"

    async def test_delete_updates_last_known_keys(self, orchestrator, sync_config, memory_store):
        memory_store.objects.update({"a.patch": b"1", "b.patch": b"2"})
        await orchestrator.list_available(sync_config)

        await orchestrator.delete(sync_config, "a.patch")

        assert orchestrator.last_known_keys == ["b.patch"]
        assert "a.patch" not in memory_store.objects


class TestChangedFiles:

    async def test_lists_changed_paths(self, sync_config, memory_store):
        vcs = StubVersionControl(status_stdout=" M a.txt\n?? b.txt\n")
        orchestrator = make_orchestrator(vcs, memory_store)

        result = await orchestrator.changed_files(sync_config)
        orchestrator.close()

        assert result.keys == ["a.txt", "b.txt"]
        assert memory_store.calls == []


class TestCallbacks:
    """Tests for completion notification."""

    async def test_callback_receives_result(self, orchestrator, sync_config):
        received = []

        result = await orchestrator.create_and_upload(sync_config, on_complete=received.append)

        assert received == [result]

    async def test_callback_on_failure(self, orchestrator, sync_config):
        received = []

        await orchestrator.download_and_apply(sync_config, "Missing.patch", on_complete=received.append)

        assert len(received) == 1
        assert received[0].state == TaskState.FAILED

    async def test_callback_exception_does_not_escape(self, orchestrator, sync_config):
        def broken(result):
            raise ValueError("callback bug")

        result = await orchestrator.delete(sync_config, "Fix.patch", on_complete=broken)

        assert result.success

    async def test_callback_runs_on_loop_thread(self, orchestrator, sync_config):
        import threading

        threads = []
        await orchestrator.create_and_upload(
            sync_config,
            on_complete=lambda result: threads.append(threading.current_thread())
        )

        assert threads == [threading.current_thread()]


class TestConcurrency:
    """Tests for running workflows side by side."""

    async def test_independent_workflows_run_concurrently(self, orchestrator, sync_config, memory_store):
        memory_store.objects["Other.patch"] = b"x"

        results = await asyncio.gather(
            orchestrator.create_and_upload(sync_config),
            orchestrator.list_available(sync_config),
            orchestrator.delete(sync_config, "Old.patch")
        )

        assert all(result.success for result in results)
        assert [result.workflow for result in results] == [
            Workflow.CREATE_AND_UPLOAD,
            Workflow.LIST_AVAILABLE,
            Workflow.DELETE
        ]

    async def test_cancellation_reports_failure(self, sync_config):
        started = asyncio.Event()

        class SlowStore(InMemoryObjectStore):
            async def list_keys(self, prefix=None):
                started.set()
                await asyncio.sleep(10)
                return []

        received = []
        orchestrator = make_orchestrator(StubVersionControl(), SlowStore())
        task = asyncio.ensure_future(orchestrator.list_available(sync_config, on_complete=received.append))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert received[0].error_type == "CancelledError"
        assert received[0].state == TaskState.FAILED


class TestFromSettings:

    def test_uses_repo_settings(self):
        from patchsync.config import AppSettings, RepoSettings

        settings = AppSettings(max_workers=3, repo=RepoSettings(patch_extension="diff"))
        orchestrator = SyncOrchestrator.from_settings(settings, vcs=StubVersionControl())

        info = orchestrator.get_info()
        assert info["patch_extension"] == "diff"
        assert info["max_workers"] == 3


class TestDownloadLocation:
    """Tests for where downloaded keys may be written."""

    @pytest.mark.parametrize("key", ["../outside.patch", "nested/../../outside.patch"])
    async def test_key_escaping_target_rejected(self, orchestrator, sync_config, memory_store, stub_vcs, repo_root, key):
        memory_store.objects[key] = b"--- a.txt ---"

        result = await orchestrator.download_and_apply(sync_config, key)

        assert not result.success
        assert result.error_type == "ConfigError"
        assert memory_store.calls == []
        assert stub_vcs.calls == []
        assert not (repo_root.parent / "outside.patch").exists()

    async def test_absolute_key_rejected(self, orchestrator, sync_config, memory_store, stub_vcs, tmp_path):
        key = str(tmp_path / "abs.patch")
        memory_store.objects[key] = b"--- a.txt ---"

        result = await orchestrator.download_and_apply(sync_config, key)

        assert result.error_type == "ConfigError"
        assert not (tmp_path / "abs.patch").exists()
        assert stub_vcs.calls == []

    async def test_nested_key_stays_inside(self, orchestrator, sync_config, memory_store, repo_root):
        memory_store.objects["team/Fix.patch"] = b"data"

        result = await orchestrator.download_and_apply(sync_config, "team/Fix.patch")

        assert result.success
        assert (repo_root / "team" / "Fix.patch").read_bytes() == b"data"

    async def test_relative_repo_path(self, orchestrator, sync_config, memory_store, stub_vcs, repo_root, monkeypatch):
        monkeypatch.chdir(repo_root.parent)
        config = sync_config.model_copy(update={"repo_path": repo_root.name})
        memory_store.objects["Fix.patch"] = b"data"

        result = await orchestrator.download_and_apply(config, "Fix.patch")

        assert result.success
        assert stub_vcs.calls == [("apply", repo_root, repo_root / "Fix.patch")]


class BrokenVersionControl(StubVersionControl):

    def status(self, working_dir):
        raise ValueError("unexpected tool output")


class TestUnexpectedErrors:
    """Errors outside the patchsync hierarchy still complete the task."""

    async def test_reported_as_failed_result(self, sync_config, memory_store):
        received = []
        orchestrator = make_orchestrator(BrokenVersionControl(), memory_store)

        result = await orchestrator.changed_files(sync_config, on_complete=received.append)
        orchestrator.close()

        assert not result.success
        assert result.state == TaskState.FAILED
        assert result.error_type == "ValueError"
        assert result.error_message == "unexpected tool output"
        assert received == [result]
