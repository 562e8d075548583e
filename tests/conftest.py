"""Shared fixtures for patchsync tests."""

from pathlib import Path
from typing import List, Sequence

import pytest

from patchsync.config import SyncConfig
from patchsync.utils.logging import setup_logging
from patchsync.store import InMemoryObjectStore, ObjectStoreFactory
from patchsync.vcs import CommandOutput, DiffRunner, PatchApplier, VersionControl


class StubVersionControl(VersionControl):
    """Records calls and answers with canned output instead of running git."""

    def __init__(
        self,
        patch_text: str = "--- a.txt ---",
        diff_stderr: str = "",
        apply_stderr: str = "",
        status_stdout: str = "",
        write_patch: bool = True
    ):
        self.patch_text = patch_text
        self.diff_stderr = diff_stderr
        self.apply_stderr = apply_stderr
        self.status_stdout = status_stdout
        self.write_patch = write_patch
        self.calls: List[tuple] = []

    def diff(self, working_dir: Path, paths: Sequence[str], output_path: Path) -> CommandOutput:
        self.calls.append(("diff", Path(working_dir), list(paths), Path(output_path)))
        if self.write_patch:
            Path(output_path).write_text(self.patch_text)
        return CommandOutput(stderr=self.diff_stderr)

    def apply(self, working_dir: Path, patch_path: Path) -> CommandOutput:
        self.calls.append(("apply", Path(working_dir), Path(patch_path)))
        return CommandOutput(stderr=self.apply_stderr)

    def status(self, working_dir: Path) -> CommandOutput:
        self.calls.append(("status", Path(working_dir)))
        return CommandOutput(stdout=self.status_stdout)


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    setup_logging(log_level="DEBUG", log_format="console")


@pytest.fixture(autouse=True)
def reset_memory_stores():
    ObjectStoreFactory._memory_stores.clear()
    yield
    ObjectStoreFactory._memory_stores.clear()


@pytest.fixture
def stub_vcs():
    return StubVersionControl()


@pytest.fixture
def diff_runner(stub_vcs):
    return DiffRunner(stub_vcs)


@pytest.fixture
def patch_applier(stub_vcs):
    return PatchApplier(stub_vcs)


@pytest.fixture
def memory_store():
    return InMemoryObjectStore(bucket_name="patches")


@pytest.fixture
def repo_root(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    (root / ".git").mkdir()
    return root.resolve()


@pytest.fixture
def sync_config(repo_root):
    return SyncConfig(
        access_key="AKIDEXAMPLE",
        secret_key="secret",
        region="us-east-1",
        bucket_name="patches",
        repo_path=str(repo_root),
        patch_name="Fix",
        selected_paths=["a.txt"]
    )
