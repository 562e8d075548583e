"""Sync orchestrator tying local patch creation/application to the object store."""

import asyncio
import functools
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config.schema import SyncConfig
from ..config.settings import AppSettings, get_settings
from ..errors import ConfigError, PatchSyncError
from ..store import BaseObjectStore, ObjectStoreFactory
from ..vcs import DiffRunner, GitCollaborator, PatchApplier, VersionControl
from ..utils.logging import get_logger, log_execution_time


class TaskState(str, Enum):
    """Lifecycle of a single workflow run."""
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class Workflow(str, Enum):
    CREATE_AND_UPLOAD = "create_and_upload"
    LIST_AVAILABLE = "list_available"
    DOWNLOAD_AND_APPLY = "download_and_apply"
    DELETE = "delete"
    CHANGED_FILES = "changed_files"


@dataclass
class SyncResult:
    """Outcome of one workflow, delivered to the completion callback."""

    workflow: Workflow
    success: bool
    key: Optional[str] = None
    keys: List[str] = field(default_factory=list)
    local_path: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    duration: Optional[float] = None

    @property
    def state(self) -> TaskState:
        return TaskState.DONE if self.success else TaskState.FAILED

    def describe(self) -> str:
        """Human-readable one-line summary."""
        if self.success:
            return f"{self.workflow.value} done"
        return f"{self.workflow.value} failed: {self.error_message}"


CompletionCallback = Callable[[SyncResult], None]
StoreFactory = Callable[[SyncConfig], BaseObjectStore]


class SyncTask:
    """One workflow run. The future is its single-consumer result channel."""

    def __init__(self, workflow: Workflow, loop: asyncio.AbstractEventLoop):
        self.task_id = uuid.uuid4().hex[:12]
        self.workflow = workflow
        self.state = TaskState.IDLE
        self.result: Optional[SyncResult] = None
        self.future: asyncio.Future = loop.create_future()

    def start(self) -> None:
        if self.state != TaskState.IDLE:
            raise RuntimeError(f"Task {self.task_id} already {self.state.value}")
        self.state = TaskState.RUNNING

    def complete(self, result: SyncResult) -> None:
        if self.state != TaskState.RUNNING:
            raise RuntimeError(f"Task {self.task_id} is {self.state.value}, not running")
        self.result = result
        self.state = result.state
        if not self.future.done():
            self.future.set_result(result)

    @property
    def finished(self) -> bool:
        return self.state in (TaskState.DONE, TaskState.FAILED)

    async def wait(self) -> SyncResult:
        return await self.future


class SyncOrchestrator:
    """Runs the user-facing patch workflows.

    All workflows run on the event loop thread. Blocking git calls go to a
    thread pool and resume on the loop, so completion callbacks and the
    last-known key list are only ever touched from the loop thread.
    """

    def __init__(
        self,
        diff_runner: DiffRunner,
        patch_applier: PatchApplier,
        store_factory: Optional[StoreFactory] = None,
        max_workers: int = 4
    ):
        """Initialize orchestrator.

        Args:
            diff_runner: Builds patch files from the working tree
            patch_applier: Applies downloaded patches
            store_factory: Creates an object store for a SyncConfig
            max_workers: Threads available for blocking git calls
        """
        self.diff_runner = diff_runner
        self.patch_applier = patch_applier
        self.store_factory = store_factory or ObjectStoreFactory.create_store
        self.max_workers = max_workers
        self.logger = get_logger(self.__class__.__name__)

        self.last_known_keys: List[str] = []
        self._executor: Optional[ThreadPoolExecutor] = None

        self.logger.info("Sync orchestrator initialized", max_workers=max_workers)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AppSettings] = None,
        vcs: Optional[VersionControl] = None
    ) -> "SyncOrchestrator":
        """Build an orchestrator backed by git as configured in settings."""
        settings = settings or get_settings()
        vcs = vcs or GitCollaborator(
            executable=settings.repo.git_executable,
            timeout_seconds=settings.repo.command_timeout_seconds
        )
        return cls(
            diff_runner=DiffRunner(vcs, extension=settings.repo.patch_extension),
            patch_applier=PatchApplier(vcs),
            max_workers=settings.max_workers
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def _in_executor(self, func: Callable, *args) -> Any:
        """Run a blocking call off the loop thread and resume here."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="patchsync-vcs"
            )
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def _run(
        self,
        workflow: Workflow,
        body: Callable[[], Awaitable[SyncResult]],
        on_complete: Optional[CompletionCallback] = None,
        **context
    ) -> SyncResult:
        task = SyncTask(workflow, asyncio.get_running_loop())
        task.start()
        start_time = time.monotonic()

        self.logger.info("Workflow started", workflow=workflow.value, task_id=task.task_id, **context)

        try:
            result = await body()
        except asyncio.CancelledError:
            result = SyncResult(
                workflow=workflow,
                success=False,
                error_type="CancelledError",
                error_message="Workflow cancelled"
            )
            self._finish(task, result, start_time, on_complete)
            raise
        except (PatchSyncError, OSError) as e:
            # Local file writes (downloaded patch) surface as OSError.
            result = self._failure(workflow, e)
        except Exception as e:
            self.logger.exception(
                "Unexpected workflow error",
                workflow=workflow.value,
                task_id=task.task_id
            )
            result = self._failure(workflow, e)

        self._finish(task, result, start_time, on_complete)
        return await task.wait()

    @staticmethod
    def _failure(workflow: Workflow, error: BaseException) -> SyncResult:
        return SyncResult(
            workflow=workflow,
            success=False,
            error_type=type(error).__name__,
            error_message=str(error)
        )

    def _finish(
        self,
        task: SyncTask,
        result: SyncResult,
        start_time: float,
        on_complete: Optional[CompletionCallback]
    ) -> None:
        result.duration = time.monotonic() - start_time
        task.complete(result)

        if result.success:
            self.logger.info(
                "Workflow completed",
                workflow=task.workflow.value,
                task_id=task.task_id,
                duration=f"{result.duration:.2f}s"
            )
        else:
            self.logger.error(
                "Workflow failed",
                workflow=task.workflow.value,
                task_id=task.task_id,
                error_type=result.error_type,
                error=result.error_message
            )

        if on_complete is not None:
            try:
                on_complete(result)
            except Exception as e:
                self.logger.error(
                    "Completion callback raised",
                    workflow=task.workflow.value,
                    task_id=task.task_id,
                    error=str(e)
                )

    @log_execution_time
    async def create_and_upload(
        self,
        config: SyncConfig,
        on_complete: Optional[CompletionCallback] = None
    ) -> SyncResult:
        """Create a patch of the selected paths and upload it as ``name.ext``.

        An empty selection diffs everything that changed.
        """
        async def body() -> SyncResult:
            store = self.store_factory(config)
            blob = await self._in_executor(
                self.diff_runner.build_patch,
                config.repo_path,
                config.patch_name,
                config.selected_paths,
                config.patch_extension
            )
            async with store:
                await store.put_object(blob.key, blob.data)
            return SyncResult(
                workflow=Workflow.CREATE_AND_UPLOAD,
                success=True,
                key=blob.key,
                local_path=str(blob.path)
            )

        return await self._run(
            Workflow.CREATE_AND_UPLOAD,
            body,
            on_complete,
            patch=config.patch_key,
            selected=len(config.selected_paths)
        )

    @log_execution_time
    async def list_available(
        self,
        config: SyncConfig,
        prefix: Optional[str] = None,
        on_complete: Optional[CompletionCallback] = None
    ) -> SyncResult:
        """List patch keys in the bucket and remember them."""
        async def body() -> SyncResult:
            store = self.store_factory(config)
            async with store:
                keys = await store.list_keys(prefix)
            self.last_known_keys = list(keys)
            return SyncResult(workflow=Workflow.LIST_AVAILABLE, success=True, keys=list(keys))

        return await self._run(Workflow.LIST_AVAILABLE, body, on_complete, prefix=prefix)

    @log_execution_time
    async def download_and_apply(
        self,
        config: SyncConfig,
        key: str,
        target_dir: Optional[str] = None,
        on_complete: Optional[CompletionCallback] = None
    ) -> SyncResult:
        """Download ``key`` to ``target_dir/key`` and apply it to the working tree.

        A failed download never reaches the apply step. Keys that would land
        outside ``target_dir`` are rejected before anything is fetched.
        """
        async def body() -> SyncResult:
            target = Path(target_dir or config.repo_path).resolve()
            if not target.is_dir():
                raise ConfigError(f"Invalid download directory: {target}")

            # Keys come from the bucket; they must stay inside the target.
            local_path = (target / key).resolve()
            if target not in local_path.parents:
                raise ConfigError(f"Key {key!r} resolves outside {target}")

            store = self.store_factory(config)
            async with store:
                data = await store.get_object(key)

            await self._in_executor(self._write_patch, local_path, data)
            await self._in_executor(self.patch_applier.apply, local_path, config.repo_path)

            return SyncResult(
                workflow=Workflow.DOWNLOAD_AND_APPLY,
                success=True,
                key=key,
                local_path=str(local_path)
            )

        return await self._run(Workflow.DOWNLOAD_AND_APPLY, body, on_complete, key=key)

    @log_execution_time
    async def delete(
        self,
        config: SyncConfig,
        key: str,
        on_complete: Optional[CompletionCallback] = None
    ) -> SyncResult:
        """Delete ``key`` from the bucket. Absent keys delete successfully."""
        async def body() -> SyncResult:
            store = self.store_factory(config)
            async with store:
                await store.delete_object(key)
            if key in self.last_known_keys:
                self.last_known_keys.remove(key)
            return SyncResult(workflow=Workflow.DELETE, success=True, key=key)

        return await self._run(Workflow.DELETE, body, on_complete, key=key)

    @log_execution_time
    async def changed_files(
        self,
        config: SyncConfig,
        on_complete: Optional[CompletionCallback] = None
    ) -> SyncResult:
        """List modified paths in the working tree, for building a selection."""
        async def body() -> SyncResult:
            changed = await self._in_executor(self.diff_runner.changed_files, config.repo_path)
            return SyncResult(workflow=Workflow.CHANGED_FILES, success=True, keys=changed)

        return await self._run(Workflow.CHANGED_FILES, body, on_complete)

    @staticmethod
    def _write_patch(local_path: Path, data: bytes) -> None:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_bytes(data)

    def get_info(self) -> Dict[str, Any]:
        return {
            "last_known_keys": list(self.last_known_keys),
            "patch_extension": self.diff_runner.extension,
            "max_workers": self.max_workers
        }
