"""Patch creation and application on top of the VersionControl collaborator.

Both operations treat any text on the tool's diagnostic stream as a failure,
even when the tool itself exited successfully. Diagnostics are stripped first,
so a stream holding only whitespace or newlines does not fail the step.

Repository roots and patch paths are resolved to absolute paths before git
runs, since git runs with the repository root as its working directory.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .base import CommandOutput, VersionControl
from ..errors import ConfigError, ProcessError
from ..utils.logging import get_logger, log_execution_time


PathLike = Union[str, Path]


@dataclass(frozen=True)
class PatchBlob:
    """A patch on local disk. ``name`` doubles as the remote key stem."""

    name: str
    path: Path
    data: bytes

    @property
    def key(self) -> str:
        return self.path.name


def _require_directory(repo_root: PathLike) -> Path:
    if not repo_root or not Path(repo_root).is_dir():
        raise ConfigError(f"Invalid repository path: {repo_root!r}")
    return Path(repo_root).resolve()


def _check_diagnostics(operation: str, output: CommandOutput) -> None:
    if output.diagnostics:
        raise ProcessError(
            f"{operation} reported: {output.diagnostics}",
            diagnostics=output.diagnostics,
            returncode=output.returncode
        )


class DiffRunner:
    """Builds patch files from the working tree."""

    def __init__(self, vcs: VersionControl, extension: str = "patch"):
        self.vcs = vcs
        self.extension = extension
        self.logger = get_logger(self.__class__.__name__)

    def patch_path(self, repo_root: PathLike, patch_name: str, extension: Optional[str] = None) -> Path:
        return Path(repo_root) / f"{patch_name}.{extension or self.extension}"

    @log_execution_time
    def build_patch(
        self,
        repo_root: PathLike,
        patch_name: str,
        selection: Iterable[str] = (),
        extension: Optional[str] = None
    ) -> PatchBlob:
        """Write a diff of ``selection`` (or everything) to ``repo_root/patch_name.ext``.

        Args:
            repo_root: Root of the working tree
            patch_name: Patch name, also the remote key stem
            selection: Repository-relative paths; empty means all changes
            extension: Patch file extension, defaults to the runner's

        Returns:
            PatchBlob with the written bytes

        Raises:
            ConfigError: If repo_root is not a directory
            ProcessError: If the tool could not run or wrote diagnostics
        """
        root = _require_directory(repo_root)
        paths = list(dict.fromkeys(selection))
        output_path = self.patch_path(root, patch_name, extension)

        self.logger.info(
            "Creating patch",
            repo_root=str(root),
            patch=output_path.name,
            selected=len(paths)
        )

        output = self.vcs.diff(root, paths, output_path)
        _check_diagnostics("diff", output)

        if not output_path.is_file():
            raise ProcessError(f"diff produced no patch file at {output_path}")

        data = output_path.read_bytes()
        self.logger.info("Patch created", path=str(output_path), size=len(data))

        return PatchBlob(name=patch_name, path=output_path, data=data)

    @log_execution_time
    def changed_files(self, repo_root: PathLike) -> List[str]:
        """List modified paths in the working tree."""
        root = _require_directory(repo_root)

        output = self.vcs.status(root)
        _check_diagnostics("status", output)

        changed = []
        for line in output.stdout.splitlines():
            # "XY path": two status columns and a separator
            if len(line) <= 3:
                continue
            changed.append(line[3:].strip())

        self.logger.info("Listed changed files", repo_root=str(root), count=len(changed))
        return changed


class PatchApplier:
    """Applies patch files to a working tree. Not transactional."""

    def __init__(self, vcs: VersionControl):
        self.vcs = vcs
        self.logger = get_logger(self.__class__.__name__)

    @log_execution_time
    def apply(self, patch_path: PathLike, repo_root: PathLike) -> None:
        """Apply ``patch_path`` inside ``repo_root``.

        Raises:
            ConfigError: If the root or the patch file does not exist
            ProcessError: If the tool could not run or wrote diagnostics
        """
        root = _require_directory(repo_root)
        patch = Path(patch_path).resolve()
        if not patch.is_file():
            raise ConfigError(f"Patch file not found: {patch}")

        self.logger.info("Applying patch", patch=str(patch), repo_root=str(root))

        output = self.vcs.apply(root, patch)
        _check_diagnostics("apply", output)

        self.logger.info("Patch applied", patch=patch.name)
