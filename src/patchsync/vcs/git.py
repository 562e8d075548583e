"""git-backed VersionControl implementation."""

import subprocess
from pathlib import Path
from typing import List, Sequence

from .base import CommandOutput, VersionControl
from ..errors import ProcessError
from ..utils.logging import get_logger


class GitCollaborator(VersionControl):
    """Runs the git CLI. Every call blocks until git exits."""

    def __init__(self, executable: str = "git", timeout_seconds: float = 120.0):
        self.executable = executable
        self.timeout_seconds = timeout_seconds
        self.logger = get_logger(self.__class__.__name__)

    def _run(self, args: List[str], working_dir: Path) -> CommandOutput:
        command = [self.executable, *args]
        self.logger.debug("Running git", args=args, cwd=str(working_dir))

        try:
            completed = subprocess.run(
                command,
                cwd=str(working_dir),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout_seconds
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessError(
                f"git {args[0]} timed out after {self.timeout_seconds}s"
            ) from e
        except OSError as e:
            raise ProcessError(f"Could not start {self.executable}: {e}") from e

        return CommandOutput(
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            returncode=completed.returncode
        )

    def diff(self, working_dir: Path, paths: Sequence[str], output_path: Path) -> CommandOutput:
        args = ["diff", "HEAD", f"--output={output_path}"]
        if paths:
            args.append("--")
            args.extend(paths)
        return self._run(args, working_dir)

    def apply(self, working_dir: Path, patch_path: Path) -> CommandOutput:
        return self._run(["apply", str(patch_path)], working_dir)

    def status(self, working_dir: Path) -> CommandOutput:
        return self._run(["status", "--porcelain"], working_dir)
