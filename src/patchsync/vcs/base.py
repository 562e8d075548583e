"""Interface to the external version-control tool."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence


@dataclass(frozen=True)
class CommandOutput:
    """Captured result of one tool invocation."""

    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = 0

    @property
    def diagnostics(self) -> str:
        return self.stderr.strip()


class VersionControl(ABC):
    """The narrow set of operations patchsync needs from the VCS tool."""

    @abstractmethod
    def diff(self, working_dir: Path, paths: Sequence[str], output_path: Path) -> CommandOutput:
        """Write the working tree diff to ``output_path``.

        An empty ``paths`` means the whole tree.
        """
        pass

    @abstractmethod
    def apply(self, working_dir: Path, patch_path: Path) -> CommandOutput:
        """Apply the patch file to the working tree."""
        pass

    @abstractmethod
    def status(self, working_dir: Path) -> CommandOutput:
        """Porcelain status of the working tree."""
        pass
