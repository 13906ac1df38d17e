"""
Process-spawn boundary.

The pipeline's only side effect is "run an executable with argv, capture its
output". It is isolated here so tests can substitute a recording runner.

Design rules:
- No shell: the executable and argv come from the tokenizer verbatim
- stdout and stderr are captured separately
- No timeout; a hung command blocks its run
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import List

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class CommandOutput(BaseModel):
    """Captured result of one process invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandRunner(ABC):
    """Runs one external command and captures its output."""

    @abstractmethod
    def run(self, executable: str, args: List[str]) -> CommandOutput:
        """
        Run executable with args.

        Returns:
            CommandOutput with exit status and captured streams

        Raises:
            OSError: If the process cannot be spawned
        """
        pass


class SubprocessRunner(CommandRunner):
    """Default runner backed by subprocess.run."""

    def run(self, executable: str, args: List[str]) -> CommandOutput:
        logger.debug(f"Invoking command {executable} with arguments {args}")
        proc = subprocess.run(
            [executable, *args],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
        )
        return CommandOutput(
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
