"""
Pipeline error hierarchy.

Compile errors are raised at startup and are fatal (deployment error).
Evaluation and execution errors abort the current run only; the watcher
keeps polling for other groups.
"""

from typing import Optional


class PipelineError(Exception):
    """
    Base exception for pipeline failures.

    Carries the diagnostic text collected so far (captured command output),
    which is empty for errors raised before any command ran.
    """

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class TemplateCompileError(PipelineError):
    """A Variable or Command template could not be compiled."""

    pass


class TemplateEvalError(PipelineError):
    """
    A compiled template failed to render against a context.

    Raised when a template references a name absent from the context.
    """

    pass


class StepExecutionError(PipelineError):
    """
    A step's command could not be run or exited non-zero.

    Covers:
    - Empty command line (zero tokens after rendering)
    - Executable not found / not executable
    - Non-zero exit status (output holds stdout followed by stderr)
    """

    def __init__(
        self,
        message: str,
        step: str,
        output: str = "",
        exit_code: Optional[int] = None,
    ):
        super().__init__(message, output)
        self.step = step
        self.exit_code = exit_code
