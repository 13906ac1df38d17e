"""
Pipeline engine: templated variables and sequential external-command steps.

Public API:
    Pipeline, Step, Variable: Definition models
    Template: Delimited substitution template
    tokenize, split_command: Command-line tokenizer
    coerce_scalar, format_scalar: Scalar conversion
    CommandRunner, SubprocessRunner: Process-spawn boundary
"""

from .errors import (
    PipelineError,
    TemplateCompileError,
    TemplateEvalError,
    StepExecutionError,
)
from .models import Pipeline, Step, Variable
from .results import PipelineResult, StepResult
from .runner import CommandOutput, CommandRunner, SubprocessRunner
from .template import Template
from .tokenizer import split_command, tokenize
from .values import Context, Scalar, coerce_scalar, format_scalar

__all__ = [
    # Errors
    "PipelineError",
    "TemplateCompileError",
    "TemplateEvalError",
    "StepExecutionError",
    # Models
    "Pipeline",
    "Step",
    "Variable",
    "PipelineResult",
    "StepResult",
    # Execution
    "CommandOutput",
    "CommandRunner",
    "SubprocessRunner",
    # Templates and values
    "Template",
    "tokenize",
    "split_command",
    "Context",
    "Scalar",
    "coerce_scalar",
    "format_scalar",
]
