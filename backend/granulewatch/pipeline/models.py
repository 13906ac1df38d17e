"""
Pipeline definition models.

A pipeline is an ordered list of Variables followed by an ordered list of
Steps. It is usually loaded from the watcher configuration:

    Pipeline:
      Variables:
        Tiff: ((.OutputDir))/((.Id)).tif
        Threshold: 0.5
      Steps:
        - viirs_detect ((.SVDNB)) ((.Tiff))
        - Name: fit
          Variables:
            Threshold: 0.7
            Log: ((.OutputDir))/((.Id)).log
          Command: viirs_fit -t ((.Threshold)) -l ((.Log)) ((.Tiff))

Context propagation between steps:
- Pipeline Variables are written into the shared context once per run.
- Each Step evaluates its own Variables into a copy of the shared context.
- Keys that already existed in the shared context take the step's value
  for the remainder of the run. Keys the step introduced are dropped
  after the step.

All models use Pydantic. Keys keep the capitalised spelling of the
configuration document; Python code may also use the field names.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)

from .errors import StepExecutionError
from .results import PipelineResult, StepResult
from .runner import CommandRunner, SubprocessRunner
from .template import LEFT_DELIM, RIGHT_DELIM, Template
from .tokenizer import split_command
from .values import Context, Scalar, coerce_scalar

logger = logging.getLogger(__name__)

Delims = Tuple[str, str]
DEFAULT_DELIMS: Delims = (LEFT_DELIM, RIGHT_DELIM)


def _variables_from_mapping(value: Any) -> Any:
    """Accept an ordered name -> value mapping in place of a list."""
    if isinstance(value, dict):
        variables = []
        for name, raw in value.items():
            if not isinstance(name, str):
                raise ValueError(f"Variable name not a string: {name!r}")
            variables.append({"Name": name, "Value": raw})
        return variables
    if value is None:
        return []
    return value


class Variable(BaseModel):
    """
    A named value evaluated into a context.

    String values are templates: they are rendered and the result coerced
    to bool, int, float or str. Non-string values are used unchanged.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., alias="Name")
    value: Union[StrictBool, StrictInt, StrictFloat, StrictStr] = Field(
        ..., alias="Value"
    )

    _template: Optional[Template] = PrivateAttr(default=None)

    def prepare(self, delims: Delims = DEFAULT_DELIMS) -> None:
        """
        Compile the value template (string values only).

        Raises:
            TemplateCompileError: If the template is malformed
        """
        if isinstance(self.value, str):
            self._template = Template.compile(self.name, self.value, delims)
        else:
            self._template = None

    def evaluate(self, context: Context) -> Scalar:
        """
        Evaluate against a context.

        Raises:
            TemplateEvalError: If the template references a missing name
        """
        if not isinstance(self.value, str):
            return self.value
        if self._template is None:
            self.prepare()
        return coerce_scalar(self._template.render(context))


class Step(BaseModel):
    """
    One external command with optional local Variables.

    A bare string is shorthand for a step with only a Command.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(default="", alias="Name")
    variables: List[Variable] = Field(default_factory=list, alias="Variables")
    command: str = Field(..., alias="Command")

    _command_template: Optional[Template] = PrivateAttr(default=None)
    _delims: Delims = PrivateAttr(default=DEFAULT_DELIMS)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_command(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"Command": data}
        return data

    @field_validator("variables", mode="before")
    @classmethod
    def accept_variable_mapping(cls, value: Any) -> Any:
        return _variables_from_mapping(value)

    def prepare(self, delims: Delims = DEFAULT_DELIMS) -> None:
        """
        Compile local Variables and the Command template.

        Raises:
            TemplateCompileError: If any template is malformed
        """
        self._delims = delims
        for variable in self.variables:
            variable.prepare(delims)
        self._command_template = Template.compile(
            self.name or self.command, self.command, delims
        )

    def eval_variables(self, context: Context) -> Context:
        """
        Evaluate local Variables into a copy of the shared context.

        Later Variables see earlier ones. Every key already present in the
        shared context is then overwritten with the copy's value, so step
        redefinitions of existing keys persist; new keys stay local.

        Returns:
            The step-local context
        """
        local: Context = dict(context)
        for variable in self.variables:
            local[variable.name] = variable.evaluate(local)
        for key in context:
            context[key] = local[key]
        return local

    def execute(
        self,
        context: Context,
        runner: Optional[CommandRunner] = None,
    ) -> StepResult:
        """
        Run this step against the shared context.

        Returns:
            StepResult for the completed command

        Raises:
            TemplateEvalError: If a Variable or the Command fails to render
            StepExecutionError: If the command is empty, cannot be started
                or exits non-zero
        """
        if self._command_template is None:
            self.prepare(self._delims)
        runner = runner or SubprocessRunner()

        local = self.eval_variables(context)
        command = self._command_template.render(local)
        executable, args = split_command(command)
        if not executable:
            raise StepExecutionError(
                f"step {self.name!r}: command is empty", step=self.name
            )

        started_at = datetime.now()
        try:
            out = runner.run(executable, args)
        except OSError as e:
            raise StepExecutionError(
                f"step {self.name!r}: failed to start {executable}: {e}",
                step=self.name,
            ) from e

        if out.returncode != 0:
            raise StepExecutionError(
                f"step {self.name!r}: {executable} exited with status {out.returncode}",
                step=self.name,
                output=f"{out.stdout}\n{out.stderr}",
                exit_code=out.returncode,
            )

        return StepResult(
            name=self.name,
            command=command,
            executable=executable,
            args=args,
            returncode=out.returncode,
            output=out.stdout,
            started_at=started_at,
            completed_at=datetime.now(),
        )


class Pipeline(BaseModel):
    """
    Ordered Variables and Steps run against one context.

    Call `prepare()` once at startup so template errors surface before the
    watcher starts polling.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    variables: List[Variable] = Field(default_factory=list, alias="Variables")
    steps: List[Step] = Field(default_factory=list, alias="Steps")
    delimiters: Tuple[str, str] = Field(default=DEFAULT_DELIMS, alias="Delimiters")

    _prepared: bool = PrivateAttr(default=False)

    @field_validator("variables", mode="before")
    @classmethod
    def accept_variable_mapping(cls, value: Any) -> Any:
        return _variables_from_mapping(value)

    @field_validator("steps", mode="before")
    @classmethod
    def accept_missing_steps(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("delimiters")
    @classmethod
    def validate_delimiters(cls, value: Tuple[str, str]) -> Tuple[str, str]:
        left, right = value
        if not left or not right:
            raise ValueError("Delimiters must be two non-empty strings")
        return value

    @model_validator(mode="after")
    def name_unnamed_steps(self) -> "Pipeline":
        for index, step in enumerate(self.steps, start=1):
            if not step.name:
                step.name = f"step-{index}"
        return self

    def prepare(self) -> None:
        """
        Compile every Variable and Step template.

        Raises:
            TemplateCompileError: If any template is malformed
        """
        for variable in self.variables:
            variable.prepare(self.delimiters)
        for step in self.steps:
            step.prepare(self.delimiters)
        self._prepared = True

    def eval_variables(self, context: Context) -> Context:
        """
        Evaluate pipeline Variables in order, writing into context in place.

        Returns:
            The same context object
        """
        for variable in self.variables:
            context[variable.name] = variable.evaluate(context)
        return context

    def execute(
        self,
        context: Context,
        runner: Optional[CommandRunner] = None,
    ) -> PipelineResult:
        """
        Run the pipeline.

        The context is mutated; pass a fresh mapping for each run. Steps run
        strictly in order and the first failure stops the run.

        Raises:
            PipelineError: The first evaluation or execution failure
        """
        if not self._prepared:
            self.prepare()
        runner = runner or SubprocessRunner()
        self.eval_variables(context)

        result = PipelineResult()
        for step in self.steps:
            logger.debug(f"Running step {step.name}")
            result.steps.append(step.execute(context, runner))
        return result
