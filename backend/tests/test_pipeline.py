"""
Tests for pipeline Variables, Steps and sequential execution.

These tests verify:
1. Variable values are rendered and coerced; non-strings pass through
2. Pipeline Variables see earlier Variables and the seed context
3. Step redefinitions of existing keys persist; new step keys do not
4. Steps run strictly in order and the first failure stops the run
5. Failures carry the captured command output
6. Definitions load from configuration-shaped mappings
"""

import shutil
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).parent.parent))

from granulewatch.pipeline import (
    CommandOutput,
    CommandRunner,
    Pipeline,
    Step,
    StepExecutionError,
    SubprocessRunner,
    TemplateCompileError,
    TemplateEvalError,
    Variable,
)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

class RecordingRunner(CommandRunner):
    """Records every invocation; exit status is looked up by executable."""

    def __init__(self, returncodes: Optional[Dict[str, int]] = None, missing: tuple = ()):
        self.calls: List[List[str]] = []
        self.returncodes = returncodes or {}
        self.missing = missing

    def run(self, executable: str, args: List[str]) -> CommandOutput:
        if executable in self.missing:
            raise FileNotFoundError(2, "No such file or directory", executable)
        self.calls.append([executable, *args])
        code = self.returncodes.get(executable, 0)
        return CommandOutput(
            returncode=code,
            stdout=f"{executable} stdout",
            stderr=f"{executable} stderr" if code else "",
        )


def make_pipeline(data) -> Pipeline:
    pipeline = Pipeline.model_validate(data)
    pipeline.prepare()
    return pipeline


# -----------------------------------------------------------------------------
# Variables
# -----------------------------------------------------------------------------

class TestVariable:
    """Tests for Variable evaluation."""

    def test_string_value_is_coerced(self):
        variable = Variable(name="X", value="((.A))")
        assert variable.evaluate({"A": 42}) == 42
        assert variable.evaluate({"A": "true"}) is True
        assert variable.evaluate({"A": "x"}) == "x"

    def test_non_string_value_passes_through(self):
        assert Variable(name="X", value=0.5).evaluate({}) == 0.5
        assert Variable(name="X", value=7).evaluate({}) == 7
        assert Variable(name="X", value=False).evaluate({}) is False

    def test_missing_reference(self):
        variable = Variable(name="X", value="((.Nope))")
        with pytest.raises(TemplateEvalError):
            variable.evaluate({})

    def test_aliases(self):
        variable = Variable.model_validate({"Name": "Tiff", "Value": "((.Id)).tif"})
        assert variable.name == "Tiff"
        assert variable.evaluate({"Id": "g1"}) == "g1.tif"

    def test_rejects_list_value(self):
        with pytest.raises(ValidationError):
            Variable.model_validate({"Name": "X", "Value": [1, 2]})


class TestPipelineVariables:
    """Tests for Pipeline.eval_variables()."""

    def test_later_variables_see_earlier(self):
        pipeline = make_pipeline({"Variables": {"A": "a", "B": "((.A))b", "C": "((.B))((.Id))"}})
        context = pipeline.eval_variables({"Id": "1"})
        assert context == {"Id": "1", "A": "a", "B": "ab", "C": "ab1"}

    def test_list_form(self):
        pipeline = make_pipeline(
            {"Variables": [{"Name": "A", "Value": 1}, {"Name": "B", "Value": "((.A))"}]}
        )
        assert pipeline.eval_variables({}) == {"A": 1, "B": True}

    def test_variable_can_override_seed(self):
        pipeline = make_pipeline({"Variables": {"OutputDir": "((.OutputDir))/sub"}})
        assert pipeline.eval_variables({"OutputDir": "/out"})["OutputDir"] == "/out/sub"


# -----------------------------------------------------------------------------
# Steps
# -----------------------------------------------------------------------------

class TestStepVariables:
    """Tests for step-local Variables."""

    def test_existing_keys_persist_new_keys_do_not(self):
        step = Step.model_validate(
            {"Variables": {"X": 2, "Y": 9}, "Command": "echo ((.X)) ((.Y))"}
        )
        step.prepare()
        context = {"X": 1}
        local = step.eval_variables(context)

        assert local == {"X": 2, "Y": 9}
        assert context == {"X": 2}

    def test_local_variables_see_each_other(self):
        step = Step.model_validate(
            {"Variables": {"A": "((.Id))", "B": "((.A)).tif"}, "Command": "x"}
        )
        local = step.eval_variables({"Id": "g"})
        assert local["B"] == "g.tif"


class TestStepExecute:
    """Tests for Step.execute()."""

    def test_bare_string_step(self):
        step = Step.model_validate("viirs_detect ((.SVDNB)) '((.Out))'")
        runner = RecordingRunner()
        result = step.execute({"SVDNB": "/d/a b.h5", "Out": "/o/x y"}, runner)

        # Rendered text is tokenized; unquoted whitespace from values splits
        assert runner.calls == [["viirs_detect", "/d/a", "b.h5", "/o/x y"]]
        assert result.executable == "viirs_detect"
        assert result.output == "viirs_detect stdout"
        assert result.duration_seconds() is not None

    def test_empty_command(self):
        step = Step.model_validate({"Name": "blank", "Command": "((.Cmd))"})
        runner = RecordingRunner()
        with pytest.raises(StepExecutionError, match="empty") as excinfo:
            step.execute({"Cmd": ""}, runner)
        assert excinfo.value.step == "blank"
        assert runner.calls == []

    def test_spawn_failure(self):
        step = Step.model_validate("no_such_tool arg")
        with pytest.raises(StepExecutionError, match="failed to start") as excinfo:
            step.execute({}, RecordingRunner(missing=("no_such_tool",)))
        assert excinfo.value.exit_code is None

    def test_non_zero_exit_carries_output(self):
        step = Step.model_validate({"Name": "fit", "Command": "viirs_fit"})
        with pytest.raises(StepExecutionError) as excinfo:
            step.execute({}, RecordingRunner(returncodes={"viirs_fit": 3}))
        error = excinfo.value
        assert error.exit_code == 3
        assert error.output == "viirs_fit stdout\nviirs_fit stderr"
        assert "status 3" in str(error)

    def test_missing_reference_runs_nothing(self):
        step = Step.model_validate("run ((.Absent))")
        runner = RecordingRunner()
        with pytest.raises(TemplateEvalError):
            step.execute({}, runner)
        assert runner.calls == []

    def test_requires_command(self):
        with pytest.raises(ValidationError):
            Step.model_validate({"Name": "x"})


# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------

class TestPipelineExecute:
    """Tests for Pipeline.execute()."""

    def test_step_redefinition_leaks_forward(self):
        """X redefined by S1 is seen by S2; Y introduced by S1 is not."""
        pipeline = make_pipeline(
            {
                "Variables": {"X": 1},
                "Steps": [
                    {"Name": "S1", "Variables": {"X": 2, "Y": 9}, "Command": "s1 ((.X)) ((.Y))"},
                    {"Name": "S2", "Command": "s2 ((.X))"},
                ],
            }
        )
        runner = RecordingRunner()
        context = {}
        pipeline.execute(context, runner)

        assert runner.calls == [["s1", "2", "9"], ["s2", "2"]]
        assert context == {"X": 2}

    def test_step_local_key_invisible_to_later_steps(self):
        pipeline = make_pipeline(
            {
                "Steps": [
                    {"Variables": {"Y": 9}, "Command": "s1 ((.Y))"},
                    "s2 ((.Y))",
                ]
            }
        )
        runner = RecordingRunner()
        with pytest.raises(TemplateEvalError):
            pipeline.execute({}, runner)
        assert runner.calls == [["s1", "9"]]

    def test_first_failure_stops_run(self):
        pipeline = make_pipeline({"Steps": ["s1", "s2", "s3"]})
        runner = RecordingRunner(returncodes={"s2": 1})

        with pytest.raises(StepExecutionError) as excinfo:
            pipeline.execute({}, runner)

        assert [call[0] for call in runner.calls] == ["s1", "s2"]
        assert excinfo.value.step == "step-2"

    def test_result_lists_completed_steps(self):
        pipeline = make_pipeline({"Steps": ["s1 ((.Id))", {"Name": "last", "Command": "s2"}]})
        result = pipeline.execute({"Id": "g"}, RecordingRunner())

        assert [step.name for step in result.steps] == ["step-1", "last"]
        assert result.steps[0].args == ["g"]
        assert result.output == "s1 stdouts2 stdout"
        assert "2 step(s) completed" in result.summary()

    def test_no_steps(self):
        pipeline = make_pipeline({"Variables": {"A": 1}})
        context = {}
        result = pipeline.execute(context, RecordingRunner())
        assert result.steps == []
        assert context == {"A": 1}

    def test_custom_delimiters(self):
        pipeline = Pipeline.model_validate(
            {"Delimiters": ["{{", "}}"], "Steps": ["echo {{.Id}} ((x))"]}
        )
        runner = RecordingRunner()
        pipeline.execute({"Id": "g"}, runner)
        assert runner.calls == [["echo", "g", "((x))"]]

    def test_prepare_reports_compile_errors(self):
        pipeline = Pipeline.model_validate({"Steps": ["run ((.X"]})
        with pytest.raises(TemplateCompileError):
            pipeline.prepare()

    def test_variable_compile_error(self):
        pipeline = Pipeline.model_validate({"Variables": {"Bad": "((.a b))"}})
        with pytest.raises(TemplateCompileError):
            pipeline.prepare()

    def test_rejects_unknown_keys(self):
        with pytest.raises(ValidationError):
            Pipeline.model_validate({"Stepz": []})

    def test_rejects_empty_delimiter(self):
        with pytest.raises(ValidationError):
            Pipeline.model_validate({"Delimiters": ["", "]]"]})


@pytest.mark.skipif(shutil.which("sh") is None, reason="requires sh")
class TestSubprocessRunner:
    """Tests against real processes."""

    def test_captures_stdout(self):
        pipeline = make_pipeline({"Steps": ["sh -c 'echo ((.Id))'"]})
        result = pipeline.execute({"Id": "g1"}, SubprocessRunner())
        assert result.output == "g1\n"

    def test_failure_output_includes_stderr(self):
        pipeline = make_pipeline({"Steps": ["sh -c 'echo out; echo err >&2; exit 3'"]})
        with pytest.raises(StepExecutionError) as excinfo:
            pipeline.execute({}, SubprocessRunner())
        assert excinfo.value.exit_code == 3
        assert excinfo.value.output == "out\n\nerr\n"

    def test_missing_executable(self, tmp_path):
        missing = tmp_path / "not-installed"
        pipeline = make_pipeline({"Steps": [f"{missing} x"]})
        with pytest.raises(StepExecutionError, match="failed to start"):
            pipeline.execute({}, SubprocessRunner())
