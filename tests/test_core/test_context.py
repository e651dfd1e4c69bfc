"""Tests for PluginContext and GenerationResult (stackgen.core.context)."""

from __future__ import annotations

from pathlib import Path

import pytest

from stackgen.core.context import FileRecord, GenerationResult
from stackgen.core.stages import RunState, Stage

pytestmark = pytest.mark.unit


class TestPluginContext:
    def test_record_file_relative_to_project(self, make_context, tmp_project_dir: Path):
        ctx = make_context()
        record = ctx.record_file(tmp_project_dir / "src" / "a.js", "files", Stage.GENERATE)
        assert record == FileRecord("src/a.js", "files", Stage.GENERATE, created=True)
        assert ctx.files == [record]
        assert ctx.has_file("src/a.js")

    def test_record_file_marks_preexisting(self, make_context):
        ctx = make_context()
        ctx.data["preexisting"] = {"README.md"}
        record = ctx.record_file("README.md", "readme", Stage.POST_GENERATE)
        assert record.created is False

    def test_relative_outside_project(self, make_context, tmp_path: Path):
        ctx = make_context()
        assert ctx.relative(tmp_path / "elsewhere.txt") == (tmp_path / "elsewhere.txt").as_posix()

    def test_warnings_and_errors(self, make_context):
        ctx = make_context()
        ctx.add_warning("careful")
        ctx.add_error("broken")
        assert ctx.warnings == ["careful"]
        assert ctx.errors == ["broken"]

    def test_executed_filters_by_stage(self, make_context):
        ctx = make_context()
        ctx.executions.extend([(Stage.INIT, "a"), (Stage.GENERATE, "b"), (Stage.GENERATE, "c")])
        assert ctx.executed() == ["a", "b", "c"]
        assert ctx.executed(Stage.GENERATE) == ["b", "c"]

    def test_template_dir_comes_from_settings(self, make_context, settings):
        assert make_context().template_dir == settings.template_dir

    def test_template_variables(self, make_context):
        ctx = make_context(project_name="My Shop", backend="express")
        ctx.data["backend_port"] = 4000
        ctx.data["scripts"] = {"dev": "vite"}
        variables = ctx.template_variables()
        assert variables["projectName"] == "My Shop"
        assert variables["projectSlug"] == "my-shop"
        assert variables["backendPort"] == 4000
        assert variables["scripts"] == {"dev": "vite"}
        variables["scripts"]["build"] = "x"
        assert "build" not in ctx.data["scripts"]


class TestGenerationResult:
    def test_from_context_deduplicates_paths(self, make_context):
        ctx = make_context()
        ctx.record_file("a.txt", "p1", Stage.GENERATE)
        ctx.record_file("b.txt", "p1", Stage.GENERATE)
        ctx.record_file("a.txt", "p2", Stage.POST_GENERATE)

        result = GenerationResult.from_context(ctx, stage_timings={"INIT": 0.1}, duration=1.5)

        assert result.success is True
        assert result.state is RunState.COMPLETED
        assert result.file_paths == ["a.txt", "b.txt"]
        assert result.files[0].plugin == "p2"
        assert result.files_by_plugin("p1") == ["b.txt"]
        assert result.stage_timings == {"INIT": 0.1}
        assert result.duration == 1.5

    def test_from_failed_context(self, make_context):
        ctx = make_context()
        ctx.failed = True
        ctx.error = RuntimeError("bad")
        ctx.add_warning("w")
        result = GenerationResult.from_context(ctx)
        assert result.success is False
        assert result.state is RunState.FAILED
        assert result.error_type == "RuntimeError"
        assert result.warnings == ("w",)

    def test_success_with_error_is_rejected(self):
        with pytest.raises(ValueError):
            GenerationResult(success=True, project_dir=None, error=RuntimeError("x"))

    def test_failure_factory(self, tmp_path: Path):
        err = ValueError("nope")
        result = GenerationResult.failure(err, project_dir=tmp_path, warnings=["w"])
        assert result.success is False
        assert result.error is err
        assert result.files == ()
        assert result.warnings == ("w",)
        assert result.state is RunState.FAILED

    def test_result_is_immutable(self):
        result = GenerationResult(success=True, project_dir=None)
        with pytest.raises(AttributeError):
            result.success = False

    def test_error_type_none_on_success(self):
        assert GenerationResult(success=True, project_dir=None).error_type is None


class TestRunState:
    def test_terminal_states(self):
        assert RunState.COMPLETED.is_terminal
        assert RunState.FAILED.is_terminal
        assert not RunState.RUNNING_PIPELINE.is_terminal

    def test_stage_order(self):
        assert list(Stage) == sorted(Stage)
        assert list(Stage)[-1] is Stage.CLEANUP
