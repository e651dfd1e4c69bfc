"""Tests for the generator facade (stackgen.core.generator).

Covers:
- Target directory policies: error, merge, overwrite, increment
- Invalid configuration and unusable targets become failed results
- Run state machine and re-entrancy guard
- Priority ordering and can_handle gating through a full run
- ModularGenerator registers the standard plugin set
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import RecordingPlugin, failing, noop, writer
from stackgen.core.generator import BaseGenerator, ModularGenerator
from stackgen.core.stages import RunState, Stage
from stackgen.errors import PluginExecutionError, ValidationError
from stackgen.plugins import standard_plugins

pytestmark = pytest.mark.unit


@pytest.fixture
def generator(settings) -> BaseGenerator:
    return BaseGenerator(settings=settings)


# ---------------------------------------------------------------------------
# Target directory
# ---------------------------------------------------------------------------


class TestPrepareTarget:
    def test_creates_missing_directory(self, generator, make_config, tmp_path: Path):
        project_dir, data = generator.prepare_target(make_config())
        assert project_dir == (tmp_path / "test-project").resolve()
        assert project_dir.is_dir()
        assert data == {"preexisting": set(), "created_project_dir": True}

    def test_empty_existing_directory_is_used(self, generator, make_config, tmp_project_dir: Path):
        project_dir, data = generator.prepare_target(make_config())
        assert project_dir == tmp_project_dir.resolve()
        assert data["created_project_dir"] is False

    def test_error_policy_rejects_non_empty(self, generator, make_config, tmp_project_dir: Path):
        (tmp_project_dir / "keep.txt").write_text("x", encoding="utf-8")
        with pytest.raises(ValidationError, match="not empty"):
            generator.prepare_target(make_config(directory_conflict="error"))

    def test_regular_file_target_rejected(self, generator, make_config, tmp_path: Path):
        (tmp_path / "test-project").write_text("file", encoding="utf-8")
        with pytest.raises(ValidationError, match="not a directory"):
            generator.prepare_target(make_config(directory_conflict="merge"))

    def test_merge_keeps_files_and_reports_them(self, generator, make_config, tmp_project_dir: Path):
        (tmp_project_dir / "notes").mkdir()
        (tmp_project_dir / "notes" / "a.md").write_text("a", encoding="utf-8")
        project_dir, data = generator.prepare_target(make_config(directory_conflict="merge"))
        assert (project_dir / "notes" / "a.md").read_text(encoding="utf-8") == "a"
        assert data["preexisting"] == {"notes/a.md"}
        assert data["created_project_dir"] is False

    def test_overwrite_empties_directory(self, generator, make_config, tmp_project_dir: Path):
        (tmp_project_dir / "old").mkdir()
        (tmp_project_dir / "old" / "a.txt").write_text("a", encoding="utf-8")
        (tmp_project_dir / "b.txt").write_text("b", encoding="utf-8")
        project_dir, data = generator.prepare_target(make_config(directory_conflict="overwrite"))
        assert list(project_dir.iterdir()) == []
        assert data["preexisting"] == set()

    def test_increment_picks_free_sibling(self, generator, make_config, tmp_path: Path, tmp_project_dir: Path):
        (tmp_project_dir / "a.txt").write_text("a", encoding="utf-8")
        (tmp_path / "test-project-1").mkdir()
        project_dir, data = generator.prepare_target(make_config(directory_conflict="increment"))
        assert project_dir.name == "test-project-2"
        assert data["created_project_dir"] is True
        assert (tmp_project_dir / "a.txt").exists()


# ---------------------------------------------------------------------------
# generate()
# ---------------------------------------------------------------------------


class TestGenerate:
    @pytest.mark.asyncio
    async def test_successful_run(self, generator, make_config):
        generator.register_plugin(RecordingPlugin("w", {Stage.GENERATE: writer("hello.txt", "hi")}))
        result = await generator.generate(make_config())
        assert result.success is True
        assert result.file_paths == ["hello.txt"]
        assert generator.state is RunState.COMPLETED
        assert (result.project_dir / "hello.txt").read_text(encoding="utf-8") == "hi"

    @pytest.mark.asyncio
    async def test_accepts_plain_dict(self, generator, tmp_path: Path):
        result = await generator.generate(
            {"projectName": "dict-app", "projectDir": str(tmp_path / "dict-app"), "git": False, "install": False}
        )
        assert result.success is True
        assert result.project_dir == (tmp_path / "dict-app").resolve()

    @pytest.mark.asyncio
    async def test_invalid_config_becomes_failed_result(self, generator):
        result = await generator.generate({"projectName": "app", "backend": "rails"})
        assert result.success is False
        assert isinstance(result.error, ValidationError)
        assert result.project_dir is None
        assert generator.state is RunState.FAILED

    @pytest.mark.asyncio
    async def test_non_empty_dir_fails_before_any_write(self, generator, make_config, tmp_project_dir: Path):
        (tmp_project_dir / "existing.txt").write_text("x", encoding="utf-8")
        plugin = RecordingPlugin("w", {Stage.INIT: writer("new.txt", "n")})
        generator.register_plugin(plugin)

        result = await generator.generate(make_config())

        assert result.success is False
        assert isinstance(result.error, ValidationError)
        assert plugin.calls == []
        assert sorted(p.name for p in tmp_project_dir.iterdir()) == ["existing.txt"]

    @pytest.mark.asyncio
    async def test_overwrite_replaces_colliding_files(self, generator, make_config, tmp_project_dir: Path):
        (tmp_project_dir / "hello.txt").write_text("old", encoding="utf-8")
        (tmp_project_dir / "stale.txt").write_text("stale", encoding="utf-8")
        generator.register_plugin(RecordingPlugin("w", {Stage.GENERATE: writer("hello.txt", "new")}))

        result = await generator.generate(make_config(directory_conflict="overwrite"))

        assert result.success is True
        assert (tmp_project_dir / "hello.txt").read_text(encoding="utf-8") == "new"
        assert not (tmp_project_dir / "stale.txt").exists()

    @pytest.mark.asyncio
    async def test_merge_preserves_untouched_files(self, generator, make_config, tmp_project_dir: Path):
        (tmp_project_dir / "mine.txt").write_text("mine", encoding="utf-8")
        generator.register_plugin(RecordingPlugin("w", {Stage.GENERATE: writer("hello.txt", "new")}))

        result = await generator.generate(make_config(directory_conflict="merge"))

        assert result.success is True
        assert (tmp_project_dir / "mine.txt").read_text(encoding="utf-8") == "mine"
        assert result.file_paths == ["hello.txt"]

    @pytest.mark.asyncio
    async def test_increment_writes_to_new_directory(self, generator, make_config, tmp_path: Path, tmp_project_dir: Path):
        (tmp_project_dir / "existing.txt").write_text("x", encoding="utf-8")
        generator.register_plugin(RecordingPlugin("w", {Stage.GENERATE: writer("hello.txt", "hi")}))

        result = await generator.generate(make_config(directory_conflict="increment"))

        assert result.success is True
        assert result.project_dir.name == "test-project-1"
        assert (tmp_path / "test-project-1" / "hello.txt").exists()
        assert not (tmp_project_dir / "hello.txt").exists()

    @pytest.mark.asyncio
    async def test_compatibility_warnings_carried(self, generator, make_config):
        result = await generator.generate(make_config(frontend=["nextjs"], backend="express"))
        assert result.success is True
        assert any("Next.js" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_fatal_plugin_failure(self, generator, make_config):
        generator.register_plugin(RecordingPlugin("bad", {Stage.GENERATE: failing()}))
        result = await generator.generate(make_config())
        assert result.success is False
        assert isinstance(result.error, PluginExecutionError)
        assert generator.state is RunState.FAILED

    @pytest.mark.asyncio
    async def test_priority_ordering_last_writer_wins(self, generator, make_config):
        generator.register_plugins(
            [
                RecordingPlugin("p2", {Stage.GENERATE: writer("shared.txt", "P2")}, priority=20),
                RecordingPlugin("p1", {Stage.GENERATE: writer("shared.txt", "P1")}, priority=10),
            ]
        )
        result = await generator.generate(make_config())
        assert (result.project_dir / "shared.txt").read_text(encoding="utf-8") == "P2"
        generate_order = [name for stage, name in result.executions if stage is Stage.GENERATE]
        assert generate_order == ["p1", "p2"]
        assert result.files[0].plugin == "p2"

    @pytest.mark.asyncio
    async def test_can_handle_gating(self, generator, make_config):
        generator.register_plugins(
            [
                RecordingPlugin("on", {Stage.GENERATE: writer("on.txt", "on")}),
                RecordingPlugin("off", {Stage.GENERATE: writer("off.txt", "off")}, applies=False),
            ]
        )
        result = await generator.generate(make_config())
        assert result.files_by_plugin("off") == []
        assert "off.txt" not in result.file_paths
        assert all(name != "off" for _, name in result.executions)

    @pytest.mark.asyncio
    async def test_generator_is_reusable(self, generator, make_config, tmp_path: Path):
        generator.register_plugin(RecordingPlugin("w", {Stage.GENERATE: writer("a.txt", "a")}))
        first = await generator.generate(make_config(project_dir=tmp_path / "one"))
        second = await generator.generate(make_config(project_dir=tmp_path / "two"))
        assert first.success and second.success
        assert first.project_dir != second.project_dir

    @pytest.mark.asyncio
    async def test_rejects_concurrent_runs(self, generator, make_config, tmp_path: Path):
        started = asyncio.Event()
        release = asyncio.Event()

        async def block(plugin, context):
            started.set()
            await release.wait()

        generator.register_plugin(RecordingPlugin("slow", {Stage.INIT: block}))
        task = asyncio.create_task(generator.generate(make_config()))
        await started.wait()
        assert generator.state is RunState.RUNNING_PIPELINE

        with pytest.raises(RuntimeError, match="already running"):
            await generator.generate(make_config(project_dir=tmp_path / "other"))

        release.set()
        result = await task
        assert result.success is True
        assert generator.state is RunState.COMPLETED


# ---------------------------------------------------------------------------
# ModularGenerator
# ---------------------------------------------------------------------------


class TestModularGenerator:
    def test_registers_standard_plugins(self, settings):
        generator = ModularGenerator(settings=settings)
        expected = [plugin.name for plugin in standard_plugins()]
        assert [plugin.name for plugin in generator.manager.plugins] == expected

    def test_tie_break_from_settings(self, settings):
        generator = ModularGenerator(settings=settings.model_copy(update={"tie_break": "name"}))
        assert generator.manager.tie_break == "name"

    def test_standard_plugin_names_are_unique(self):
        names = [plugin.name for plugin in standard_plugins()]
        assert len(names) == len(set(names))
