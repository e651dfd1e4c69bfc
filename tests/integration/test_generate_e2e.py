"""End-to-end generation with the standard plugin set.

Each test runs ``ModularGenerator`` against a temporary directory using the
bundled templates.  git and the package manager are mocked, so no external
tools are required.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from conftest import RecordingPlugin, failing
from stackgen.core.generator import ModularGenerator
from stackgen.core.stages import RunState, Stage
from stackgen.errors import PluginExecutionError

pytestmark = pytest.mark.integration


def snapshot(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def generator(settings) -> ModularGenerator:
    return ModularGenerator(settings=settings)


class TestFullStack:
    async def test_react_express_project(self, generator, make_config):
        config = make_config(frontend=["react"], backend="express", git=True)

        with patch("stackgen.plugins.git.shutil.which", return_value="/usr/bin/git"), \
                patch("stackgen.plugins.git.run_command", new=AsyncMock(return_value=(0, "", ""))) as git:
            result = await generator.generate(config)

        assert result.success is True, result.error
        assert result.state is RunState.COMPLETED
        assert generator.state is RunState.COMPLETED
        assert result.warnings == ()
        git.assert_awaited_once()

        root = result.project_dir
        for rel in (
            "package.json",
            "index.js",
            "README.md",
            ".gitignore",
            "frontend/index.html",
            "frontend/src/App.jsx",
            "backend/server.js",
            "backend/.env",
            "backend/.env.example",
        ):
            assert rel in result.file_paths, rel
            assert (root / rel).is_file(), rel

        manifest = json.loads((root / "package.json").read_text(encoding="utf-8"))
        assert manifest["name"] == "test-project"
        assert "express" in manifest["dependencies"]
        assert "react" in manifest["dependencies"]
        assert manifest["scripts"]["dev"] == 'concurrently "npm:dev:*"'

        assert result.files_by_plugin("package-json") == ["package.json"]
        assert "backend/server.js" in result.files_by_plugin("integration")
        assert result.executions.count((Stage.POST_GENERATE, "git")) == 1
        assert list(result.stage_timings) == [stage.name for stage in Stage]

    async def test_addons_and_database(self, generator, make_config):
        config = make_config(
            frontend=["vue"],
            backend="hono",
            runtime="node",
            database="postgres",
            orm="drizzle",
            addons=["docker", "vitest", "husky"],
        )
        result = await generator.generate(config)

        assert result.success is True, result.error
        root = result.project_dir
        assert (root / "docker-compose.yml").is_file()
        assert (root / "drizzle.config.js").is_file()
        assert (root / "backend" / "src" / "index.js").is_file()
        manifest = json.loads((root / "package.json").read_text(encoding="utf-8"))
        assert manifest["scripts"]["test"] == "vitest run"
        assert manifest["scripts"]["prepare"] == "husky"
        assert "drizzle-orm" in manifest["dependencies"]
        readme = (root / "README.md").read_text(encoding="utf-8")
        assert "| `test` | `vitest run` |" in readme

    async def test_output_is_deterministic(self, generator, make_config, tmp_path: Path):
        def config(name: str):
            return make_config(
                project_dir=tmp_path / name,
                frontend=["react"],
                backend="express",
                addons=["biome", "docker"],
            )

        with patch("stackgen.plugins.formatter.run_command", new=AsyncMock(return_value=(0, "", ""))):
            first = await generator.generate(config("one"))
            second = await generator.generate(config("two"))

        assert first.success and second.success
        assert first.file_paths == second.file_paths
        assert snapshot(first.project_dir) == snapshot(second.project_dir)


class TestFailureHandling:
    async def test_missing_package_manager_is_a_warning(self, generator, make_config):
        with patch("stackgen.plugins.dependencies.shutil.which", return_value=None):
            result = await generator.generate(make_config(install=True))

        assert result.success is True
        assert len(result.warnings) == 1
        assert "dependencies" in result.warnings[0]
        assert "not found" in result.warnings[0]
        assert (result.project_dir / "README.md").is_file()
        assert (Stage.CLEANUP, "cleanup") in result.executions

    async def test_fatal_failure_rolls_back(self, generator, make_config, tmp_path: Path):
        generator.register_plugin(RecordingPlugin("strict", {Stage.VALIDATE: failing("rejected")}))

        result = await generator.generate(make_config())

        assert result.success is False
        assert result.state is RunState.FAILED
        assert isinstance(result.error, PluginExecutionError)
        assert result.error.plugin == "strict"
        assert result.error.stage is Stage.VALIDATE
        assert not (tmp_path / "test-project").exists()

    async def test_can_handle_error_rolls_back(self, generator, make_config, tmp_path: Path):
        class Gate(RecordingPlugin):
            def can_handle(self, context):
                return context.data["not_there"] > 0

        generator.register_plugin(Gate("gate", {Stage.VALIDATE: failing()}))

        result = await generator.generate(make_config())

        assert result.success is False
        assert isinstance(result.error, PluginExecutionError)
        assert isinstance(result.error.cause, KeyError)
        assert (Stage.CLEANUP, "cleanup") in result.executions
        assert "package.json" in result.file_paths
        assert not (tmp_path / "test-project").exists()

    async def test_rollback_keeps_merged_files(self, generator, make_config, tmp_project_dir: Path):
        (tmp_project_dir / "notes.md").write_text("keep me", encoding="utf-8")
        generator.register_plugin(RecordingPlugin("strict", {Stage.VALIDATE: failing()}))

        result = await generator.generate(make_config(directory_conflict="merge"))

        assert result.success is False
        assert sorted(p.name for p in tmp_project_dir.iterdir()) == ["notes.md"]


class TestMerge:
    async def test_existing_readme_and_files_survive(self, generator, make_config, tmp_project_dir: Path):
        (tmp_project_dir / "README.md").write_text("# Mine\n", encoding="utf-8")
        (tmp_project_dir / "docs").mkdir()
        (tmp_project_dir / "docs" / "guide.md").write_text("guide", encoding="utf-8")

        result = await generator.generate(make_config(directory_conflict="merge"))

        assert result.success is True, result.error
        assert (tmp_project_dir / "README.md").read_text(encoding="utf-8") == "# Mine\n"
        assert (tmp_project_dir / "docs" / "guide.md").read_text(encoding="utf-8") == "guide"
        assert "README.md" not in result.file_paths
        assert (tmp_project_dir / "package.json").is_file()
