"""Shared pytest fixtures for the stackgen test suite.

Provides reusable fixtures for:
- Temporary target directories
- Quiet generator settings
- ProjectConfig / PluginContext factories
- A configurable in-memory plugin for engine tests
- Mocked subprocess helpers
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from stackgen.config import GeneratorSettings, ProjectConfig
from stackgen.core.context import PluginContext
from stackgen.core.plugin import GeneratorPlugin
from stackgen.core.stages import Stage


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """An existing, empty project directory (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def template_root(tmp_path: Path) -> Path:
    """A small layered template tree for file-plugin tests."""
    root = tmp_path / "templates"
    (root / "base").mkdir(parents=True)
    (root / "base" / "_gitignore").write_text("node_modules/\n", encoding="utf-8")
    (root / "base" / "notes.txt.hbs").write_text("Project {{projectName}}\n", encoding="utf-8")
    (root / "frontend" / "react" / "src").mkdir(parents=True)
    (root / "frontend" / "react" / "src" / "App.jsx.hbs").write_text(
        "export const title = '{{projectName}}';\n", encoding="utf-8"
    )
    (root / "frontend" / "react" / "src" / "App.tsx.hbs").write_text(
        "export const title: string = '{{projectName}}';\n", encoding="utf-8"
    )
    (root / "backend" / "express").mkdir(parents=True)
    (root / "backend" / "express" / "nodemon.json").write_text('{"watch": ["."]}\n', encoding="utf-8")
    yield root


# ---------------------------------------------------------------------------
# Settings & Config
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> GeneratorSettings:
    """Generator settings with console output muted."""
    return GeneratorSettings(quiet=True)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., ProjectConfig]:
    """Factory for ``ProjectConfig`` objects targeting ``tmp_path``.

    Defaults to a project without install or git so nothing external runs.
    """

    def _make(**overrides: Any) -> ProjectConfig:
        values: dict[str, Any] = {
            "project_name": "test-project",
            "project_dir": tmp_path / "test-project",
            "install": False,
            "git": False,
        }
        values.update(overrides)
        return ProjectConfig(**values)

    return _make


@pytest.fixture
def make_context(
    tmp_project_dir: Path, settings: GeneratorSettings
) -> Callable[..., PluginContext]:
    """Factory for a ``PluginContext`` rooted at ``tmp_project_dir``."""

    def _make(config: ProjectConfig | None = None, **overrides: Any) -> PluginContext:
        values: dict[str, Any] = {"project_name": "test-project", "install": False, "git": False}
        values.update(overrides)
        project_config = config or ProjectConfig(**values)
        return PluginContext(
            config=project_config,
            project_dir=tmp_project_dir,
            settings=settings,
            data={"preexisting": set(), "created_project_dir": False},
        )

    return _make


# ---------------------------------------------------------------------------
# Test plugins
# ---------------------------------------------------------------------------


class RecordingPlugin(GeneratorPlugin):
    """A plugin whose handlers are configured per test.

    ``actions`` maps a stage to an async callable ``(plugin, context)``;
    every stage in ``actions`` gets a handler.  Each call is appended to
    ``calls`` as ``(stage, name)``.
    """

    def __init__(
        self,
        name: str,
        actions: dict[Stage, Callable[..., Any]] | None = None,
        *,
        applies: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(name=name, **kwargs)
        self.applies = applies
        self.calls: list[tuple[Stage, str]] = []
        for stage, action in (actions or {}).items():
            self.register_hook(stage, self._wrap(stage, action))

    def _wrap(self, stage: Stage, action: Callable[..., Any]) -> Callable[..., Any]:
        async def handler(context: PluginContext) -> PluginContext:
            self.calls.append((stage, self.name))
            result = await action(self, context)
            return context if result is None else result

        return handler

    def can_handle(self, context: PluginContext) -> bool:
        return self.applies


async def noop(plugin: GeneratorPlugin, context: PluginContext) -> None:
    return None


def writer(relative_path: str, content: str) -> Callable[..., Any]:
    """Action that writes *content* to *relative_path*."""

    async def _write(plugin: GeneratorPlugin, context: PluginContext) -> None:
        await plugin.write_file(context, relative_path, content)

    return _write


def failing(message: str = "boom") -> Callable[..., Any]:
    """Action that raises ``RuntimeError(message)``."""

    async def _fail(plugin: GeneratorPlugin, context: PluginContext) -> None:
        raise RuntimeError(message)

    return _fail


# ---------------------------------------------------------------------------
# Mock subprocesses
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_run_command():
    """Factory patching ``run_command`` in a plugin module.

    Usage:
        def test_x(mock_run_command):
            with mock_run_command("stackgen.plugins.git", (0, "", "")) as run:
                ...
    """

    def _patch(module: str, result: tuple[int, str, str] = (0, "", "")):
        return patch(f"{module}.run_command", new=AsyncMock(return_value=result))

    return _patch
