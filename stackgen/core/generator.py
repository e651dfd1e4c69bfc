"""Generator facade: target-directory policy plus one pipeline run.

``BaseGenerator`` owns the reusable machinery (plugin manager, pipeline,
run state machine, conflict handling).  ``ModularGenerator`` is the
ready-to-use generator with the standard plugin set installed.

Usage::

    generator = ModularGenerator()
    result = await generator.generate(
        {"projectName": "shop", "frontend": ["react"], "backend": "express"}
    )
    if not result.success:
        print(result.error)
"""

from __future__ import annotations

import asyncio
import itertools
import shutil
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from stackgen.config import GeneratorSettings, ProjectConfig, load_project_config
from stackgen.core.context import GenerationResult, PluginContext
from stackgen.core.manager import PluginManager
from stackgen.core.pipeline import GeneratorPipeline
from stackgen.core.plugin import GeneratorPlugin
from stackgen.core.stages import RunState
from stackgen.errors import ValidationError
from stackgen.utils import (
    ensure_dir,
    format_duration,
    is_empty_dir,
    print_error,
    print_summary_table,
    set_quiet,
)


class BaseGenerator:
    """Validates the target directory, then runs the stage pipeline.

    A generator instance is reusable but not re-entrant: each call to
    :meth:`generate` resets the run state, and calling it again while a run
    is in progress raises ``RuntimeError``.

    Attributes:
        settings: Engine settings shared with every plugin context.
        manager: The plugin registry.
        pipeline: The stage pipeline driving ``manager``.
        state: Current ``RunState`` of the latest run.
    """

    def __init__(
        self,
        settings: GeneratorSettings | None = None,
        manager: PluginManager | None = None,
    ) -> None:
        self.settings = settings or GeneratorSettings()
        self.manager = manager or PluginManager(tie_break=self.settings.tie_break)
        self.pipeline = GeneratorPipeline(self.manager)
        self.state = RunState.CREATED
        self._running = False

    # -- Plugins -----------------------------------------------------------

    def register_plugin(self, plugin: GeneratorPlugin) -> None:
        self.manager.register(plugin)

    def register_plugins(self, plugins: Iterable[GeneratorPlugin]) -> None:
        for plugin in plugins:
            self.register_plugin(plugin)

    # -- Run ---------------------------------------------------------------

    async def generate(self, config: ProjectConfig | dict[str, Any]) -> GenerationResult:
        """Generate a project for *config*.

        Never raises for generation problems: invalid configuration, an
        unusable target directory and fatal plugin failures all come back
        as a result with ``success=False`` and the error attached.

        Raises:
            RuntimeError: If a run is already in progress on this instance.
        """
        if self._running:
            raise RuntimeError("generate() is already running on this generator")
        self._running = True
        self.state = RunState.CREATED
        set_quiet(self.settings.quiet)

        start = time.monotonic()
        project_dir: Path | None = None
        warnings: list[str] = []
        try:
            self.state = RunState.VALIDATING_TARGET
            project_config = load_project_config(config)
            warnings = project_config.compatibility_warnings()
            project_dir, data = await asyncio.to_thread(self.prepare_target, project_config)

            context = PluginContext(
                config=project_config,
                project_dir=project_dir,
                settings=self.settings,
                data=data,
            )
            for warning in warnings:
                context.add_warning(warning)

            self.state = RunState.RUNNING_PIPELINE
            result = await self.pipeline.run(context)
        except Exception as exc:
            print_error(f"Generation failed: {exc}")
            result = GenerationResult.failure(
                exc,
                project_dir=project_dir,
                warnings=warnings,
                duration=time.monotonic() - start,
            )
        finally:
            self._running = False

        self.state = result.state
        self._print_summary(result)
        return result

    # -- Target directory --------------------------------------------------

    def prepare_target(self, config: ProjectConfig) -> tuple[Path, dict[str, Any]]:
        """Apply the directory-conflict policy and create the project directory.

        Returns:
            ``(project_dir, data)`` where *data* seeds the context bag with
            ``preexisting`` and ``created_project_dir``.

        Raises:
            ValidationError: The target is a regular file, or it is a
                non-empty directory under the ``error`` policy.
        """
        target = config.target_dir
        policy = config.directory_conflict

        if target.exists() and not target.is_dir():
            raise ValidationError(f"Target path exists and is not a directory: {target}")

        if target.is_dir() and not is_empty_dir(target):
            if policy == "error":
                raise ValidationError(
                    f"Directory {target} already exists and is not empty "
                    "(choose merge, overwrite or increment)"
                )
            if policy == "overwrite":
                _empty_directory(target)
            elif policy == "increment":
                target = _next_free_path(target)

        created = not target.exists()
        target = ensure_dir(target)

        preexisting = {
            path.relative_to(target).as_posix() for path in target.rglob("*") if path.is_file()
        }
        return target, {"preexisting": preexisting, "created_project_dir": created}

    # -- Output ------------------------------------------------------------

    def _print_summary(self, result: GenerationResult) -> None:
        rows = {
            "Project": str(result.project_dir or "-"),
            "Status": "success" if result.success else f"failed ({result.error_type})",
            "Files": str(len(result.files)),
            "Warnings": str(len(result.warnings)),
            "Duration": format_duration(result.duration),
        }
        print_summary_table(rows, title="Generation Summary")


class ModularGenerator(BaseGenerator):
    """Generator preloaded with the standard plugin set.

    Every standard plugin is registered; each one decides through
    ``can_handle`` whether it takes part in a given run.
    """

    def __init__(
        self,
        settings: GeneratorSettings | None = None,
        manager: PluginManager | None = None,
    ) -> None:
        super().__init__(settings, manager)
        from stackgen.plugins import standard_plugins

        self.register_plugins(standard_plugins())


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _empty_directory(path: Path) -> None:
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _next_free_path(path: Path) -> Path:
    for n in itertools.count(1):
        candidate = path.with_name(f"{path.name}-{n}")
        if not candidate.exists():
            return candidate
    raise AssertionError("unreachable")
