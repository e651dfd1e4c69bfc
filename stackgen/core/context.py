"""Run-scoped state shared by all plugins, and the final run result."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from stackgen.config import GeneratorSettings, ProjectConfig
from stackgen.core.stages import RunState, Stage
from stackgen.utils import sanitize_name


@dataclass(frozen=True)
class FileRecord:
    """One file written during a run.

    ``path`` is relative to the project directory (POSIX separators).
    ``created`` is ``False`` when the file existed before the run started.
    """

    path: str
    plugin: str
    stage: Stage
    created: bool = True


@dataclass
class PluginContext:
    """The single mutable object threaded through every stage of one run.

    Plugins exchange intermediate values through :attr:`data`.  Keys in use
    by the standard plugins:

    ``package_json``
        dict manifest; built by ``package-json`` in INIT, extended by
        ``addons`` and ``integration`` in GENERATE, written in POST_GENERATE.
    ``scripts``
        dict of npm scripts (alias of ``package_json["scripts"]``).
    ``template_layers``
        list of ``(layer_dir, output_subdir)`` pairs chosen by ``files``.
    ``backend_port``
        int; recorded by ``integration`` in PRE_GENERATE.
    ``entry_point``
        relative path of the entry point, set by ``entry-point``.
    ``install``
        dict with the install outcome, set by ``dependencies``.
    ``preexisting``
        set of relative paths present before the run (set by the generator).
    ``created_project_dir``
        bool; whether this run created the project directory.
    ``rolled_back``
        list of relative paths removed by ``cleanup`` after a failure.
    """

    config: ProjectConfig
    project_dir: Path
    settings: GeneratorSettings = field(default_factory=GeneratorSettings)
    files: list[FileRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    executions: list[tuple[Stage, str]] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    failed: bool = False
    error: BaseException | None = None

    @property
    def template_dir(self) -> Path:
        return self.settings.template_dir

    # -- Recording ---------------------------------------------------------

    def record_file(self, path: str | Path, plugin: str, stage: Stage) -> FileRecord:
        """Attribute a written file to *plugin* and append it to :attr:`files`."""
        rel = self.relative(path)
        preexisting = self.data.get("preexisting", set())
        record = FileRecord(path=rel, plugin=plugin, stage=stage, created=rel not in preexisting)
        self.files.append(record)
        return record

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def relative(self, path: str | Path) -> str:
        """Return *path* relative to the project directory, POSIX style."""
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.relative_to(self.project_dir)
            except ValueError:
                return p.as_posix()
        return p.as_posix()

    def has_file(self, rel_path: str) -> bool:
        """Return ``True`` if *rel_path* was written during this run."""
        return any(record.path == rel_path for record in self.files)

    def executed(self, stage: Stage | None = None) -> list[str]:
        """Names of plugins that ran, optionally restricted to one stage."""
        return [name for s, name in self.executions if stage is None or s == stage]

    def template_variables(self) -> dict[str, Any]:
        """Variables for rendering templates at the current point of the run."""
        variables = self.config.template_context()
        variables["projectSlug"] = sanitize_name(self.config.project_name)
        variables["backendPort"] = self.data.get("backend_port")
        variables["scripts"] = dict(self.data.get("scripts", {}))
        return variables


@dataclass(frozen=True)
class GenerationResult:
    """Immutable outcome of a generation run, returned to the CLI layer."""

    success: bool
    project_dir: Path | None
    files: tuple[FileRecord, ...] = ()
    warnings: tuple[str, ...] = ()
    error: BaseException | None = None
    state: RunState = RunState.COMPLETED
    stage_timings: dict[str, float] = field(default_factory=dict)
    duration: float = 0.0
    executions: tuple[tuple[Stage, str], ...] = ()

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("A successful result cannot carry an error")

    @property
    def error_type(self) -> str | None:
        return type(self.error).__name__ if self.error is not None else None

    @property
    def file_paths(self) -> list[str]:
        return [record.path for record in self.files]

    def files_by_plugin(self, plugin: str) -> list[str]:
        return [record.path for record in self.files if record.plugin == plugin]

    @classmethod
    def from_context(
        cls,
        context: PluginContext,
        *,
        stage_timings: dict[str, float] | None = None,
        duration: float = 0.0,
    ) -> "GenerationResult":
        """Build a result from the final state of *context*.

        Files are de-duplicated by path: each path keeps the position of its
        first write and the attribution of its last write.
        """
        order: list[str] = []
        latest: dict[str, FileRecord] = {}
        for record in context.files:
            if record.path not in latest:
                order.append(record.path)
                latest[record.path] = record
            else:
                first = latest[record.path]
                latest[record.path] = FileRecord(
                    path=record.path,
                    plugin=record.plugin,
                    stage=record.stage,
                    created=first.created,
                )

        success = not context.failed
        return cls(
            success=success,
            project_dir=context.project_dir,
            files=tuple(latest[path] for path in order),
            warnings=tuple(context.warnings),
            error=None if success else context.error,
            state=RunState.COMPLETED if success else RunState.FAILED,
            stage_timings=dict(stage_timings or {}),
            duration=duration,
            executions=tuple(context.executions),
        )

    @classmethod
    def failure(
        cls,
        error: BaseException,
        *,
        project_dir: Path | None = None,
        warnings: list[str] | None = None,
        duration: float = 0.0,
    ) -> "GenerationResult":
        """A failed result for a run that never reached the pipeline."""
        return cls(
            success=False,
            project_dir=project_dir,
            warnings=tuple(warnings or ()),
            error=error,
            state=RunState.FAILED,
            duration=duration,
        )
