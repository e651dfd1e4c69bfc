"""Base contract for generator plugins.

A plugin is a named, versioned unit that contributes handlers to one or
more pipeline stages.  Handlers are declared with the :func:`hook`
decorator on ``async`` methods and collected into a per-instance dispatch
table when the plugin is constructed, so which plugin runs in which stage
is fixed before any run starts::

    class ReadmePlugin(GeneratorPlugin):
        name = "readme"
        priority = 60

        @hook(Stage.POST_GENERATE)
        async def write_readme(self, context):
            await self.write_file(context, "README.md", "...")
            return context
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, ClassVar

from stackgen.core.context import PluginContext
from stackgen.core.stages import Stage
from stackgen.utils import write_text_file

Handler = Callable[[PluginContext], Awaitable[PluginContext]]

_HOOK_ATTR = "__stackgen_stage__"


def hook(stage: Stage) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a plugin method as the handler for *stage*."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(func, _HOOK_ATTR, stage)
        return func

    return decorator


class GeneratorPlugin:
    """Base class every generator plugin extends.

    Class attributes can be overridden by subclasses or replaced per
    instance through the constructor.

    Attributes:
        name: Unique plugin name within a ``PluginManager``.
        version: Semantic version string.
        priority: Lower numbers run earlier within a stage.
        fatal: When ``False`` a handler failure is downgraded to a warning.
        dependencies: Names of plugins that must be registered before this one.
    """

    name: ClassVar[str] = ""
    version: ClassVar[str] = "1.0.0"
    priority: ClassVar[int] = 50
    fatal: ClassVar[bool] = True
    dependencies: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        *,
        name: str | None = None,
        version: str | None = None,
        priority: int | None = None,
        fatal: bool | None = None,
    ) -> None:
        # Instance overrides shadow the class-level defaults.
        if name is not None:
            self.name = name  # type: ignore[misc]
        if version is not None:
            self.version = version  # type: ignore[misc]
        if priority is not None:
            self.priority = priority  # type: ignore[misc]
        if fatal is not None:
            self.fatal = fatal  # type: ignore[misc]
        if not self.name:
            raise ValueError(f"{type(self).__name__} must define a plugin name")

        self._hooks: dict[Stage, Handler] = {}
        # Walk from the most-derived class.  A stage claimed by a subclass
        # hides base class handlers for it; two hooks for one stage in the
        # same class are rejected by register_hook.
        seen: set[str] = set()
        for cls in type(self).__mro__:
            claimed = set(self._hooks)
            for attr, value in vars(cls).items():
                if attr in seen:
                    continue
                seen.add(attr)
                stage = getattr(value, _HOOK_ATTR, None)
                if stage is not None and stage not in claimed:
                    self.register_hook(stage, getattr(self, attr))

    # -- Hook table --------------------------------------------------------

    def register_hook(self, stage: Stage, handler: Handler) -> None:
        """Register *handler* for *stage* programmatically.

        Raises:
            ValueError: If the plugin already has a handler for *stage*.
        """
        if stage in self._hooks:
            raise ValueError(f"Plugin '{self.name}' already has a {stage.name} handler")
        self._hooks[stage] = handler

    def handler_for(self, stage: Stage) -> Handler | None:
        return self._hooks.get(stage)

    @property
    def stages(self) -> list[Stage]:
        return sorted(self._hooks)

    # -- Contract ----------------------------------------------------------

    def can_handle(self, context: PluginContext) -> bool:
        """Return ``False`` to opt out of the current run entirely."""
        return True

    def metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "priority": self.priority,
            "fatal": self.fatal,
            "dependencies": list(self.dependencies),
            "stages": [stage.name for stage in self.stages],
        }

    # -- Helpers for subclasses --------------------------------------------

    async def write_file(
        self,
        context: PluginContext,
        relative_path: str | Path,
        content: str,
        stage: Stage | None = None,
    ) -> Path:
        """Write *content* under the project directory and record attribution."""
        target = context.project_dir / relative_path
        await asyncio.to_thread(write_text_file, target, content)
        context.record_file(target, self.name, stage or self._current_stage(context))
        return target

    def _current_stage(self, context: PluginContext) -> Stage:
        # The manager logs an execution before invoking a handler.
        for stage, name in reversed(context.executions):
            if name == self.name:
                return stage
        return Stage.GENERATE

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}@{self.version} priority={self.priority}>"
