"""Exception hierarchy for stackgen.

Every error raised by the engine derives from :class:`StackgenError` so the
CLI layer can catch the whole family in one place.  The generator facade
turns any of these into a failed ``GenerationResult``; nothing here is
retried.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class StackgenError(Exception):
    """Base class for all stackgen errors."""


class ValidationError(StackgenError):
    """Raised for a malformed or conflicting project configuration.

    Also used when the target directory cannot be used under the selected
    conflict policy, and when generated output fails its final checks.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors or [message])
        super().__init__(message)


class PluginRegistrationError(StackgenError):
    """Raised when a plugin cannot be added to a ``PluginManager``."""


class DuplicatePluginError(PluginRegistrationError):
    """Raised when two plugins register under the same name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Plugin '{name}' is already registered")


class TemplateSyntaxError(StackgenError):
    """Raised for malformed template source."""

    def __init__(
        self,
        message: str,
        template_name: str | None = None,
        lineno: int | None = None,
    ) -> None:
        self.message = message
        self.template_name = template_name
        self.lineno = lineno
        location = template_name or "<template>"
        if lineno is not None:
            location = f"{location}:{lineno}"
        super().__init__(f"{location}: {message}")


class MaterializationError(StackgenError):
    """Raised when a template or static file cannot be read or written."""

    def __init__(self, path: str | Path, cause: BaseException) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to materialize {self.path}: {cause}")


class PluginExecutionError(StackgenError):
    """Raised when a fatal plugin handler fails.

    Wraps the original exception together with the plugin name and the
    stage it was running in.
    """

    def __init__(self, plugin: str, stage: Any, cause: BaseException) -> None:
        self.plugin = plugin
        self.stage = stage
        self.cause = cause
        stage_name = getattr(stage, "name", str(stage))
        super().__init__(
            f"Plugin '{plugin}' failed during {stage_name}: "
            f"{type(cause).__name__}: {cause}"
        )
