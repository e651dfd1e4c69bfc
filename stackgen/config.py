"""stackgen configuration.

Two typed models live here:

* ``ProjectConfig`` -- the immutable snapshot of the user's stack choices.
  It is created once (usually by the CLI layer) before generation starts
  and is never mutated by plugins.
* ``GeneratorSettings`` -- engine tuning knobs (template root, ordering
  tie-break, rollback, subprocess timeouts).  Loadable from environment
  variables or a JSON file.

Both are Pydantic v2 models so they are validated at construction time and
serialise to/from JSON without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from stackgen.errors import ValidationError

Database = Literal["none", "sqlite", "postgres", "mysql", "mongodb"]
ORM = Literal["none", "drizzle", "prisma", "mongoose"]
Backend = Literal["none", "hono", "express", "fastify", "next", "elysia", "convex"]
Runtime = Literal["none", "bun", "node", "workers"]
Frontend = Literal[
    "none",
    "react",
    "vue",
    "angular",
    "svelte",
    "nextjs",
    "nuxt",
    "react-native",
    "remix",
    "astro",
    "sveltekit",
    "solid",
    "tanstack-router",
]
Addon = Literal[
    "pwa",
    "tauri",
    "biome",
    "husky",
    "turborepo",
    "vitest",
    "playwright",
    "cypress",
    "docker",
    "testing",
]
Auth = Literal["none", "better-auth", "clerk"]
PackageManager = Literal["npm", "pnpm", "bun"]
DirectoryConflict = Literal["merge", "overwrite", "increment", "error"]

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Names npm or the OS treat specially.
RESERVED_PROJECT_NAMES = frozenset({"node_modules", "package", "npm", "yarn", "pnpm", "favicon.ico"})
_INVALID_NAME_CHARS = set('<>:"|?*')

# Frontends that render in a browser (targets for PWA / Tauri).
WEB_FRONTENDS = frozenset(
    {"react", "vue", "angular", "svelte", "nextjs", "nuxt", "remix", "astro", "sveltekit", "solid", "tanstack-router"}
)


class ProjectConfig(BaseModel):
    """Immutable description of the project to scaffold.

    Field names are snake_case; the camelCase names used by the CLI layer
    (``projectName``, ``packageManager``, ``directoryConflict``...) are
    accepted as aliases.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    project_name: str = Field(..., min_length=1, max_length=214)
    project_dir: Path | None = Field(
        default=None, description="Absolute or cwd-relative target directory"
    )
    relative_path: str | None = Field(
        default=None, description="Target path relative to the working directory"
    )
    frontend: tuple[Frontend, ...] = Field(default=("none",))
    backend: Backend = "none"
    runtime: Runtime = "none"
    database: Database = "none"
    orm: ORM = "none"
    auth: Auth = "none"
    addons: tuple[Addon, ...] = Field(default=())
    package_manager: PackageManager = "npm"
    git: bool = True
    install: bool = True
    typescript: bool = False
    directory_conflict: DirectoryConflict = "error"

    # ------------------------------------------------------------------
    # Field validation
    # ------------------------------------------------------------------

    @field_validator("project_name")
    @classmethod
    def _check_project_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("Project name cannot be empty")
        if name.startswith("."):
            raise ValueError("Project name cannot start with a dot")
        if name.startswith("-"):
            raise ValueError("Project name cannot start with a dash")
        if any(ch in _INVALID_NAME_CHARS for ch in name):
            raise ValueError("Project name contains invalid characters")
        if name.lower() in RESERVED_PROJECT_NAMES:
            raise ValueError(f"Project name '{name}' is reserved")
        return name

    @field_validator("frontend", mode="before")
    @classmethod
    def _default_frontend(cls, value: Any) -> Any:
        if value is None or (isinstance(value, (list, tuple)) and not value):
            return ("none",)
        return value

    @field_validator("frontend")
    @classmethod
    def _check_frontend(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if len(set(value)) != len(value):
            raise ValueError("Duplicate frontend frameworks not allowed")
        if "none" in value and len(value) > 1:
            raise ValueError("'none' cannot be combined with other frontends")
        return value

    @field_validator("addons")
    @classmethod
    def _check_addons(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if len(set(value)) != len(value):
            raise ValueError("Duplicate addons not allowed")
        return value

    # ------------------------------------------------------------------
    # Cross-field compatibility
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def _check_compatibility(self) -> "ProjectConfig":
        errors = self.compatibility_errors()
        if errors:
            raise ValueError("; ".join(errors))
        return self

    def compatibility_errors(self) -> list[str]:
        """Return every hard incompatibility between the selected options."""
        errors: list[str] = []

        if self.orm != "none" and self.database == "none":
            errors.append(f"ORM '{self.orm}' requires a database")
        if self.orm == "mongoose" and self.database != "mongodb":
            errors.append(f"Mongoose ORM requires MongoDB. Selected: {self.database}")
        if self.orm == "drizzle" and self.database == "mongodb":
            errors.append("Drizzle ORM does not support MongoDB")
        if self.runtime == "workers" and self.backend != "hono":
            errors.append("The 'workers' runtime requires the Hono backend")
        if self.auth == "better-auth" and self.backend == "none":
            errors.append("Better-Auth requires a backend")
        for addon in ("pwa", "tauri"):
            if addon in self.addons and not self.has_web_frontend:
                errors.append(f"The '{addon}' addon requires a web frontend")

        return errors

    def compatibility_warnings(self) -> list[str]:
        """Return non-fatal advisories about the selected stack."""
        warnings: list[str] = []
        if "nextjs" in self.frontend and self.backend not in ("none", "next"):
            warnings.append(
                "Next.js includes built-in API routes. Consider using 'next' or "
                "'none' for the backend to avoid conflicts."
            )
        if "playwright" in self.addons and "cypress" in self.addons:
            warnings.append("Both Playwright and Cypress are selected; they overlap as E2E runners.")
        return warnings

    # ------------------------------------------------------------------
    # Derived values (read-only properties)
    # ------------------------------------------------------------------

    @property
    def frontends(self) -> list[str]:
        """Selected frontends without the ``none`` sentinel."""
        return [f for f in self.frontend if f != "none"]

    @property
    def has_frontend(self) -> bool:
        return bool(self.frontends)

    @property
    def has_web_frontend(self) -> bool:
        return any(f in WEB_FRONTENDS for f in self.frontends)

    @property
    def has_backend(self) -> bool:
        return self.backend != "none"

    @property
    def frontend_dirs(self) -> dict[str, str]:
        """Output directory per frontend: ``frontend/`` alone, ``frontend-<fw>/`` side by side."""
        if len(self.frontends) == 1:
            return {self.frontends[0]: "frontend"}
        return {fw: f"frontend-{fw}" for fw in self.frontends}

    @property
    def target_dir(self) -> Path:
        """The requested target directory, resolved against the cwd."""
        if self.project_dir is not None:
            target = Path(self.project_dir)
        elif self.relative_path:
            target = Path(self.relative_path)
        else:
            target = Path(self.project_name)
        return target if target.is_absolute() else Path.cwd() / target

    def template_context(self) -> dict[str, Any]:
        """Variables exposed to every template.

        Uses the camelCase names that Handlebars templates are written
        against, plus a few derived flags.
        """
        data = self.model_dump(mode="json", by_alias=True, exclude={"project_dir", "relative_path"})
        data["frontend"] = list(self.frontend)
        data["addons"] = list(self.addons)
        data.update(
            {
                "frontends": self.frontends,
                "frontendDirs": self.frontend_dirs,
                "hasFrontend": self.has_frontend,
                "hasBackend": self.has_backend,
                "hasDatabase": self.database != "none",
                "hasAuth": self.auth != "none",
                "isMonorepo": "turborepo" in self.addons,
            }
        )
        return data


def load_project_config(data: ProjectConfig | dict[str, Any]) -> ProjectConfig:
    """Validate *data* into a ``ProjectConfig``.

    Raises:
        ValidationError: With every problem pydantic reported, formatted as
            ``field: message`` strings.
    """
    if isinstance(data, ProjectConfig):
        return data
    try:
        return ProjectConfig.model_validate(data)
    except PydanticValidationError as exc:
        messages = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"]) or "config"
            messages.append(f"{loc}: {err['msg']}")
        raise ValidationError(
            "Invalid project configuration: " + "; ".join(messages), messages
        ) from exc


class GeneratorSettings(BaseModel):
    """Tuning knobs for the generation engine."""

    template_dir: Path = Field(default=_DEFAULT_TEMPLATE_DIR)
    tie_break: Literal["registration", "name"] = Field(
        default="registration",
        description="How plugins with equal priority are ordered within a stage",
    )
    rollback_on_failure: bool = Field(
        default=True, description="Remove files written by a failed run during CLEANUP"
    )
    install_timeout: int = Field(default=600, ge=10, description="Dependency install timeout in seconds")
    format_timeout: int = Field(default=120, ge=5, description="Formatter timeout in seconds")
    git_timeout: int = Field(default=30, ge=5, description="git init timeout in seconds")
    quiet: bool = Field(default=False, description="Suppress console progress output")

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the settings to a JSON file and return the written path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "GeneratorSettings":
        """Load previously-saved settings from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "GeneratorSettings":
        """Build ``GeneratorSettings`` from environment variables.

        Recognised variables (all optional):
            STACKGEN_TEMPLATE_DIR, STACKGEN_TIE_BREAK, STACKGEN_ROLLBACK,
            STACKGEN_INSTALL_TIMEOUT, STACKGEN_FORMAT_TIMEOUT,
            STACKGEN_GIT_TIMEOUT, STACKGEN_QUIET.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("STACKGEN_TEMPLATE_DIR"):
            kwargs["template_dir"] = Path(os.environ["STACKGEN_TEMPLATE_DIR"])
        if os.environ.get("STACKGEN_TIE_BREAK"):
            kwargs["tie_break"] = os.environ["STACKGEN_TIE_BREAK"]
        if os.environ.get("STACKGEN_ROLLBACK"):
            kwargs["rollback_on_failure"] = _env_flag(os.environ["STACKGEN_ROLLBACK"])
        if os.environ.get("STACKGEN_INSTALL_TIMEOUT"):
            kwargs["install_timeout"] = int(os.environ["STACKGEN_INSTALL_TIMEOUT"])
        if os.environ.get("STACKGEN_FORMAT_TIMEOUT"):
            kwargs["format_timeout"] = int(os.environ["STACKGEN_FORMAT_TIMEOUT"])
        if os.environ.get("STACKGEN_GIT_TIMEOUT"):
            kwargs["git_timeout"] = int(os.environ["STACKGEN_GIT_TIMEOUT"])
        if os.environ.get("STACKGEN_QUIET"):
            kwargs["quiet"] = _env_flag(os.environ["STACKGEN_QUIET"])
        return cls(**kwargs)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")
