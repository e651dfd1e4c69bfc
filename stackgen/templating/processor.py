"""Template materialization: render a template tree onto disk.

The ``TemplateProcessor`` walks a template directory and reproduces it under
a destination directory.  Handlebars templates (``*.hbs`` /
``*.handlebars``) are rendered and written without their template
extension, binary assets are byte-copied and every other file is copied
verbatim.  Placeholder names such as ``_gitignore`` become dotfiles on the
way out, since package registries strip real dotfiles from published
template trees.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path, PurePosixPath
from typing import Any

from stackgen.errors import MaterializationError, StackgenError
from stackgen.templating import handlebars

TEMPLATE_EXTENSIONS: tuple[str, ...] = (".hbs", ".handlebars")

# Placeholder -> dotfile.  Anything else with a leading underscore (Next.js
# ``_app.tsx``, ``_document.tsx``...) is left alone.
DOTFILE_PLACEHOLDERS: dict[str, str] = {
    "_gitignore": ".gitignore",
    "_npmrc": ".npmrc",
    "_env": ".env",
    "_env.example": ".env.example",
    "_dockerignore": ".dockerignore",
    "_editorconfig": ".editorconfig",
    "_nvmrc": ".nvmrc",
    "_prettierrc": ".prettierrc",
}

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        # images
        ".png", ".jpg", ".jpeg", ".gif", ".ico", ".webp", ".bmp",
        # fonts
        ".woff", ".woff2", ".ttf", ".otf", ".eot",
        # archives
        ".zip", ".gz", ".tar", ".tgz", ".7z", ".rar",
        # documents
        ".pdf",
    }
)

IGNORED_FILES: frozenset[str] = frozenset({".DS_Store", "Thumbs.db", ".gitkeep"})

_TS_SUFFIXES = {".ts": ".js", ".tsx": ".jsx"}
_JS_SUFFIXES = {v: k for k, v in _TS_SUFFIXES.items()}


class TemplateProcessor:
    """Renders and copies template trees.

    Stateless apart from the compiled-template cache shared through
    :func:`stackgen.templating.handlebars.compile_template`, so a single
    instance can serve every plugin of a run.
    """

    # -- Rendering ---------------------------------------------------------

    def render(self, source: str, context: dict[str, Any], name: str | None = None) -> str:
        """Render Handlebars *source* with *context*.

        Raises:
            TemplateSyntaxError: If *source* is malformed.
        """
        return handlebars.render(source, context, name)

    # -- Names and classification -----------------------------------------

    def resolve_output_filename(self, name: str) -> str:
        """Map a template file name to the name written on disk.

        Works on the last path component only.  The template extension is
        stripped first (unless nothing would remain), then underscore
        placeholders are turned into dotfiles::

            middleware.jsx.hbs -> middleware.jsx
            config.hbs         -> config
            _gitignore         -> .gitignore
            _env.example.hbs   -> .env.example
            _app.tsx           -> _app.tsx
        """
        head, sep, base = name.replace("\\", "/").rpartition("/")
        for ext in TEMPLATE_EXTENSIONS:
            if base.endswith(ext) and len(base) > len(ext):
                base = base[: -len(ext)]
                break
        base = DOTFILE_PLACEHOLDERS.get(base, base)
        return f"{head}{sep}{base}"

    def is_template(self, path: str | Path) -> bool:
        name = PurePosixPath(str(path).replace("\\", "/")).name
        return any(name.endswith(ext) and len(name) > len(ext) for ext in TEMPLATE_EXTENSIONS)

    def is_binary(self, path: str | Path) -> bool:
        """``True`` if any suffix of *path* is a known binary extension.

        Checked on every suffix so ``logo.png.hbs`` is still copied as bytes.
        """
        suffixes = PurePosixPath(str(path).replace("\\", "/")).suffixes
        return any(suffix.lower() in BINARY_EXTENSIONS for suffix in suffixes)

    def is_language_alternate(self, path: Path, typescript: bool) -> bool:
        """Whether *path* loses to its other-language sibling.

        ``main.tsx.hbs`` and ``main.jsx.hbs`` side by side: the TypeScript
        one is used when *typescript* is set, the JavaScript one otherwise.
        A file without a sibling is always used.
        """
        if not self.is_template(path):
            return False
        stem = self.resolve_output_filename(path.name)
        lang = PurePosixPath(stem).suffix
        ext = path.name[len(stem) :] if path.name.startswith(stem) else path.suffix
        if lang in _TS_SUFFIXES and not typescript:
            other = _TS_SUFFIXES[lang]
        elif lang in _JS_SUFFIXES and typescript:
            other = _JS_SUFFIXES[lang]
        else:
            return False
        sibling = path.with_name(stem[: -len(lang)] + other + ext)
        return sibling.exists()

    # -- Materialization ---------------------------------------------------

    async def materialize(
        self,
        source_dir: str | Path,
        dest_dir: str | Path,
        context: dict[str, Any],
        glob_pattern: str = "**/*",
    ) -> list[Path]:
        """Reproduce *source_dir* under *dest_dir*.

        Files are processed one at a time in sorted order.  Existing files
        at a destination path are overwritten.

        Args:
            source_dir: Template directory to walk.
            dest_dir: Output root; created on demand.
            context: Template variables.  ``context["typescript"]`` selects
                between ``.ts``/``.js`` alternates.
            glob_pattern: Which files under *source_dir* to process.

        Returns:
            The written destination paths, in processing order.

        Raises:
            MaterializationError: On the first read or write failure.  Files
                already written stay on disk.
            TemplateSyntaxError: If a template is malformed.
        """
        source_root = Path(source_dir)
        dest_root = Path(dest_dir)
        if not source_root.is_dir():
            raise MaterializationError(
                source_root, FileNotFoundError(f"Template directory does not exist: {source_root}")
            )

        typescript = bool(context.get("typescript"))
        written: list[Path] = []
        for source in sorted(p for p in source_root.glob(glob_pattern) if p.is_file()):
            if source.name in IGNORED_FILES:
                continue
            if self.is_language_alternate(source, typescript):
                continue
            target = dest_root / self._output_relpath(source.relative_to(source_root), context)
            try:
                await asyncio.to_thread(self._materialize_file, source, target, context)
            except StackgenError:
                raise
            except (OSError, UnicodeDecodeError) as exc:
                raise MaterializationError(source, exc) from exc
            written.append(target)
        return written

    def _output_relpath(self, rel: Path, context: dict[str, Any]) -> Path:
        parts = []
        for part in rel.parts:
            if "{{" in part:
                part = self.render(part, context, name=str(rel))
            parts.append(part)
        parts[-1] = self.resolve_output_filename(parts[-1])
        return Path(*parts)

    def _materialize_file(self, source: Path, target: Path, context: dict[str, Any]) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        if self.is_binary(source):
            target.write_bytes(source.read_bytes())
        elif self.is_template(source):
            text = source.read_text(encoding="utf-8")
            target.write_text(self.render(text, context, name=source.name), encoding="utf-8")
        else:
            target.write_bytes(source.read_bytes())
        shutil.copymode(source, target)
