"""Final checks on the generated tree."""

from __future__ import annotations

from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.errors import ValidationError
from stackgen.plugins.base import StandardPlugin


class OutputCheckPlugin(StandardPlugin):
    """Fails the run if recorded files, the manifest or the entry point are missing."""

    name = "output-check"
    priority = 10

    @hook(Stage.VALIDATE)
    async def verify(self, context: PluginContext) -> PluginContext:
        problems = [
            f"missing file: {path}"
            for path in dict.fromkeys(record.path for record in context.files)
            if not (context.project_dir / path).exists()
        ]
        if not (context.project_dir / "package.json").is_file():
            problems.append("package.json was not written")
        entry_point = context.data.get("entry_point")
        if entry_point is None:
            problems.append("no entry point was recorded")
        elif not (context.project_dir / entry_point).is_file():
            problems.append(f"entry point {entry_point} does not exist")

        if problems:
            raise ValidationError("Generated project is incomplete: " + "; ".join(problems), problems)
        return context
