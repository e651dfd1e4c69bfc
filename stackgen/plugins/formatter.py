"""Source formatting with Biome."""

from __future__ import annotations

from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin
from stackgen.utils import print_warning, run_command

FORMAT_COMMAND = ["npx", "--yes", "@biomejs/biome", "format", "--write", "."]


class FormatterPlugin(StandardPlugin):
    """Formats the generated sources when the ``biome`` addon is selected.

    Formatting is cosmetic: any failure is turned into a warning here and
    the run carries on.
    """

    name = "formatter"
    priority = 70
    fatal = False

    def can_handle(self, context: PluginContext) -> bool:
        return "biome" in context.config.addons

    @hook(Stage.POST_GENERATE)
    async def format_sources(self, context: PluginContext) -> PluginContext:
        try:
            rc, _stdout, stderr = await run_command(
                FORMAT_COMMAND,
                cwd=context.project_dir,
                timeout=context.settings.format_timeout,
            )
        except OSError as exc:
            rc, stderr = -1, str(exc)
        if rc != 0:
            message = f"Formatting skipped: {stderr.strip() or f'exit code {rc}'}"
            context.add_warning(message)
            print_warning(f"  {message}")
        return context
