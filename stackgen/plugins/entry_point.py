"""Root entry point."""

from __future__ import annotations

from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin

ENTRY_POINT_CANDIDATES = ("index.js", "index.ts", "index.mjs")


class EntryPointPlugin(StandardPlugin):
    """Writes ``index.js`` unless the project already has an entry point."""

    name = "entry-point"
    priority = 55

    @hook(Stage.POST_GENERATE)
    async def ensure_entry_point(self, context: PluginContext) -> PluginContext:
        for candidate in ENTRY_POINT_CANDIDATES:
            if (context.project_dir / candidate).is_file():
                context.data["entry_point"] = candidate
                return context

        await self.render_to_file(context, "index.js.hbs", "index.js")
        context.data["entry_point"] = "index.js"
        return context
