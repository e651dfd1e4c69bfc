"""Project README."""

from __future__ import annotations

from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin


class ReadmePlugin(StandardPlugin):
    """Renders ``README.md`` describing the stack, scripts and layout.

    A README that existed before the run (merge mode) is kept.
    """

    name = "readme"
    priority = 60

    @hook(Stage.POST_GENERATE)
    async def write_readme(self, context: PluginContext) -> PluginContext:
        if "README.md" in context.data.get("preexisting", ()):
            return context
        scripts = context.data.get("scripts", {})
        install = context.data.get("install")
        extra = {
            "scriptList": [{"name": k, "command": v} for k, v in scripts.items()],
            "installed": bool(install and install.get("ok")),
        }
        await self.render_to_file(context, "README.md.hbs", "README.md", extra)
        return context
