"""Shared base for the standard plugins."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from stackgen.core.context import PluginContext
from stackgen.core.plugin import GeneratorPlugin
from stackgen.templating import TemplateProcessor

# Templates the standard plugins render themselves (README, entry point,
# addon configs).  Independent of ``GeneratorSettings.template_dir``, which
# only holds the layered project templates.
PLUGIN_TEMPLATE_DIR = Path(__file__).parent / "templates"


class StandardPlugin(GeneratorPlugin):
    """A ``GeneratorPlugin`` with access to the built-in plugin templates."""

    processor = TemplateProcessor()

    def render_template(
        self,
        context: PluginContext,
        template_name: str,
        extra: dict[str, Any] | None = None,
    ) -> str:
        """Render ``PLUGIN_TEMPLATE_DIR/template_name`` with the run's variables."""
        source = (PLUGIN_TEMPLATE_DIR / template_name).read_text(encoding="utf-8")
        variables = context.template_variables()
        if extra:
            variables.update(extra)
        return self.processor.render(source, variables, name=template_name)

    async def render_to_file(
        self,
        context: PluginContext,
        template_name: str,
        relative_path: str,
        extra: dict[str, Any] | None = None,
    ) -> Path:
        """Render a built-in template and write it under the project directory."""
        content = await asyncio.to_thread(self.render_template, context, template_name, extra)
        return await self.write_file(context, relative_path, content)
