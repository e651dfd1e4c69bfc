"""Layered template materialization.

Project templates are organised in layers under the template root::

    base/                   always applied, at the project root
    frontend/<framework>/   into frontend/ (or frontend-<framework>/)
    backend/<backend>/      into backend/
    database/<orm|db>/      at the project root
    auth/<provider>/        at the project root
    addons/<addon>/         at the project root

Layers are applied in that order, so a later layer overwrites a file an
earlier one wrote.  A layer without a template directory is skipped.
"""

from __future__ import annotations

from stackgen.config import ProjectConfig
from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin
from stackgen.utils import print_step


def select_layers(config: ProjectConfig) -> list[tuple[str, str]]:
    """Return ``(layer, output_subdir)`` pairs for *config*, in apply order."""
    layers = [("base", "")]
    for framework, directory in config.frontend_dirs.items():
        layers.append((f"frontend/{framework}", directory))
    if config.has_backend:
        layers.append((f"backend/{config.backend}", "backend"))
    if config.orm != "none":
        layers.append((f"database/{config.orm}", ""))
    elif config.database != "none":
        layers.append((f"database/{config.database}", ""))
    if config.auth != "none":
        layers.append((f"auth/{config.auth}", ""))
    for addon in config.addons:
        layers.append((f"addons/{addon}", ""))
    return layers


class FilesPlugin(StandardPlugin):
    """Chooses template layers, then renders them into the project."""

    name = "files"
    priority = 20

    @hook(Stage.PRE_GENERATE)
    async def plan(self, context: PluginContext) -> PluginContext:
        context.data["template_layers"] = select_layers(context.config)
        return context

    @hook(Stage.GENERATE)
    async def materialize(self, context: PluginContext) -> PluginContext:
        layers = context.data.get("template_layers") or select_layers(context.config)
        variables = context.template_variables()

        for layer, subdir in layers:
            source = context.template_dir / layer
            if not source.is_dir():
                print_step(f"no templates for layer '{layer}'")
                continue
            dest = context.project_dir / subdir if subdir else context.project_dir
            written = await self.processor.materialize(
                source, dest, {**variables, "layerDir": subdir}
            )
            for path in written:
                context.record_file(path, self.name, Stage.GENERATE)
            print_step(f"{layer}: {len(written)} file(s)")
        return context
