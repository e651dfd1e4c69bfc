"""Plugin registry and per-stage dispatch."""

from __future__ import annotations

from stackgen.core.context import PluginContext
from stackgen.core.plugin import GeneratorPlugin
from stackgen.core.stages import Stage
from stackgen.errors import DuplicatePluginError, PluginExecutionError, PluginRegistrationError
from stackgen.utils import print_step, print_warning


class PluginManager:
    """Holds the registered plugins and runs their handlers stage by stage.

    Within a stage, handlers run one after another in ascending priority.
    Plugins with equal priority keep registration order, or are sorted by
    name when ``tie_break="name"``.  The order only depends on the
    registered set and on each plugin's ``can_handle`` answer, so repeated
    runs with the same configuration execute identically.
    """

    def __init__(self, tie_break: str = "registration") -> None:
        if tie_break not in ("registration", "name"):
            raise ValueError(f"Unknown tie-break policy: {tie_break!r}")
        self.tie_break = tie_break
        self._plugins: dict[str, GeneratorPlugin] = {}

    # -- Registry ----------------------------------------------------------

    def register(self, plugin: GeneratorPlugin) -> None:
        """Add *plugin* to the registry.

        Raises:
            DuplicatePluginError: A plugin with the same name is registered.
            PluginRegistrationError: A declared dependency is not registered.
        """
        if not isinstance(plugin, GeneratorPlugin):
            raise PluginRegistrationError(
                f"{type(plugin).__name__} does not extend GeneratorPlugin"
            )
        if plugin.name in self._plugins:
            raise DuplicatePluginError(plugin.name)
        missing = [dep for dep in plugin.dependencies if dep not in self._plugins]
        if missing:
            raise PluginRegistrationError(
                f"Plugin '{plugin.name}' requires {', '.join(repr(m) for m in missing)} "
                "which is not registered"
            )
        self._plugins[plugin.name] = plugin

    def unregister(self, name: str) -> GeneratorPlugin:
        """Remove and return the plugin called *name*.

        Raises:
            PluginRegistrationError: The plugin is unknown, or another
                registered plugin depends on it.
        """
        if name not in self._plugins:
            raise PluginRegistrationError(f"Plugin '{name}' is not registered")
        dependents = [p.name for p in self._plugins.values() if name in p.dependencies]
        if dependents:
            raise PluginRegistrationError(
                f"Plugin '{name}' is required by {', '.join(dependents)}"
            )
        return self._plugins.pop(name)

    def get(self, name: str) -> GeneratorPlugin | None:
        return self._plugins.get(name)

    @property
    def plugins(self) -> list[GeneratorPlugin]:
        """Registered plugins in registration order."""
        return list(self._plugins.values())

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    # -- Dispatch ----------------------------------------------------------

    def _ordered(self, stage: Stage) -> list[GeneratorPlugin]:
        candidates = [
            (position, plugin)
            for position, plugin in enumerate(self._plugins.values())
            if plugin.handler_for(stage) is not None
        ]
        if self.tie_break == "name":
            candidates.sort(key=lambda item: (item[1].priority, item[1].name))
        else:
            candidates.sort(key=lambda item: (item[1].priority, item[0]))
        return [plugin for _, plugin in candidates]

    def execution_order(self, stage: Stage, context: PluginContext) -> list[GeneratorPlugin]:
        """Plugins that will run in *stage* for *context*, in order."""
        return [plugin for plugin in self._ordered(stage) if plugin.can_handle(context)]

    async def run_stage(self, stage: Stage, context: PluginContext) -> PluginContext:
        """Run every applicable handler for *stage* against *context*.

        A failing fatal plugin stops the stage immediately.  A failing
        non-fatal plugin is reported as a warning and the stage continues.
        ``can_handle`` is evaluated under the same policy as the handler.

        Raises:
            PluginExecutionError: When a fatal plugin's ``can_handle`` or
                handler raises.
        """
        for plugin in self._ordered(stage):
            handler = plugin.handler_for(stage)
            assert handler is not None
            try:
                if not plugin.can_handle(context):
                    continue
                context.executions.append((stage, plugin.name))
                print_step(f"{stage.name.lower()}: {plugin.name}")
                result = await handler(context)
                if result is not None and result is not context:
                    raise TypeError("handler must return the context it was given")
            except Exception as exc:
                if plugin.fatal:
                    raise PluginExecutionError(plugin.name, stage, exc) from exc
                message = f"{plugin.name} ({stage.name}): {type(exc).__name__}: {exc}"
                context.add_warning(message)
                print_warning(f"  {message}")
        return context
