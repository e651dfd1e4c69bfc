"""Dependency installation with the selected package manager."""

from __future__ import annotations

import shutil

from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin
from stackgen.utils import print_step, run_command


class DependenciesPlugin(StandardPlugin):
    """Runs ``<package manager> install`` once ``package.json`` is on disk.

    Non-fatal: a missing package manager or a failed install leaves a
    complete project behind, so the run still succeeds with a warning.
    """

    name = "dependencies"
    priority = 50
    fatal = False
    dependencies = ("package-json",)

    def can_handle(self, context: PluginContext) -> bool:
        return context.config.install

    @hook(Stage.POST_GENERATE)
    async def install(self, context: PluginContext) -> PluginContext:
        pm = context.config.package_manager
        executable = shutil.which(pm)
        if executable is None:
            raise RuntimeError(f"'{pm}' was not found on PATH; run '{pm} install' manually")

        print_step(f"{pm} install (timeout {context.settings.install_timeout}s)")
        rc, _stdout, stderr = await run_command(
            [executable, "install"],
            cwd=context.project_dir,
            timeout=context.settings.install_timeout,
        )
        context.data["install"] = {"command": f"{pm} install", "returncode": rc, "ok": rc == 0}
        if rc != 0:
            tail = stderr.strip().splitlines()[-1:] or ["no output"]
            raise RuntimeError(f"'{pm} install' exited with {rc}: {tail[0]}")
        return context
