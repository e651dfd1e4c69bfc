"""Git repository initialisation."""

from __future__ import annotations

import shutil

from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin
from stackgen.utils import run_command


class GitPlugin(StandardPlugin):
    """Runs ``git init`` in the project directory.

    Creating the first commit is left to the user.
    """

    name = "git"
    priority = 80
    fatal = False

    def can_handle(self, context: PluginContext) -> bool:
        return context.config.git

    @hook(Stage.POST_GENERATE)
    async def init_repository(self, context: PluginContext) -> PluginContext:
        if (context.project_dir / ".git").exists():
            context.data["git"] = "existing"
            return context
        git = shutil.which("git")
        if git is None:
            raise RuntimeError("git was not found on PATH; repository not initialised")

        rc, _stdout, stderr = await run_command(
            [git, "init"], cwd=context.project_dir, timeout=context.settings.git_timeout
        )
        if rc != 0:
            raise RuntimeError(f"git init exited with {rc}: {stderr.strip()}")
        context.data["git"] = "initialized"
        return context
