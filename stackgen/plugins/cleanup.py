"""Rollback of a failed run."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin
from stackgen.utils import print_step


class CleanupPlugin(StandardPlugin):
    """Removes what a failed run created.

    Only files that did not exist before the run are deleted; files that
    were overwritten in merge mode stay.  The project directory itself is
    removed when this run created it.  Nothing happens after a successful
    run or when ``GeneratorSettings.rollback_on_failure`` is off.
    """

    name = "cleanup"
    priority = 90
    fatal = False

    @hook(Stage.CLEANUP)
    async def rollback(self, context: PluginContext) -> PluginContext:
        if not context.failed or not context.settings.rollback_on_failure:
            return context

        removed = await asyncio.to_thread(self._remove_created, context)
        context.data["rolled_back"] = removed
        print_step(f"rolled back {len(removed)} file(s)")
        return context

    def _remove_created(self, context: PluginContext) -> list[str]:
        root = context.project_dir
        created = sorted({record.path for record in context.files if record.created})
        removed: list[str] = []
        for rel in created:
            path = root / rel
            if path.is_file() or path.is_symlink():
                path.unlink()
                removed.append(rel)
                _prune_empty_parents(path.parent, root)

        if context.data.get("created_project_dir") and root.exists():
            shutil.rmtree(root)
        return removed


def _prune_empty_parents(directory: Path, root: Path) -> None:
    while directory != root and root in directory.parents:
        if any(directory.iterdir()):
            return
        directory.rmdir()
        directory = directory.parent
