"""Stage pipeline.

Runs the fixed generation stages in order:

Stage 1: INIT          -- Plugins seed shared data (manifest skeleton).
Stage 2: PRE_GENERATE  -- Plugins decide layouts, ports, template layers.
Stage 3: GENERATE      -- Templates and config files are written.
Stage 4: POST_GENERATE -- Manifest, README, install, format, git.
Stage 5: VALIDATE      -- The written project is checked.
Stage 6: CLEANUP       -- Always runs; rolls back a failed run.

The pipeline performs no file I/O itself; everything on disk is done by
plugins.
"""

from __future__ import annotations

import time

from stackgen.core.context import GenerationResult, PluginContext
from stackgen.core.manager import PluginManager
from stackgen.core.stages import STANDARD_STAGES, Stage
from stackgen.utils import (
    format_duration,
    print_error,
    print_stage_header,
    print_success,
    print_warning,
)


class GeneratorPipeline:
    """Drives a ``PluginManager`` through every stage of a single run.

    Attributes:
        manager: The plugin registry whose handlers are dispatched.
        stages: The ordered stages; CLEANUP must be last.
    """

    def __init__(
        self,
        manager: PluginManager,
        stages: tuple[Stage, ...] = STANDARD_STAGES,
    ) -> None:
        if not stages or stages[-1] is not Stage.CLEANUP:
            raise ValueError("CLEANUP must be the final pipeline stage")
        self.manager = manager
        self.stages = stages

    async def run(self, context: PluginContext) -> GenerationResult:
        """Run all stages against *context* and build the result.

        A fatal plugin failure, or any other error escaping a stage, marks
        the context as failed and jumps straight to CLEANUP.  Errors raised
        during CLEANUP after such a failure are downgraded to warnings so
        the original error is the one reported.
        """
        pipeline_start = time.monotonic()
        timings: dict[str, float] = {}
        total = len(self.stages)

        for index, stage in enumerate(self.stages, start=1):
            if context.failed and stage is not Stage.CLEANUP:
                continue

            print_stage_header(index, total, stage.name)
            stage_start = time.monotonic()
            try:
                await self.manager.run_stage(stage, context)
            except Exception as exc:
                if context.failed:
                    message = f"Cleanup after failure raised: {exc}"
                    context.add_warning(message)
                    print_warning(message)
                else:
                    context.failed = True
                    context.error = exc
                    context.add_error(str(exc))
                    print_error(f"{stage.name} FAILED: {exc}")
            else:
                print_success(
                    f"{stage.name} completed in {format_duration(time.monotonic() - stage_start)}"
                )
            finally:
                timings[stage.name] = time.monotonic() - stage_start

        return GenerationResult.from_context(
            context,
            stage_timings=timings,
            duration=time.monotonic() - pipeline_start,
        )
