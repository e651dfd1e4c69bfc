"""Generation engine: plugins, stage pipeline and generator facade.

Usage::

    from stackgen.core import ModularGenerator

    result = await ModularGenerator().generate({"projectName": "my-app", "frontend": ["react"]})
    print(result.success, result.file_paths)
"""

from stackgen.core.context import FileRecord, GenerationResult, PluginContext
from stackgen.core.generator import BaseGenerator, ModularGenerator
from stackgen.core.manager import PluginManager
from stackgen.core.pipeline import GeneratorPipeline
from stackgen.core.plugin import GeneratorPlugin, hook
from stackgen.core.stages import STANDARD_STAGES, RunState, Stage

__all__ = [
    "BaseGenerator",
    "FileRecord",
    "GenerationResult",
    "GeneratorPipeline",
    "GeneratorPlugin",
    "ModularGenerator",
    "PluginContext",
    "PluginManager",
    "RunState",
    "STANDARD_STAGES",
    "Stage",
    "hook",
]
