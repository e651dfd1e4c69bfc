"""Standard plugin set.

Every plugin is registered on every run; ``can_handle`` decides whether it
takes part.  ``standard_plugins()`` returns fresh instances in registration
order.
"""

from stackgen.core.plugin import GeneratorPlugin
from stackgen.plugins.addons import AddonsPlugin
from stackgen.plugins.cleanup import CleanupPlugin
from stackgen.plugins.dependencies import DependenciesPlugin
from stackgen.plugins.entry_point import EntryPointPlugin
from stackgen.plugins.files import FilesPlugin
from stackgen.plugins.formatter import FormatterPlugin
from stackgen.plugins.git import GitPlugin
from stackgen.plugins.integration import IntegrationPlugin
from stackgen.plugins.output_check import OutputCheckPlugin
from stackgen.plugins.package_json import PackageJsonPlugin
from stackgen.plugins.readme import ReadmePlugin

__all__ = [
    "AddonsPlugin",
    "CleanupPlugin",
    "DependenciesPlugin",
    "EntryPointPlugin",
    "FilesPlugin",
    "FormatterPlugin",
    "GitPlugin",
    "IntegrationPlugin",
    "OutputCheckPlugin",
    "PackageJsonPlugin",
    "ReadmePlugin",
    "standard_plugins",
]


def standard_plugins() -> list[GeneratorPlugin]:
    return [
        PackageJsonPlugin(),
        FilesPlugin(),
        IntegrationPlugin(),
        AddonsPlugin(),
        DependenciesPlugin(),
        EntryPointPlugin(),
        ReadmePlugin(),
        FormatterPlugin(),
        GitPlugin(),
        OutputCheckPlugin(),
        CleanupPlugin(),
    ]
