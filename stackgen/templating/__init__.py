"""Handlebars-style template rendering and materialization.

Usage::

    from stackgen.templating import TemplateProcessor

    processor = TemplateProcessor()
    written = await processor.materialize(template_dir, project_dir, context)
"""

from stackgen.templating.handlebars import compile_template, render, translate
from stackgen.templating.processor import TemplateProcessor

__all__ = [
    "TemplateProcessor",
    "compile_template",
    "render",
    "translate",
]
