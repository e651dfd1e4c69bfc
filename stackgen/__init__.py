"""stackgen: plugin-driven scaffolding for full-stack JavaScript projects."""

__version__ = "0.1.0"
