"""plancraft: lesson plan update pipeline with section-scoped rewrites and auto-save."""

__version__ = "0.3.0"
