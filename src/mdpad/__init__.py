"""mdpad: tabbed Markdown editor backend for a pywebview window."""

__version__ = "0.1.0"
