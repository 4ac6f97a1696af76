"""Command-line surface and report rendering."""

from todo_origin.ui.render import BlameProgress, CLIRenderer, format_relative_time

__all__ = ["BlameProgress", "CLIRenderer", "format_relative_time"]
