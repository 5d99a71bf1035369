"""claude-manager — concurrent interactive CLI sessions with live status."""

__version__ = "0.1.0"
