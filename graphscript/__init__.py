"""graphscript: compile workflow graphs into Apps Script."""

__version__ = "0.1.0"
