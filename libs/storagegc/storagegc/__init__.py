"""Storage garbage collection and image re-encoding for the cafe catalog backend."""

__version__ = "0.1.0"
