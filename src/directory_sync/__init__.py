"""Directory Sync - department and user synchronisation for the Directory API."""

__version__ = "0.1.0"
