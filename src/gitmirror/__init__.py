"""gitmirror - Mirror local file changes to a Git hosting content API."""

__version__ = "0.1.0"
