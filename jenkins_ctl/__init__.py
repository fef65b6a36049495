"""Command-line controller for a Jenkins server."""

__version__ = "0.1.0"
