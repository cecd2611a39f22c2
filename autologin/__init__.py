"""Automated login against unknown web login forms."""

__version__ = "0.1.0"
