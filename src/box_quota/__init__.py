"""Bulk storage quota updater for enterprise user directories."""

__version__ = "0.1.0"
