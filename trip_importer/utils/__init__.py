"""Utility functions for the backend."""

from trip_importer.utils.messages import build_import_confirmation, select_template

__all__ = ["build_import_confirmation", "select_template"]
