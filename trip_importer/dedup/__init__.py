"""Duplicate resolution against a trip's saved items."""

from .duplicate_resolver import DuplicateResolver, ResolutionResult, fail_open

__all__ = ["DuplicateResolver", "ResolutionResult", "fail_open"]
