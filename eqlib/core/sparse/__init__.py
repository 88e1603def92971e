"""Sparse nonzero patterns."""

from .structure import NOT_FOUND, InvalidStructureError, SparseStructure

__all__ = [
    "NOT_FOUND",
    "InvalidStructureError",
    "SparseStructure",
]
