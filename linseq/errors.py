"""Exception types raised by the numeric core.

Each error derives from the builtin exception a caller would naturally expect,
so code that already handles `ValueError`, `OSError` or `IndexError` keeps
working unchanged.
"""
from __future__ import annotations

__all__ = ["CodecError", "ModelFormatError", "FeatureIndexError"]


class CodecError(ValueError):
    """A feature-vector buffer is too small, overrun, or holds a malformed record."""


class ModelFormatError(OSError):
    """A persisted model stream is truncated or malformed."""


class FeatureIndexError(IndexError):
    """A feature index does not fit the model's weight vector."""
