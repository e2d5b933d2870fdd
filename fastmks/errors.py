from __future__ import annotations


class FastMKSError(Exception):
    """Base class for all errors raised by fastmks."""


class InvalidArgument(FastMKSError, ValueError):
    """A caller-supplied argument violates a precondition (k, shapes, sizes)."""


class ConstructionError(FastMKSError, ValueError):
    """A kernel tree cannot be built from the supplied points."""


class NumericalError(FastMKSError, ArithmeticError):
    """A kernel evaluation produced a non-finite value."""


__all__ = [
    "FastMKSError",
    "InvalidArgument",
    "ConstructionError",
    "NumericalError",
]
