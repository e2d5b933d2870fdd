"""Public search facade for fastmks."""

from .search import FastMaxKernelSearch

__all__ = ["FastMaxKernelSearch"]
