"""Wire layer: the request dispatcher and one function per store verb."""

from . import operations
from .dispatcher import Operation, RequestDispatcher, is_successful

__all__ = ["operations", "Operation", "RequestDispatcher", "is_successful"]
