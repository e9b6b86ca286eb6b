"""Storage and external service integrations used by the web layer."""

from . import collections, recognition

__all__ = ["collections", "recognition"]
