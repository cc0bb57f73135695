"""
Domain utilities for the Content Service.

Holds the control-plane cache invalidator and the error responder, the two
pieces that sit beside the read pipeline rather than inside it.
"""

from .error_responder import ErrorResponder, accepts_html
from .invalidation import InvalidationRequest, RouteCacheInvalidator

__all__ = [
    "ErrorResponder",
    "InvalidationRequest",
    "RouteCacheInvalidator",
    "accepts_html",
]
