"""
Route resource configuration and request resolution.
"""

from .options import (
    ItemOptions,
    ListOptions,
    MultiOptions,
    ResourceType,
    RouteOptions,
    StaticOptions,
    validate_options,
)
from .resolver import OriginalRequest, RequestDescriptor, resolve

__all__ = [
    "ItemOptions",
    "ListOptions",
    "MultiOptions",
    "OriginalRequest",
    "RequestDescriptor",
    "ResourceType",
    "RouteOptions",
    "StaticOptions",
    "resolve",
    "validate_options",
]
