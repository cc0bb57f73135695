"""
Adapters package for the Content Service.

Contains the HTTP client wrapper for the upstream content API. Adapters
encapsulate base URLs, timeouts and the mapping of transport failures onto
shared errors. Retry and backoff are not applied at this layer.
"""

from .upstream_client import UpstreamClient

__all__ = [
    "UpstreamClient",
]
