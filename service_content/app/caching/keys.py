"""
Deterministic cache keys for request descriptors.
"""

import hashlib
import json

from ..resources.resolver import RequestDescriptor

DEFAULT_PREFIX = "content"


def fingerprint(descriptor: RequestDescriptor, prefix: str = DEFAULT_PREFIX) -> str:
    """Generate the cache key for a descriptor.

    Only content identity participates: resource type, upstream path(s) and
    the identity-affecting query parameters. Template, method and headers do
    not, so a read route and its invalidation route share the same key.
    """
    identity = [
        descriptor.resource_type.value,
        descriptor.upstream_path,
        sorted([list(part) for part in descriptor.upstream_parts]),
        sorted([list(pair) for pair in descriptor.query]),
    ]
    canonical = json.dumps(identity, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{prefix}:{descriptor.resource_type.value}:{digest}"
