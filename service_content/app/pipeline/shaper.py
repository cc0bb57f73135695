"""
Shape raw upstream payloads into template view models.
"""

from typing import Any, Dict, List

from shared.errors import ShapeError
from ..resources.options import ResourceType

LIST_KEYS = ("list", "data", "items")


def _shape_item(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ShapeError(
            "Expected a single object for an item resource",
            details={"resource_type": "item", "received": type(payload).__name__},
        )
    return {"item": payload}


def _extract_list(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in LIST_KEYS:
            if isinstance(payload.get(key), list):
                return payload[key]
    raise ShapeError(
        "Expected a collection for a list resource",
        details={"resource_type": "list", "received": type(payload).__name__},
    )


def _shape_list(payload: Any) -> Dict[str, Any]:
    items = _extract_list(payload)
    meta: Dict[str, Any] = {}
    if isinstance(payload, dict):
        meta = {key: value for key, value in payload.items() if value is not items}
    return {"items": items, "count": len(items), "meta": meta}


def _shape_multi(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict) or not payload:
        raise ShapeError(
            "Expected a mapping of named payloads for a multi resource",
            details={"resource_type": "multi", "received": type(payload).__name__},
        )
    for name, part in payload.items():
        if not isinstance(part, (dict, list)):
            raise ShapeError(
                f"Multi part '{name}' is neither an object nor a collection",
                details={"resource_type": "multi", "part": name, "received": type(part).__name__},
            )
    view_model = dict(payload)
    view_model["parts"] = payload
    return view_model


_SHAPERS = {
    ResourceType.ITEM: _shape_item,
    ResourceType.LIST: _shape_list,
    ResourceType.MULTI: _shape_multi,
}


def shape(resource_type: ResourceType, raw_payload: Any) -> Dict[str, Any]:
    """Transform ``raw_payload`` for ``resource_type``; pure, no I/O."""
    shaper = _SHAPERS.get(ResourceType(resource_type))
    if shaper is None:
        raise ShapeError(
            f"Resource type '{ResourceType(resource_type).value}' has no data shape",
            details={"resource_type": ResourceType(resource_type).value},
        )
    return shaper(raw_payload)
