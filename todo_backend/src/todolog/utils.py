from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, Dict, Mapping, Optional


# PUBLIC_INTERFACE
def page_count(total: int, limit: int) -> int:
    """Number of pages of size `limit` needed to hold `total` items."""
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


# PUBLIC_INTERFACE
def pagination_envelope(page: int, limit: int, total: int) -> Dict[str, int]:
    """
    Build the standard pagination block for page-numbered list endpoints.

    Args:
        page: The 1-indexed page that was requested.
        limit: The page size used for the query.
        total: Total number of items that match the query (ignoring pagination).

    Returns:
        Dict with keys: page, limit, total, pages.
    """
    return {
        "page": int(page),
        "limit": int(limit),
        "total": int(total),
        "pages": page_count(total, limit),
    }


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


# PUBLIC_INTERFACE
def serialize_snapshot(entity: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Serialize an entity snapshot to JSON text; None stays None."""
    if entity is None:
        return None
    return json.dumps(dict(entity), default=_json_default)
