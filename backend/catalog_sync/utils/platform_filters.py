"""
Platform list filters — query params for exact-match lookups.

The platform's `filter` param is a ';'-separated list of `field=value`
conditions with no escaping, so a value containing ';' cannot be expressed
there. Such a value is sent as the full-text `search` param instead; the
platform then returns a superset, and callers compare rows exactly.
Version: 1.0.0
"""
from typing import Any, Dict

FILTER_SEPARATOR = ";"

# Page size when falling back to full-text search
SEARCH_LIMIT = 100


def lookup_params(conditions: Dict[str, Any], limit: int) -> Dict[str, Any]:
    """Build `filter` / `search` / `limit` params for conditions."""
    plain = []
    unsafe = []
    for field, value in conditions.items():
        value = str(value)
        if FILTER_SEPARATOR in value:
            unsafe.append(value)
        else:
            plain.append(f"{field}={value}")

    params: Dict[str, Any] = {"limit": limit}
    if plain:
        params["filter"] = FILTER_SEPARATOR.join(plain)
    if unsafe:
        params["search"] = unsafe[0]
        params["limit"] = max(limit, SEARCH_LIMIT)
    return params
