"""
Locator helpers — platform hrefs to entity ids and back.

A locator is the href of a nested resource, e.g.
    https://api.example/api/remap/1.2/entity/customentity/{listId}/{elementId}
Version: 1.0.0
"""
from typing import List, Optional
from urllib.parse import urlsplit


def locator_segments(href: Optional[str]) -> List[str]:
    """Non-empty path segments of href; scheme, host and query are dropped."""
    if not href:
        return []
    return [part for part in urlsplit(href).path.split("/") if part]


def extract_entity_id(href: Optional[str]) -> Optional[str]:
    """Last path segment of href (the entity id), or None."""
    segments = locator_segments(href)
    return segments[-1] if segments else None


def reference_href(reference: Optional[dict]) -> Optional[str]:
    """meta.href of an embedded reference object, if present."""
    if not isinstance(reference, dict):
        return None
    meta = reference.get("meta")
    if not isinstance(meta, dict):
        return None
    return meta.get("href")


def build_reference(api_url: str, path: str, entity_type: str) -> dict:
    """Reference object in the platform's meta shape."""
    return {
        "meta": {
            "href": f"{api_url.rstrip('/')}/{path.lstrip('/')}",
            "type": entity_type,
            "mediaType": "application/json",
        }
    }
