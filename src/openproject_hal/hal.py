from typing import Any, Dict, List, Mapping, Optional


def get_links(payload: Mapping[str, Any], relation: str) -> List[Dict[str, Any]]:
    """
    Returns every link object of a relation as a list.

    HAL allows a relation to hold a bare link object or an array of them;
    a bare object is wrapped, anything absent or malformed yields [].
    """
    if not payload:
        return []
    links = payload.get("_links")
    if not isinstance(links, Mapping):
        return []
    value = links.get(relation)
    if isinstance(value, list):
        return [v for v in value if isinstance(v, dict)]
    if isinstance(value, dict):
        return [value]
    return []


def get_link(payload: Mapping[str, Any], relation: str) -> Optional[Dict[str, Any]]:
    """
    Safely retrieves the first link object of a relation from _links.
    """
    links = get_links(payload, relation)
    return links[0] if links else None


def get_link_href(payload: Mapping[str, Any], relation: str) -> Optional[str]:
    """
    Extracts the 'href' (URL) from a specific link relation.
    Example: get_link_href(wp_json, 'status') -> '/api/v3/statuses/1'
    """
    link = get_link(payload, relation)
    return link.get("href") if link else None


def get_link_title(payload: Mapping[str, Any], relation: str) -> Optional[str]:
    """
    Extracts the 'title' (readable name) from a specific link relation.
    Example: get_link_title(wp_json, 'status') -> 'In Progress'
    """
    link = get_link(payload, relation)
    return link.get("title") if link else None


def get_embedded(payload: Mapping[str, Any], relation: str) -> Any:
    if not payload or not isinstance(payload.get("_embedded"), Mapping):
        return None
    return payload["_embedded"].get(relation)


def embedded_elements(payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """
    Extract the elements list from a HAL collection payload.
    Raises ValueError if _embedded.elements is present but not a list.
    """
    embedded = payload.get("_embedded") or {}
    elements = embedded.get("elements", []) if isinstance(embedded, Mapping) else []
    if not isinstance(elements, list):
        raise ValueError("Expected _embedded.elements to be a list.")
    return [e for e in elements if isinstance(e, dict)]


def parse_id_from_href(href: Optional[str]) -> Optional[int]:
    """
    Extracts the ID from a RESTful URL.
    Example: '/api/v3/work_packages/42' -> 42
    """
    if not href:
        return None
    try:
        return int(href.strip("/").split("/")[-1])
    except (ValueError, IndexError):
        return None


def api_path(href: str, marker: str = "/api/v3/") -> str:
    """Strips scheme and host from an absolute href, leaving the /api/v3/ path."""
    if href.startswith(marker):
        return href
    idx = href.find(marker)
    return href[idx:] if idx >= 0 else href


__all__ = [
    "get_links",
    "get_link",
    "get_link_href",
    "get_link_title",
    "get_embedded",
    "embedded_elements",
    "parse_id_from_href",
    "api_path",
]
