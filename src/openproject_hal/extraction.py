"""
Per-entity custom field values.

A custom field can show up as a plain property (``customField3: "abc"``), as a
HAL relation (``_links.customFields8: [{href, title}, ...]``) or, in malformed
data, both. The extractor reconciles those into one CustomFieldValue per id.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from . import hal
from .custom_fields import CustomFieldRegistry, parse_custom_field_key
from .models import HalLink, WorkPackage

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
ISO_DATETIME_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?$"
)


@dataclass
class CustomFieldValue:
    id: int
    name: Optional[str] = None
    value: Any = None
    has_value: bool = False
    links: List[HalLink] = field(default_factory=list)

    def set_value(self, token: Any) -> None:
        if self.has_value:
            self.value = merge_scalar_tokens(self.value, token)
        else:
            self.value = token
            self.has_value = True


@dataclass(frozen=True)
class CustomFieldTyped:
    id: int
    name: Optional[str]
    value: Any

    @classmethod
    def from_value(cls, cf: CustomFieldValue) -> "CustomFieldTyped":
        return cls(id=cf.id, name=cf.name, value=typed_value(cf))


def merge_scalar_tokens(existing: Any, incoming: Any) -> Any:
    """
    Merges two tokens seen for the same field id:
    list+list concatenates, list+scalar appends, scalar+list prepends,
    scalar+scalar keeps the first one.
    """
    if isinstance(existing, list) and isinstance(incoming, list):
        return [*existing, *incoming]
    if isinstance(existing, list):
        return [*existing, incoming]
    if isinstance(incoming, list):
        return [existing, *incoming]
    return existing


def _convert_token(token: Any) -> Any:
    if token is None or isinstance(token, (bool, int, float, date)):
        return token
    if isinstance(token, str):
        if ISO_DATE_RE.match(token):
            try:
                return date.fromisoformat(token)
            except ValueError:
                return token
        if ISO_DATETIME_RE.match(token):
            try:
                return datetime.fromisoformat(token.replace("Z", "+00:00"))
            except ValueError:
                return token
        return token
    return json.dumps(token, default=str)


def typed_value(cf: CustomFieldValue) -> Any:
    """Best-matching Python value for a field; link titles when no scalar is set."""
    if cf.has_value:
        return _convert_token(cf.value)
    return [text for text in (link.display() for link in cf.links) if text]


def link_titles(cf: CustomFieldValue) -> List[str]:
    return [link.title for link in cf.links if link.title and link.title.strip()]


def extract_custom_fields(
    extra: Optional[Mapping[str, Any]],
    links: Optional[Mapping[str, Any]],
    registry: Optional[CustomFieldRegistry] = None,
) -> Dict[int, CustomFieldValue]:
    result: Dict[int, CustomFieldValue] = {}

    def slot(cf_id: int) -> CustomFieldValue:
        if cf_id not in result:
            result[cf_id] = CustomFieldValue(id=cf_id)
        return result[cf_id]

    for key, token in (extra or {}).items():
        cf_id = parse_custom_field_key(key)
        if cf_id is not None:
            slot(cf_id).set_value(token)

    for rel in links or {}:
        cf_id = parse_custom_field_key(rel)
        if cf_id is None:
            continue
        rel_links = hal.get_links({"_links": links}, rel)
        slot(cf_id).links.extend(HalLink.model_validate(link) for link in rel_links)

    if registry is not None:
        for cf_id, cf in result.items():
            definition = registry.get(cf_id)
            if definition is not None:
                cf.name = definition.name

    return result


class CustomFieldValueExtractor:
    def __init__(self, registry: CustomFieldRegistry):
        self.registry = registry

    def extract(self, work_package: WorkPackage) -> Dict[int, CustomFieldValue]:
        return extract_custom_fields(
            work_package.extra, work_package.links, self.registry
        )

    def typed(self, work_package: WorkPackage) -> Dict[int, CustomFieldTyped]:
        return {
            cf_id: CustomFieldTyped.from_value(cf)
            for cf_id, cf in self.extract(work_package).items()
        }


__all__ = [
    "CustomFieldValue",
    "CustomFieldTyped",
    "CustomFieldValueExtractor",
    "extract_custom_fields",
    "link_titles",
    "merge_scalar_tokens",
    "typed_value",
]
