"""
Custom field schema registry.

OpenProject exposes installation-specific custom fields as ``customField<id>``
(single value) or ``customFields<id>`` (multi value) properties. Their names and
types only show up in schema payloads, which list responses embed under
``_embedded.schemas``. The registry accumulates what has been seen so far.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

log = logging.getLogger("openproject_hal.custom_fields")

CUSTOM_FIELD_KEY_RE = re.compile(r"^customFields?(?P<id>\d+)$")

# Declared schema types that accept several values, e.g. "[]CustomOption", "[]User"
MULTI_VALUE_MARKERS = ("[]", "::Multi")


def parse_custom_field_key(key: str) -> Optional[int]:
    """
    Returns the numeric id of a ``customField<id>`` / ``customFields<id>`` key.
    Example: parse_custom_field_key('customFields8') -> 8
    """
    if not isinstance(key, str):
        return None
    m = CUSTOM_FIELD_KEY_RE.match(key)
    if not m:
        return None
    return int(m.group("id"))


def is_multi_type(declared_type: Optional[str]) -> bool:
    if not declared_type:
        return False
    return any(marker in declared_type for marker in MULTI_VALUE_MARKERS)


def custom_field_key(cf_id: int, *, multi: bool) -> str:
    return f"customFields{cf_id}" if multi else f"customField{cf_id}"


class CustomFieldKind(str, Enum):
    STRING = "String"
    TEXT = "Text"
    INTEGER = "Integer"
    FLOAT = "Float"
    BOOLEAN = "Boolean"
    DATE = "Date"
    OPTION_SINGLE = "CustomOption"
    OPTION_MULTI = "[]CustomOption"
    REFERENCE = "Reference"

    @classmethod
    def from_openproject_type(cls, declared_type: Optional[str]) -> "CustomFieldKind":
        if declared_type == "CustomOption::Multi":
            return cls.OPTION_MULTI
        for kind in cls:
            if kind is not cls.REFERENCE and kind.value == declared_type:
                return kind
        return cls.REFERENCE


class CustomFieldDefinition(BaseModel):
    id: int
    api_key: str
    name: Optional[str] = None
    type: Optional[str] = None
    required: Optional[bool] = None
    raw: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_multi(self) -> bool:
        return is_multi_type(self.type)

    @property
    def kind(self) -> CustomFieldKind:
        return CustomFieldKind.from_openproject_type(self.type)

    @classmethod
    def from_schema_property(
        cls, key: str, fragment: Mapping[str, Any]
    ) -> Optional["CustomFieldDefinition"]:
        cf_id = parse_custom_field_key(key)
        if cf_id is None:
            return None
        name = fragment.get("name")
        declared_type = fragment.get("type")
        required = fragment.get("required")
        return cls(
            id=cf_id,
            api_key=key,
            name=name if isinstance(name, str) else None,
            type=declared_type if isinstance(declared_type, str) else None,
            required=required if isinstance(required, bool) else None,
            raw=dict(fragment),
        )

    def merged_with(self, incoming: "CustomFieldDefinition") -> "CustomFieldDefinition":
        """Keeps id and api_key; other attributes prefer non-empty incoming values."""
        return CustomFieldDefinition(
            id=self.id,
            api_key=self.api_key,
            name=incoming.name if _has_text(incoming.name) else self.name,
            type=incoming.type if _has_text(incoming.type) else self.type,
            required=incoming.required
            if incoming.required is not None
            else self.required,
            raw=incoming.raw if incoming.raw is not None else self.raw,
        )


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class CustomFieldRegistry:
    """
    Thread-safe ``id -> CustomFieldDefinition`` store for one client session.

    Definitions are created the first time a schema mentions an id and refined
    on every later observation; they are never removed.
    """

    def __init__(self) -> None:
        self._gate = threading.Lock()
        self._by_id: Dict[int, CustomFieldDefinition] = {}

    def __len__(self) -> int:
        with self._gate:
            return len(self._by_id)

    def __contains__(self, cf_id: object) -> bool:
        with self._gate:
            return cf_id in self._by_id

    def try_get(self, cf_id: int) -> Tuple[Optional[CustomFieldDefinition], bool]:
        with self._gate:
            definition = self._by_id.get(cf_id)
        return definition, definition is not None

    def get(self, cf_id: int) -> Optional[CustomFieldDefinition]:
        definition, _ = self.try_get(cf_id)
        return definition

    def is_multi(self, cf_id: int) -> bool:
        definition = self.get(cf_id)
        return definition.is_multi if definition is not None else False

    def snapshot(self) -> Dict[int, CustomFieldDefinition]:
        with self._gate:
            return dict(self._by_id)

    def merge(self, definition: CustomFieldDefinition) -> CustomFieldDefinition:
        with self._gate:
            existing = self._by_id.get(definition.id)
            merged = definition if existing is None else existing.merged_with(definition)
            self._by_id[definition.id] = merged
        return merged

    def import_from_schema(self, schema: Mapping[str, Any]) -> int:
        """Merges every custom field property of one schema object."""
        imported = 0
        for key, fragment in schema.items():
            if not isinstance(fragment, Mapping):
                continue
            definition = CustomFieldDefinition.from_schema_property(key, fragment)
            if definition is None:
                continue
            self.merge(definition)
            imported += 1
        return imported

    def import_from_collection_payload(
        self, payload: Union[str, bytes, Mapping[str, Any], None]
    ) -> int:
        """
        Best-effort import of ``_embedded.schemas._embedded.elements`` from a
        collection response body. Never raises: a missing or malformed schema
        section imports nothing and returns 0.
        """
        try:
            return self._import_collection(payload)
        except Exception as exc:  # import is best-effort by contract
            log.debug(
                "schema_import_skipped",
                extra={"error_type": type(exc).__name__},
            )
            return 0

    def _import_collection(
        self, payload: Union[str, bytes, Mapping[str, Any], None]
    ) -> int:
        if payload is None:
            return 0
        if isinstance(payload, (str, bytes)):
            if not payload.strip():
                return 0
            payload = json.loads(payload)
        if not isinstance(payload, Mapping):
            return 0

        schemas = (payload.get("_embedded") or {}).get("schemas") or {}
        elements = (schemas.get("_embedded") or {}).get("elements")
        if not isinstance(elements, list):
            return 0

        imported = 0
        for schema in elements:
            if isinstance(schema, Mapping):
                imported += self.import_from_schema(schema)
        if imported:
            log.debug("schema_import", extra={"fields": imported})
        return imported


__all__ = [
    "CUSTOM_FIELD_KEY_RE",
    "MULTI_VALUE_MARKERS",
    "CustomFieldDefinition",
    "CustomFieldKind",
    "CustomFieldRegistry",
    "custom_field_key",
    "is_multi_type",
    "parse_custom_field_key",
]
