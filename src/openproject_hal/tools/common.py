from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Optional, TypeVar

from openproject_hal.client import OpenProjectClient, OpenProjectClientError
from openproject_hal.hal import get_embedded

Q = TypeVar("Q", bound="FilterQuery")


class FilterQuery:
    """Accumulates OpenProject filters and renders the JSON ``filters`` parameter."""

    def __init__(self) -> None:
        self._filters: List[Dict[str, Any]] = []

    def where(self: Q, name: str, operator: str, values: List[Any]) -> Q:
        self._filters.append(
            {name: {"operator": operator, "values": [_filter_value(v) for v in values]}}
        )
        return self

    def __bool__(self) -> bool:
        return bool(self._filters)

    def build(self) -> str:
        return json.dumps(self._filters)


def _filter_value(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def paging_params(
    page_size: int, page: int, query: Optional[FilterQuery] = None
) -> Dict[str, Any]:
    params: Dict[str, Any] = {"pageSize": page_size, "offset": page}
    if query:
        params["filters"] = query.build()
    return params


class FormValidationError(OpenProjectClientError):
    """A /form pre-flight call reported validation errors."""

    def __init__(self, messages: Dict[str, str], form: Dict[str, Any]):
        joined = "; ".join(f"{k}: {v}" for k, v in messages.items())
        super().__init__(f"Validation failed: {joined}")
        self.messages = messages
        self.form = form


def validation_messages(form: Dict[str, Any]) -> Dict[str, str]:
    errors = get_embedded(form, "validationErrors")
    if not isinstance(errors, dict):
        return {}
    messages: Dict[str, str] = {}
    for field, error in errors.items():
        if isinstance(error, dict):
            messages[field] = str(error.get("message") or "invalid")
    return messages


async def validate_form(
    client: OpenProjectClient,
    url: str,
    payload: Dict[str, Any],
    *,
    tool: str,
    error_cls: type = FormValidationError,
) -> Dict[str, Any]:
    """POST the payload to a form endpoint; raise ``error_cls`` if it reports errors."""
    form = await client.post(url, json=payload, tool=tool)
    messages = validation_messages(form)
    if messages:
        raise error_cls(messages, form)
    return form

__all__ = [
    "FilterQuery",
    "FormValidationError",
    "paging_params",
    "validate_form",
    "validation_messages",
]
