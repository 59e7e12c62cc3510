from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .custom_fields import CustomFieldRegistry, parse_custom_field_key
from .extraction import CustomFieldTyped, CustomFieldValue, extract_custom_fields
from .models import WorkPackage

log = logging.getLogger("openproject_hal.facade")


class WorkPackageFacade:
    """
    Flattened, name-keyed view over one work package.

    Three sources feed ``flattened_fields``, in precedence order:
      1. main fields (Status, OpType, Type, Parent, Subject, Description)
      2. extension properties that are not custom fields
      3. custom fields, keyed by their registry display name
    A later source never overwrites an earlier key; the collision is logged.
    Id, CreatedAt, UpdatedAt, DueDate and LockVersion are always set last.
    """

    def __init__(self, work_package: WorkPackage, registry: CustomFieldRegistry):
        self._wp = work_package
        self._registry = registry

        self.status: Optional[str] = self._first_link_title("status")
        self.op_type: Optional[str] = self._first_link_title("type")
        self.parent: Optional[str] = self._first_link_title("parent")

        self.custom_field_values: Dict[int, CustomFieldValue] = extract_custom_fields(
            work_package.extra, work_package.links, registry
        )
        self.custom_fields: Dict[str, CustomFieldTyped] = {}
        for cf in self.custom_field_values.values():
            if cf.name is None:
                continue
            if cf.name in self.custom_fields:
                self._warn_collision(cf.name, "custom_field")
                continue
            self.custom_fields[cf.name] = CustomFieldTyped.from_value(cf)

        self.flattened_fields: Dict[str, Any] = self._flatten()

    @property
    def work_package(self) -> WorkPackage:
        return self._wp

    @property
    def id(self) -> int:
        return self._wp.id

    @property
    def subject(self) -> Optional[str]:
        return self._wp.subject

    @property
    def description(self) -> Optional[str]:
        return self._wp.description.raw if self._wp.description else None

    @property
    def resource_type(self) -> Optional[str]:
        return self._wp.resource_type

    def get(self, key: str, default: Any = None) -> Any:
        return self.flattened_fields.get(key, default)

    def custom_field(self, name: str) -> Any:
        typed = self.custom_fields.get(name)
        return typed.value if typed is not None else None

    def _first_link_title(self, prefix: str) -> Optional[str]:
        link = self._wp.first_link_with_prefix(prefix)
        return link.title if link is not None else None

    def _flatten(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "Status": self.status,
            "OpType": self.op_type,
            "Type": self.resource_type,
            "Parent": self.parent,
            "Subject": self.subject,
            "Description": self.description,
        }

        for key, value in self._wp.extra.items():
            if parse_custom_field_key(key) is not None:
                continue
            if key in fields:
                self._warn_collision(key, "extension")
                continue
            fields[key] = value

        for name, typed in self.custom_fields.items():
            if name in fields:
                self._warn_collision(name, "custom_field")
                continue
            fields[name] = typed.value

        fields["Id"] = self.id
        fields["CreatedAt"] = self._wp.created_at
        fields["UpdatedAt"] = self._wp.updated_at
        fields["DueDate"] = self._wp.due_date
        fields["LockVersion"] = self._wp.lock_version
        return fields

    def _warn_collision(self, key: str, source: str) -> None:
        log.warning(
            "field_collision",
            extra={"field": key, "source": source, "work_package_id": self.id},
        )


__all__ = ["WorkPackageFacade"]
