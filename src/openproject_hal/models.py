from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from . import hal
from .utils.durations import iso_duration_to_minutes

T = TypeVar("T")


class HalLink(BaseModel):
    href: Optional[str] = None
    title: Optional[str] = None
    method: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    def display(self) -> Optional[str]:
        """Title when present, href otherwise."""
        if self.title and self.title.strip():
            return self.title
        if self.href and self.href.strip():
            return self.href
        return None


class HalResource(BaseModel):
    """
    Base model that handles HAL+JSON patterns.
    _links stays loosely typed because OpenProject uses:
      - single link objects
      - arrays of link objects
      - empty arrays
      - href can be null in some relations
    """

    resource_type: Optional[str] = Field(default=None, alias="_type")
    links: Dict[str, Any] = Field(default_factory=dict, alias="_links")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def get_links(self, rel: str) -> List[HalLink]:
        return [
            HalLink.model_validate(link)
            for link in hal.get_links({"_links": self.links}, rel)
        ]

    def get_link(self, rel: str) -> Optional[HalLink]:
        links = self.get_links(rel)
        return links[0] if links else None

    def link_href(self, rel: str) -> Optional[str]:
        return hal.get_link_href({"_links": self.links}, rel)

    def link_title(self, rel: str) -> Optional[str]:
        return hal.get_link_title({"_links": self.links}, rel)

    def link_id(self, rel: str) -> Optional[int]:
        return hal.parse_id_from_href(self.link_href(rel))

    def first_link_with_prefix(self, prefix: str) -> Optional[HalLink]:
        """First link of the first relation whose name starts with prefix."""
        for rel in self.links:
            if rel.startswith(prefix):
                return self.get_link(rel)
        return None


class HalCollectionEmbedded(BaseModel, Generic[T]):
    elements: List[T] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class HalCollection(HalResource, Generic[T]):
    """OpenProject collection envelope: total, count, pageSize, offset, elements."""

    total: int = 0
    count: int = 0
    page_size: int = Field(default=0, alias="pageSize")
    offset: int = 0
    embedded: Optional[HalCollectionEmbedded[T]] = Field(
        default=None, alias="_embedded"
    )

    @property
    def elements(self) -> List[T]:
        return self.embedded.elements if self.embedded is not None else []


class Formattable(BaseModel):
    format: Optional[str] = None
    raw: Optional[str] = None
    html: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class WorkPackage(HalResource):
    """
    Work package resource. Every property without a named field below
    (custom fields, percentageDone, estimatedTime, ...) lands in ``extra``.
    """

    id: int
    subject: Optional[str] = None
    description: Optional[Formattable] = None
    lock_version: Optional[int] = Field(default=None, alias="lockVersion")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    embedded: Dict[str, Any] = Field(default_factory=dict, alias="_embedded")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def extra(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})

    @property
    def description_text(self) -> str:
        if self.description is not None and self.description.raw:
            return self.description.raw
        return ""


class Project(HalResource):
    id: int
    identifier: Optional[str] = None
    name: str
    active: bool = True
    public: Optional[bool] = None
    description: Optional[Formattable] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class Relation(HalResource):
    id: int
    name: Optional[str] = None
    type: Optional[str] = None  # "relates", "follows", "duplicates", ...
    reverse_type: Optional[str] = Field(default=None, alias="reverseType")
    lag: Optional[int] = None
    description: Optional[str] = None

    @property
    def from_id(self) -> Optional[int]:
        return self.link_id("from")

    @property
    def to_id(self) -> Optional[int]:
        return self.link_id("to")


class User(HalResource):
    id: int
    name: Optional[str] = None
    login: Optional[str] = None
    email: Optional[str] = None
    admin: Optional[bool] = None
    status: Optional[str] = None  # "active", "locked", "invited", ...
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class Version(HalResource):
    id: int
    name: str
    description: Optional[Formattable] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    status: Optional[str] = None  # "open", "locked", "closed"
    sharing: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @property
    def defining_project_id(self) -> Optional[int]:
        return self.link_id("definingProject")


class TimeEntry(HalResource):
    """
    Logged time. ``hours`` stays the ISO 8601 duration the API sends
    ("PT2H30M"); ``minutes`` converts it.
    """

    id: int
    hours: Optional[str] = None
    spent_on: Optional[str] = Field(default=None, alias="spentOn")
    comment: Optional[Formattable] = None
    ongoing: Optional[bool] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @property
    def minutes(self) -> Optional[int]:
        return iso_duration_to_minutes(self.hours)

    @property
    def work_package_id(self) -> Optional[int]:
        # newer servers link the logged-on resource as "entity"
        return self.link_id("workPackage") or self.link_id("entity")

    @property
    def project_id(self) -> Optional[int]:
        return self.link_id("project")

    @property
    def user_id(self) -> Optional[int]:
        return self.link_id("user")

    @property
    def activity_id(self) -> Optional[int]:
        return self.link_id("activity")


__all__ = [
    "HalLink",
    "HalResource",
    "HalCollection",
    "HalCollectionEmbedded",
    "Formattable",
    "WorkPackage",
    "Project",
    "Relation",
    "User",
    "Version",
    "TimeEntry",
]
