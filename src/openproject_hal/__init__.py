"""openproject_hal package exports."""

from .client import (
    OpenProjectClient,
    OpenProjectClientError,
    OpenProjectHTTPError,
    OpenProjectModelValidationError,
    OpenProjectParseError,
    RetryConfig,
)
from .custom_fields import (
    CustomFieldDefinition,
    CustomFieldKind,
    CustomFieldRegistry,
    is_multi_type,
    parse_custom_field_key,
)
from .extraction import (
    CustomFieldTyped,
    CustomFieldValue,
    CustomFieldValueExtractor,
    extract_custom_fields,
)
from .facade import WorkPackageFacade
from .models import (
    HalCollection,
    HalLink,
    HalResource,
    Project,
    Relation,
    TimeEntry,
    User,
    Version,
    WorkPackage,
)
from .pagination import PaginationCancelledError, PaginationConfigError, fetch_all
from .payloads import (
    RelationCreateSpec,
    WorkPackageChangeSet,
    build_work_package_payload,
)

__all__ = [
    # Client
    "OpenProjectClient",
    "RetryConfig",
    # Exceptions
    "OpenProjectClientError",
    "OpenProjectHTTPError",
    "OpenProjectParseError",
    "OpenProjectModelValidationError",
    "PaginationConfigError",
    "PaginationCancelledError",
    # Models
    "HalLink",
    "HalResource",
    "HalCollection",
    "WorkPackage",
    "Project",
    "Relation",
    "User",
    "Version",
    "TimeEntry",
    # Custom fields
    "CustomFieldDefinition",
    "CustomFieldKind",
    "CustomFieldRegistry",
    "CustomFieldValue",
    "CustomFieldTyped",
    "CustomFieldValueExtractor",
    "extract_custom_fields",
    "is_multi_type",
    "parse_custom_field_key",
    # Facade / payloads
    "WorkPackageFacade",
    "WorkPackageChangeSet",
    "RelationCreateSpec",
    "build_work_package_payload",
    # Pagination
    "fetch_all",
]
