import json
import threading

import pytest
from openproject_hal.custom_fields import (
    CustomFieldDefinition,
    CustomFieldKind,
    CustomFieldRegistry,
    custom_field_key,
    is_multi_type,
    parse_custom_field_key,
)


def _schema_payload(**fields):
    return {
        "_type": "WorkPackageCollection",
        "_embedded": {
            "schemas": {"_embedded": {"elements": [dict(fields)]}},
            "elements": [],
        },
    }


@pytest.mark.parametrize(
    "key,expected",
    [
        ("customField12", 12),
        ("customFields8", 8),
        ("customField0", 0),
        ("customField", None),
        ("customFieldX1", None),
        ("CustomField3", None),
        ("customField3a", None),
        ("xcustomField3", None),
        ("subject", None),
    ],
)
def test_parse_custom_field_key(key, expected):
    assert parse_custom_field_key(key) == expected


def test_multi_markers_and_key_names():
    assert is_multi_type("[]CustomOption") is True
    assert is_multi_type("[]User") is True
    assert is_multi_type("CustomOption::Multi") is True
    assert is_multi_type("CustomOption") is False
    assert is_multi_type(None) is False
    assert is_multi_type("") is False
    assert custom_field_key(4, multi=False) == "customField4"
    assert custom_field_key(4, multi=True) == "customFields4"


def test_kind_from_declared_type():
    assert CustomFieldKind.from_openproject_type("Integer") is CustomFieldKind.INTEGER
    assert CustomFieldKind.from_openproject_type("Date") is CustomFieldKind.DATE
    assert (
        CustomFieldKind.from_openproject_type("CustomOption")
        is CustomFieldKind.OPTION_SINGLE
    )
    assert (
        CustomFieldKind.from_openproject_type("CustomOption::Multi")
        is CustomFieldKind.OPTION_MULTI
    )
    assert CustomFieldKind.from_openproject_type("User") is CustomFieldKind.REFERENCE
    assert CustomFieldKind.from_openproject_type(None) is CustomFieldKind.REFERENCE


def test_import_from_fixture(registry):
    snap = registry.snapshot()
    assert set(snap) == {3, 4, 8, 9}

    customer = snap[3]
    assert customer.api_key == "customField3"
    assert customer.name == "Customer"
    assert customer.type == "String"
    assert customer.required is False
    assert customer.raw["name"] == "Customer"

    assert snap[8].is_multi is True
    assert snap[9].is_multi is False
    assert registry.is_multi(8) is True
    assert registry.is_multi(999) is False


def test_import_accepts_raw_text(wp_collection):
    reg = CustomFieldRegistry()
    imported = reg.import_from_collection_payload(json.dumps(wp_collection))
    assert imported == 4
    assert len(reg) == 4
    assert 8 in reg


def test_try_get_found_and_missing(registry):
    definition, found = registry.try_get(3)
    assert found is True
    assert definition.name == "Customer"

    definition, found = registry.try_get(42)
    assert found is False
    assert definition is None


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "",
        "   ",
        "not json at all {",
        b"[1, 2, 3]",
        "[]",
        {"_embedded": None},
        {"_embedded": {"schemas": {"_embedded": {"elements": "nope"}}}},
        {"_embedded": {"schemas": ["weird"]}},
        {"_embedded": {"schemas": {"_embedded": {"elements": [1, "two", None]}}}},
    ],
)
def test_malformed_payloads_import_nothing(payload):
    reg = CustomFieldRegistry()
    assert reg.import_from_collection_payload(payload) == 0
    assert reg.snapshot() == {}


def test_non_object_field_fragments_are_ignored():
    reg = CustomFieldRegistry()
    reg.import_from_collection_payload(
        _schema_payload(customField1="String", customField2={"name": "Real"})
    )
    assert set(reg.snapshot()) == {2}


def test_import_is_idempotent(wp_collection):
    once = CustomFieldRegistry()
    once.import_from_collection_payload(wp_collection)

    twice = CustomFieldRegistry()
    twice.import_from_collection_payload(wp_collection)
    twice.import_from_collection_payload(wp_collection)

    assert once.snapshot() == twice.snapshot()


def test_merge_never_loses_known_attributes():
    reg = CustomFieldRegistry()
    reg.import_from_collection_payload(
        _schema_payload(customField5={"name": "Budget", "type": "Float"})
    )
    reg.import_from_collection_payload(
        _schema_payload(customField5={"name": "  ", "required": True})
    )

    merged = reg.get(5)
    assert merged.name == "Budget"
    assert merged.type == "Float"
    assert merged.required is True
    assert merged.raw == {"name": "  ", "required": True}


def test_merge_prefers_incoming_non_empty_values():
    reg = CustomFieldRegistry()
    reg.import_from_collection_payload(
        _schema_payload(customField5={"name": "Old", "type": "String", "required": True})
    )
    reg.import_from_collection_payload(
        _schema_payload(customField5={"name": "New", "type": "Text", "required": False})
    )

    merged = reg.get(5)
    assert merged.id == 5
    assert merged.name == "New"
    assert merged.type == "Text"
    assert merged.required is False


def test_merge_monotonic_over_observations():
    first = CustomFieldDefinition(id=7, api_key="customField7", name="A")
    second = CustomFieldDefinition(id=7, api_key="customFields7", type="[]User")

    merged = first.merged_with(second)
    for obs in (first, second):
        for attr in ("name", "type", "required", "raw"):
            if getattr(obs, attr) is not None:
                assert getattr(merged, attr) is not None
    assert merged.api_key == "customField7"
    assert merged.is_multi is True


def test_import_single_schema_object():
    reg = CustomFieldRegistry()
    count = reg.import_from_schema(
        {
            "_type": "Schema",
            "customField1": {"name": "Severity", "type": "CustomOption"},
            "customFields2": {"name": "Labels", "type": "[]CustomOption"},
            "lockVersion": {"type": "Integer"},
        }
    )
    assert count == 2
    assert reg.get(2).is_multi is True


def test_snapshot_is_a_private_copy(registry):
    snap = registry.snapshot()
    snap.clear()
    assert len(registry) == 4


def test_concurrent_imports_keep_one_definition_per_id():
    reg = CustomFieldRegistry()
    payloads = [
        _schema_payload(
            **{f"customField{i}": {"name": f"Field {i}", "type": "String"}
               for i in range(n, n + 20)}
        )
        for n in range(0, 100, 10)
    ]

    threads = [
        threading.Thread(target=reg.import_from_collection_payload, args=(p,))
        for p in payloads * 3
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snap = reg.snapshot()
    assert set(snap) == set(range(0, 110))
    assert all(d.name == f"Field {i}" for i, d in snap.items())


def test_registry_keeps_first_seen_api_key():
    reg = CustomFieldRegistry()
    reg.import_from_schema({"customField5": {"name": "Tags", "type": "String"}})
    reg.import_from_schema({"customFields5": {"name": "Tags", "type": "[]CustomOption"}})

    definition = reg.get(5)

    assert definition.api_key == "customField5"
    assert definition.type == "[]CustomOption"
