import json
from pathlib import Path

import pytest
from openproject_hal.client import OpenProjectClient
from openproject_hal.custom_fields import CustomFieldRegistry

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict:
    with open(FIXTURES / name, encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def wp_collection() -> dict:
    return load_fixture("work_package_collection.json")


@pytest.fixture
def registry(wp_collection) -> CustomFieldRegistry:
    reg = CustomFieldRegistry()
    reg.import_from_collection_payload(wp_collection)
    return reg


@pytest.fixture
def client():
    return OpenProjectClient(base_url="https://mock-op.com", api_key="mock-key")
