"""Pytest configuration and shared fixtures."""

import pytest

from tests.fakes import FakeStorage, make_validator_id


@pytest.fixture
def storage() -> FakeStorage:
    """Provide an empty in-memory chain storage."""
    return FakeStorage()


@pytest.fixture
def validator_ids() -> list[str]:
    """Provide twenty well-formed validator addresses, v1..v20."""
    return [make_validator_id(i) for i in range(1, 21)]


@pytest.fixture
def sidecar_url() -> str:
    """Sidecar endpoint used with pytest-httpx mocks."""
    return "https://sidecar.test"
