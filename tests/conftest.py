"""Shared pytest fixtures for servicewire tests."""

import pytest

from servicewire.collection import ServiceCollection


@pytest.fixture()
def services() -> ServiceCollection:
    """Empty service collection."""
    return ServiceCollection()
