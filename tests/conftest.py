"""Shared test fixtures for gamewatch."""

import pytest
from helpers import FakeEnumerator, FakeInspector

from gamewatch.backends import Backend


@pytest.fixture
def enumerator() -> FakeEnumerator:
    return FakeEnumerator()


@pytest.fixture
def inspector() -> FakeInspector:
    return FakeInspector()


@pytest.fixture
def fake_backend(enumerator: FakeEnumerator, inspector: FakeInspector) -> Backend:
    """Backend wired to the fake enumerator and inspector fixtures."""
    return Backend("fake", enumerator, inspector)
