"""Fixtures for the debug runtime tests."""

import pytest

from protofx.debug import clear_trace


@pytest.fixture(autouse=True)
def empty_trace():
    """Fixture starting and leaving every test with an empty trace log."""
    clear_trace()
    yield
    clear_trace()
