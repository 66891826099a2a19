"""Shared fixtures."""

from typing import Callable

import pytest

from helpers import FakeAdapter


@pytest.fixture
def fake_adapter() -> Callable[..., FakeAdapter]:
    """Factory fixture: fake_adapter(response_or_callable) -> FakeAdapter."""
    return FakeAdapter
