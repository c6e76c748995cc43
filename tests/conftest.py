"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from helpers import FakeClock, StubSource


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub_source() -> StubSource:
    return StubSource()
