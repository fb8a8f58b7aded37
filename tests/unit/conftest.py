"""Unit test fixtures."""

from __future__ import annotations

import pytest

from .fakes import FakeChannelService, RecordingDispatcher, SleepRecorder


@pytest.fixture
def service() -> FakeChannelService:
    return FakeChannelService()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()
