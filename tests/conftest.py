import pytest

from releasable.recording import EventLog
from releasable.recording import RecordingSource
from releasable.recording import RecordingSubresource
from releasable.sources import HeapMemorySource


@pytest.fixture
def log() -> EventLog:
    return EventLog()


@pytest.fixture
def heap(log):
    def make(name: str, size: int = 32) -> RecordingSource:
        return RecordingSource(HeapMemorySource(size), log, name)
    return make


@pytest.fixture
def member(log) -> RecordingSubresource:
    return RecordingSubresource(log, 'member')
