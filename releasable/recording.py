"""
Handle sources and subresources that record what happens to them, in order,
into one shared log. Used by the demo command and by the test suite.
"""
from typing import Any

from attrs import define
from attrs import field

from releasable.sources import HandleSource


@define
class ReleaseEvent:
    sequence: int
    kind: str
    resource: str


@define
class EventLog:
    events: list[ReleaseEvent] = field(factory=list)

    def record(self, kind: str, resource: str) -> None:
        self.events.append(ReleaseEvent(len(self.events), kind, resource))

    def releases(self) -> list[str]:
        return [event.resource for event in self.events if event.kind == 'release']

    def count(self, kind: str, resource: str) -> int:
        return sum(1 for event in self.events if event.kind == kind and event.resource == resource)

    def as_records(self) -> list[dict[str, str | int]]:
        return [
            {'sequence': event.sequence, 'kind': event.kind, 'resource': event.resource}
            for event in self.events
        ]


class RecordingSource:
    """Wraps a real handle source; other attributes (read, write, size) pass through."""
    inner: HandleSource
    log: EventLog
    name: str

    def __init__(self, inner: HandleSource, log: EventLog, name: str):
        self.inner = inner
        self.log = log
        self.name = name

    def acquire(self) -> Any:
        handle = self.inner.acquire()
        self.log.record('acquire', self.name)
        return handle

    def release(self, handle: Any) -> None:
        self.inner.release(handle)
        self.log.record('release', self.name)

    def __getattr__(self, attribute: str) -> Any:
        return getattr(self.inner, attribute)


class RecordingSubresource:
    log: EventLog
    name: str
    release_count: int

    def __init__(self, log: EventLog, name: str):
        self.log = log
        self.name = name
        self.release_count = 0

    def release(self) -> None:
        self.release_count += 1
        self.log.record('release', self.name)
