"""
Concrete owners, one per way of combining raw handles, subresources and
inheritance.
"""
import io
import os
from typing import final

from releasable.resource_owner import DisposableResourceOwner
from releasable.resource_owner import guarded
from releasable.sources import DescriptorSource
from releasable.sources import HeapMemorySource


@final
class ScratchBuffer(DisposableResourceOwner):
    """A single raw heap block. Registers a fallback."""
    source: HeapMemorySource
    address: int

    def __init__(self, source: HeapMemorySource | None = None):
        super().__init__()
        self.source = HeapMemorySource() if source is None else source
        self.address = self.acquire_handle(self.source)

    @property
    @guarded
    def size(self) -> int:
        return self.source.size

    @guarded
    def write(self, offset: int, data: bytes) -> None:
        self.source.write(self.address, offset, data)

    @guarded
    def read(self, offset: int, length: int) -> bytes:
        return self.source.read(self.address, offset, length)


@final
class ByteStreamBuffer(DisposableResourceOwner):
    """Only a BytesIO, so there is nothing for a fallback to do and none is registered."""
    stream: io.BytesIO

    def __init__(self):
        super().__init__()
        self.stream = io.BytesIO()
        self.add_subresource(self.stream)

    @guarded
    def write(self, data: bytes) -> int:
        return self.stream.write(data)

    @guarded
    def getvalue(self) -> bytes:
        return self.stream.getvalue()


@final
class StagedBuffer(DisposableResourceOwner):
    """
    Bytes are staged in a BytesIO and committed into a raw heap block. The
    fallback frees the block but leaves the BytesIO alone.
    """
    source: HeapMemorySource
    address: int
    staging: io.BytesIO
    committed: int

    def __init__(self, source: HeapMemorySource | None = None):
        super().__init__()
        self.source = HeapMemorySource() if source is None else source
        self.address = self.acquire_handle(self.source)
        self.staging = io.BytesIO()
        self.add_subresource(self.staging)
        self.committed = 0

    @guarded
    def stage(self, data: bytes) -> None:
        self.staging.write(data)

    @guarded
    def commit(self) -> int:
        data = self.staging.getvalue()
        self.source.write(self.address, 0, data)
        self.committed = len(data)
        return self.committed

    @guarded
    def read_committed(self) -> bytes:
        return self.source.read(self.address, 0, self.committed)


class NativeBlock(DisposableResourceOwner):
    """Extensible owner of one raw heap block."""
    source: HeapMemorySource
    address: int

    def __init__(self, source: HeapMemorySource | None = None):
        super().__init__()
        self.source = HeapMemorySource() if source is None else source
        self.address = self.acquire_handle(self.source, level=__class__)

    @guarded
    def write(self, offset: int, data: bytes) -> None:
        self.source.write(self.address, offset, data)

    @guarded
    def read(self, offset: int, length: int) -> bytes:
        return self.source.read(self.address, offset, length)


class SpillableBlock(NativeBlock):
    """
    Adds an overflow block and a spill stream on top of `NativeBlock`. The
    base level already registers the fallback, so this level adds none.
    """
    overflow_source: HeapMemorySource
    overflow_address: int
    spill_stream: io.BytesIO

    def __init__(
        self,
        source: HeapMemorySource | None = None,
        overflow_source: HeapMemorySource | None = None,
    ):
        super().__init__(source)
        self.overflow_source = HeapMemorySource() if overflow_source is None else overflow_source
        self.overflow_address = self.acquire_handle(self.overflow_source, level=__class__)
        self.spill_stream = io.BytesIO()
        self.add_subresource(self.spill_stream, level=__class__)

    @guarded
    def store(self, data: bytes) -> None:
        """Fills the primary block, then the overflow block, then spills the rest."""
        primary = data[:self.source.size]
        secondary = data[self.source.size:self.source.size + self.overflow_source.size]
        rest = data[self.source.size + self.overflow_source.size:]
        self.source.write(self.address, 0, primary)
        if secondary:
            self.overflow_source.write(self.overflow_address, 0, secondary)
        if rest:
            self.spill_stream.write(rest)

    @guarded
    def spilled(self) -> bytes:
        return self.spill_stream.getvalue()


class StreamHolder(DisposableResourceOwner):
    """Extensible owner of a BytesIO only. Registers no fallback."""
    stream: io.BytesIO

    def __init__(self):
        super().__init__()
        self.stream = io.BytesIO()
        self.add_subresource(self.stream, level=__class__)

    @guarded
    def append(self, data: bytes) -> None:
        self.stream.write(data)

    @guarded
    def contents(self) -> bytes:
        return self.stream.getvalue()


class DescriptorStreamHolder(StreamHolder):
    """
    Adds a raw descriptor to `StreamHolder`. The base has no raw handle, so
    holding the descriptor is what registers the fallback for the instance.
    """
    descriptor_source: DescriptorSource
    descriptor: int

    def __init__(self, descriptor_source: DescriptorSource | None = None):
        super().__init__()
        self.descriptor_source = DescriptorSource() if descriptor_source is None else descriptor_source
        self.descriptor = self.acquire_handle(self.descriptor_source, level=__class__)

    @guarded
    def drain(self) -> int:
        """Writes the buffered bytes to the descriptor and empties the buffer."""
        data = self.stream.getvalue()
        written = write_all(self.descriptor, data)
        self.stream.seek(0)
        self.stream.truncate()
        return written


class JournaledDescriptorHolder(StreamHolder):
    """
    Adds both a raw descriptor and a journal stream to `StreamHolder`. The
    descriptor is closed, then the journal, then the base level's stream.
    """
    descriptor_source: DescriptorSource
    descriptor: int
    journal: io.BytesIO

    def __init__(self, descriptor_source: DescriptorSource | None = None):
        super().__init__()
        self.descriptor_source = DescriptorSource() if descriptor_source is None else descriptor_source
        self.descriptor = self.acquire_handle(self.descriptor_source, level=__class__)
        self.journal = io.BytesIO()
        self.add_subresource(self.journal, level=__class__)

    @guarded
    def drain(self) -> int:
        """Like `DescriptorStreamHolder.drain`, also keeping a copy of everything written."""
        data = self.stream.getvalue()
        written = write_all(self.descriptor, data)
        self.journal.write(data)
        self.stream.seek(0)
        self.stream.truncate()
        return written

    @guarded
    def journaled(self) -> bytes:
        return self.journal.getvalue()


def write_all(descriptor: int, data: bytes) -> int:
    view = memoryview(data)
    written = 0
    while written < len(data):
        written += os.write(descriptor, view[written:])
    return written
