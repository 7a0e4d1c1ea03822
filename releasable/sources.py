"""
Handle sources: the external services that hand out raw resources and take
them back. Nothing in Python tracks what these return, so every handle must
be given back to its source exactly once.
"""
import os
from ctypes import c_size_t
from ctypes import c_void_p
from ctypes import memmove
from ctypes import pythonapi
from ctypes import string_at
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from releasable.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

_raw_malloc = pythonapi.PyMem_RawMalloc
_raw_malloc.argtypes = [c_size_t]
_raw_malloc.restype = c_void_p

_raw_free = pythonapi.PyMem_RawFree
_raw_free.argtypes = [c_void_p]
_raw_free.restype = None


@runtime_checkable
class HandleSource(Protocol):
    name: str

    def acquire(self) -> Any:
        ...

    def release(self, handle: Any) -> None:
        ...


class HeapMemorySource:
    """
    Fixed-size blocks of raw heap memory, outside the reach of the garbage
    collector. Handles are integer addresses.
    """
    name: str
    size: int

    def __init__(self, size: int = 1024):
        if size <= 0:
            raise ValueError(f'Block size must be positive, got {size}.')
        self.size = size
        self.name = f'heap({size})'

    def acquire(self) -> int:
        address = _raw_malloc(self.size)
        if address is None:
            raise MemoryError(f'Could not allocate {self.size} bytes.')
        logger.debug('Allocated %s bytes at %s.', self.size, hex(address))
        return address

    def release(self, handle: int) -> None:
        _raw_free(handle)
        logger.debug('Freed block at %s.', hex(handle))

    def write(self, handle: int, offset: int, data: bytes) -> None:
        self._check_bounds(offset, len(data))
        memmove(handle + offset, data, len(data))

    def read(self, handle: int, offset: int, length: int) -> bytes:
        self._check_bounds(offset, length)
        return string_at(handle + offset, length)

    def _check_bounds(self, offset: int, length: int) -> None:
        if offset < 0 or length < 0 or offset + length > self.size:
            raise ValueError(f'Range [{offset}, {offset + length}) is outside the {self.size}-byte block.')


class DescriptorSource:
    """Operating-system file descriptors, opened on one path."""
    name: str
    path: str
    flags: int

    def __init__(self, path: str = os.devnull, flags: int = os.O_RDWR):
        self.path = path
        self.flags = flags
        self.name = f'descriptor({path})'

    def acquire(self) -> int:
        descriptor = os.open(self.path, self.flags)
        logger.debug('Opened descriptor %s on %s.', descriptor, self.path)
        return descriptor

    def release(self, handle: int) -> None:
        os.close(handle)
        logger.debug('Closed descriptor %s.', handle)
