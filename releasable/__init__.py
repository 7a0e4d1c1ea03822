"""Deterministic, idempotent release of raw handles and owned resources, with a reclamation fallback."""
from releasable.errors import AcquisitionFailure
from releasable.errors import ReleasableError
from releasable.errors import UsedAfterRelease
from releasable.resource_owner import DisposableResourceOwner
from releasable.resource_owner import guarded
from releasable.sources import DescriptorSource
from releasable.sources import HandleSource
from releasable.sources import HeapMemorySource

__version__ = '0.1.0'

__all__ = [
    'AcquisitionFailure',
    'ReleasableError',
    'UsedAfterRelease',
    'DisposableResourceOwner',
    'guarded',
    'DescriptorSource',
    'HandleSource',
    'HeapMemorySource',
]
