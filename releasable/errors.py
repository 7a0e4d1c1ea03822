"""Errors raised by resource owners."""


class ReleasableError(Exception):
    pass


class UsedAfterRelease(ReleasableError):
    """An operation was attempted on an owner whose resources were already released."""
    type_name: str

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f'{type_name}: the current instance was released.')


class AcquisitionFailure(ReleasableError):
    """
    A handle source could not supply a resource while an owner was being
    constructed. Whatever the owner acquired before the failure has already
    been released when this is raised.
    """
    source_name: str

    def __init__(self, source_name: str, owner_type_name: str):
        self.source_name = source_name
        self.owner_type_name = owner_type_name
        super().__init__(f'{owner_type_name} could not acquire a resource from {source_name}.')
