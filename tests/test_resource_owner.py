import gc
import io
import logging

import pytest

from releasable.errors import AcquisitionFailure
from releasable.errors import UsedAfterRelease
from releasable.resource_owner import DisposableResourceOwner
from releasable.resource_owner import guarded
from tests.helpers import ExplodingSource
from tests.helpers import FailingSource


class Connection(DisposableResourceOwner):
    def __init__(self, source, member):
        super().__init__()
        self.handle = self.acquire_handle(source)
        self.add_subresource(member)

    @guarded
    def do_work(self) -> str:
        return 'done'


class MembersOnly(DisposableResourceOwner):
    def __init__(self, member):
        super().__init__()
        self.add_subresource(member)


class TwoHandles(DisposableResourceOwner):
    def __init__(self, first, second):
        super().__init__()
        self.first = self.acquire_handle(first)
        self.second = self.acquire_handle(second)


class NoSuperInit(DisposableResourceOwner):
    def __init__(self, source):
        self.handle = self.acquire_handle(source)


@pytest.mark.parametrize('repeats', [1, 2, 5])
def test_repeated_release_gives_back_handle_once(log, heap, member, repeats):
    connection = Connection(heap('handle'), member)
    for _ in range(repeats):
        connection.release()
    assert log.count('release', 'handle') == 1
    assert member.release_count == 1


def test_work_after_release_fails(heap, member):
    connection = Connection(heap('handle'), member)
    assert connection.do_work() == 'done'
    connection.release()
    with pytest.raises(UsedAfterRelease) as excinfo:
        connection.do_work()
    assert excinfo.value.type_name.endswith('test_resource_owner.Connection')
    assert 'Connection' in str(excinfo.value)


def test_release_order_is_handles_then_subresources(log, heap, member):
    connection = Connection(heap('handle'), member)
    connection.release()
    assert log.releases() == ['handle', 'member']
    assert connection.released


def test_context_manager_releases_on_error(log, heap, member):
    with pytest.raises(KeyError):
        with Connection(heap('handle'), member):
            raise KeyError('early exit')
    assert log.releases() == ['handle', 'member']


def test_release_deregisters_fallback(heap, member):
    connection = Connection(heap('handle'), member)
    assert connection.fallback_registered
    connection.release()
    assert not connection.fallback_registered


def test_reclaimed_owner_gives_back_handle_but_not_subresource(log, heap, member):
    connection = Connection(heap('handle'), member)
    del connection
    gc.collect()
    assert log.count('release', 'handle') == 1
    assert member.release_count == 0


def test_fallback_then_release_does_nothing_more(log, heap, member):
    connection = Connection(heap('handle'), member)
    connection._chain._finalizer()
    connection.release()
    assert log.releases() == ['handle']
    assert member.release_count == 0


def test_fallback_warns_about_unreleased_owner(heap, member, caplog):
    connection = Connection(heap('handle'), member)
    del connection
    gc.collect()
    warnings = [
        r for r in caplog.records
        if r.levelno == logging.WARNING and 'Connection' in r.getMessage()
    ]
    assert len(warnings) == 1
    assert 'never released' in warnings[0].getMessage()


def test_fallback_errors_do_not_escape(log, heap, caplog):
    class Base(DisposableResourceOwner):
        def __init__(self, source):
            super().__init__()
            self.handle = self.acquire_handle(source, level=__class__)

    class Derived(Base):
        def __init__(self, source, broken):
            super().__init__(source)
            self.broken = self.acquire_handle(broken, level=__class__)

    owner = Derived(heap('base handle'), ExplodingSource())
    owner._chain._finalizer()
    assert log.releases() == ['base handle']
    errors = [
        r for r in caplog.records
        if r.levelno == logging.ERROR and 'Derived' in r.getMessage()
    ]
    assert len(errors) == 1
    assert errors[0].exc_info is not None


def test_members_only_owner_registers_no_fallback(member):
    owner = MembersOnly(member)
    assert not owner.fallback_registered
    owner.release()
    assert member.release_count == 1


def test_failed_acquisition_releases_earlier_handles(log, heap):
    with pytest.raises(AcquisitionFailure) as excinfo:
        TwoHandles(heap('first'), FailingSource())
    assert log.releases() == ['first']
    assert excinfo.value.source_name == 'failing'
    assert isinstance(excinfo.value.__cause__, OSError)


def test_hold_and_add_after_release_fail(heap, member):
    owner = MembersOnly(member)
    owner.release()
    with pytest.raises(UsedAfterRelease):
        owner.add_subresource(io.BytesIO())
    with pytest.raises(UsedAfterRelease):
        owner.acquire_handle(heap('late'))
    with pytest.raises(UsedAfterRelease):
        owner.hold_handle(heap('late'), 11)


def test_hold_handle_takes_ownership(log, heap):
    source = heap('external')
    handle = source.acquire()
    owner = DisposableResourceOwner()
    assert owner.hold_handle(source, handle) == handle
    assert owner.fallback_registered
    owner.release()
    assert log.count('release', 'external') == 1


def test_closeable_subresource_is_closed():
    stream = io.BytesIO()
    owner = MembersOnly(stream)
    owner.release()
    assert stream.closed


def test_subresource_needs_release_or_close():
    owner = DisposableResourceOwner()
    with pytest.raises(TypeError):
        owner.add_subresource(object())


def test_unknown_level_is_rejected(heap):
    owner = DisposableResourceOwner()
    with pytest.raises(ValueError):
        owner.acquire_handle(heap('handle'), level=Connection)


def test_subclass_without_super_init(log, heap):
    owner = NoSuperInit(heap('handle'))
    assert not owner.released
    owner.release()
    assert log.releases() == ['handle']


class Child:
    def __init__(self, parent):
        self.parent = parent

    def release(self) -> None:
        self.parent = None


class Parent(DisposableResourceOwner):
    def __init__(self, source):
        super().__init__()
        self.handle = self.acquire_handle(source)
        self.child = Child(self)
        self.add_subresource(self.child)


def test_owner_referenced_by_its_subresource_is_reclaimed(log, heap):
    parent = Parent(heap('handle'))
    child = parent.child
    del parent
    del child
    gc.collect()
    assert log.count('release', 'handle') == 1


def test_levels_must_be_named_in_multilevel_owner(log, heap, member):
    class Base(DisposableResourceOwner):
        def __init__(self, source):
            super().__init__()
            self.handle = self.acquire_handle(source, level=__class__)

    class Derived(Base):
        pass

    owner = Derived(heap('base handle'))
    with pytest.raises(ValueError):
        owner.add_subresource(member)
    with pytest.raises(ValueError):
        owner.acquire_handle(heap('unnamed'))
    owner.release()
    assert log.releases() == ['base handle']
    assert member.release_count == 0
