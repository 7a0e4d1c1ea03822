"""
A resource-release pattern for objects that own raw handles (memory blocks,
descriptors) and other releasable objects.

The owner is released deterministically with `release()` or by using it as a
context manager. If it is reclaimed without ever being released, a fallback
registered with `weakref.finalize` gives its raw handles back to their
sources. The fallback never touches subresources, which are responsible for
themselves at that point.

Instances are not safe to release concurrently from several threads. Callers
sharing an owner across threads must synchronize around `release()`.
"""
from functools import wraps
from typing import Any
from typing import Callable
from typing import TypeVar
from weakref import finalize

from attrs import define
from attrs import field

from releasable.errors import AcquisitionFailure
from releasable.errors import UsedAfterRelease
from releasable.sources import HandleSource
from releasable.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

Method = TypeVar('Method', bound=Callable[..., Any])


def qualified_name(cls: type) -> str:
    return f'{cls.__module__}.{cls.__qualname__}'


def release_subresource(resource: Any) -> None:
    release = getattr(resource, 'release', None)
    if callable(release):
        release()
        return
    close = getattr(resource, 'close', None)
    if callable(close):
        close()
        return
    raise TypeError(f'{type(resource).__name__} has neither release() nor close().')


@define
class HeldHandle:
    source: HandleSource
    handle: Any


@define
class CleanupStage:
    """What one class level of an owner holds, and whether it has been released."""
    level_name: str
    handles: list[HeldHandle] = field(factory=list)
    released: bool = False

    def run(self, subresources: list[Any] | None) -> int:
        """
        Gives back this level's handles, most recently acquired first, then
        releases `subresources` (the level's owned objects, passed only on
        the deterministic path). Returns the number of handles given back.
        """
        if self.released:
            return 0
        count = 0
        while self.handles:
            held = self.handles.pop()
            held.source.release(held.handle)
            count += 1
        if subresources is not None:
            while subresources:
                release_subresource(subresources.pop())
        self.released = True
        return count


class CleanupChain:
    """
    The stages of one owner, most-derived class level first, and the single
    fallback registration for that owner. Only handles are reachable from
    here; subresources stay on the owner, so nothing the fallback keeps alive
    can point back at the owner.
    """
    owner_type_name: str
    stages: dict[type, CleanupStage]
    _finalizer: finalize | None

    def __init__(self, owner_type: type):
        self.owner_type_name = qualified_name(owner_type)
        self.stages = {
            level: CleanupStage(level.__qualname__)
            for level in owner_type.__mro__
            if issubclass(level, DisposableResourceOwner)
        }
        self._finalizer = None

    def stage(self, level: type) -> CleanupStage:
        if level not in self.stages:
            raise ValueError(f'{level.__qualname__} is not a level of {self.owner_type_name}.')
        return self.stages[level]

    @property
    def single_level(self) -> bool:
        return len([level for level in self.stages if level is not DisposableResourceOwner]) <= 1

    @property
    def released(self) -> bool:
        return all(stage.released for stage in self.stages.values())

    @property
    def armed(self) -> bool:
        return self._finalizer is not None and self._finalizer.alive

    def arm(self, owner: 'DisposableResourceOwner') -> None:
        if self._finalizer is None:
            self._finalizer = finalize(owner, self.run_fallback)
            logger.debug('Registered fallback for %s.', self.owner_type_name)

    def disarm(self) -> None:
        if self._finalizer is not None:
            self._finalizer.detach()

    def run(self, subresources: dict[type, list[Any]] | None) -> int:
        """Subresources are passed only on the deterministic path."""
        reclaimed = 0
        for level, stage in self.stages.items():
            reclaimed += stage.run(None if subresources is None else subresources.setdefault(level, []))
        return reclaimed

    def run_fallback(self) -> None:
        reclaimed = 0
        for stage in self.stages.values():
            try:
                reclaimed += stage.run(None)
            except Exception:
                logger.exception('Fallback release of %s level %s failed.', self.owner_type_name, stage.level_name)
        if reclaimed > 0:
            logger.warning('%s was never released; fallback gave back %s raw handle(s).', self.owner_type_name, reclaimed)


class DisposableResourceOwner:
    """
    Base class for objects owning raw handles and subresources.

    Each class level declares what it owns during construction, passing
    `level=__class__` when the class is meant to be extended, so that a derived
    level's resources are always released before its base level's:

    ```py
    class Block(DisposableResourceOwner):
        def __init__(self, source: HeapMemorySource):
            super().__init__()
            self.source = source
            self.address = self.acquire_handle(source, level=__class__)

        @guarded
        def read(self) -> bytes:
            return self.source.read(self.address, 0, self.source.size)

    class SpilledBlock(Block):
        def __init__(self, source: HeapMemorySource):
            super().__init__(source)
            self.spill = io.BytesIO()
            self.add_subresource(self.spill, level=__class__)

    with SpilledBlock(HeapMemorySource(64)) as block:
        block.read()
    # The BytesIO is closed, then the block is freed.
    ```

    Owners with more than one class level must name the level on every
    `acquire_handle`, `hold_handle` and `add_subresource` call; leaving it out
    raises `ValueError`.

    A raw handle registers the fallback for the instance the first time one
    is held, at whichever level. Owners holding only subresources never
    register one.
    """
    _chain: CleanupChain
    _subresources: dict[type, list[Any]]

    def __init__(self):
        self._ensure_initialized()

    def _ensure_initialized(self) -> None:
        if not hasattr(self, '_chain'):
            self._chain = CleanupChain(type(self))
            self._subresources = {}

    def acquire_handle(self, source: HandleSource, level: type | None = None) -> Any:
        """
        Acquires a handle from `source` and holds it. If the source fails,
        everything this owner already holds is released before
        `AcquisitionFailure` is raised, so a constructor calling this leaks
        nothing.
        """
        self.ensure_not_released()
        stage = self._chain.stage(self._resolve_level(level))
        try:
            handle = source.acquire()
        except Exception as error:
            logger.debug('Acquisition from %s failed for %s.', source.name, self._chain.owner_type_name)
            self._abandon()
            raise AcquisitionFailure(source.name, self._chain.owner_type_name) from error
        stage.handles.append(HeldHandle(source, handle))
        self._chain.arm(self)
        return handle

    def hold_handle(self, source: HandleSource, handle: Any, level: type | None = None) -> Any:
        """Takes ownership of a handle that was acquired from `source` elsewhere."""
        self.ensure_not_released()
        self._chain.stage(self._resolve_level(level)).handles.append(HeldHandle(source, handle))
        self._chain.arm(self)
        return handle

    def add_subresource(self, resource: Any, level: type | None = None) -> None:
        """
        Use this method to indicate which objects should be released when
        this owner is released deterministically. The resource needs a
        `release()` or `close()` method.
        """
        self.ensure_not_released()
        if not (callable(getattr(resource, 'release', None)) or callable(getattr(resource, 'close', None))):
            raise TypeError(f'{type(resource).__name__} has neither release() nor close().')
        level = self._resolve_level(level)
        self._chain.stage(level)
        self._subresources.setdefault(level, []).append(resource)

    def release(self) -> None:
        self._ensure_initialized()
        if self._chain.released:
            return
        self._chain.disarm()
        self._release_step(True)

    def _release_step(self, deterministically: bool) -> None:
        reclaimed = self._chain.run(self._subresources if deterministically else None)
        logger.debug('Released %s (%s raw handle(s)).', self._chain.owner_type_name, reclaimed)

    def _abandon(self) -> None:
        self._chain.disarm()
        self._chain.run(self._subresources)

    def _resolve_level(self, level: type | None) -> type:
        self._ensure_initialized()
        if level is not None:
            return level
        if not self._chain.single_level:
            raise ValueError(f'{self._chain.owner_type_name} has several levels; pass level=__class__.')
        return type(self)

    @property
    def released(self) -> bool:
        self._ensure_initialized()
        return self._chain.released

    def is_released(self, level: type | None = None) -> bool:
        if level is None:
            return self.released
        return self._chain.stage(level).released

    @property
    def fallback_registered(self) -> bool:
        self._ensure_initialized()
        return self._chain.armed

    def ensure_not_released(self) -> None:
        if self.released:
            raise UsedAfterRelease(qualified_name(type(self)))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()


def guarded(method: Method) -> Method:
    """Makes `method` raise `UsedAfterRelease` once its owner has been released."""
    @wraps(method)
    def wrapper(self: DisposableResourceOwner, *args, **kwargs):
        self.ensure_not_released()
        return method(self, *args, **kwargs)
    return wrapper  # type: ignore[return-value]
