# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Binding records held in a container's binding table."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from arbor.core.container import Container


class Lifetime(Enum):
    """Defines how long a resolved instance lives.

    Values:
        TRANSIENT: New instance every time it's requested
        SINGLETON: One instance per owning container, created lazily
    """

    TRANSIENT = "transient"
    SINGLETON = "singleton"


class BindingSource(Enum):
    """Which construction strategy a binding uses."""

    SELF = "self"
    IMPLEMENTATION = "implementation"
    INSTANCE = "instance"
    FACTORY = "factory"


@runtime_checkable
class Disposable(Protocol):
    """Protocol for services that need cleanup."""

    def dispose(self) -> None:
        """Release resources held by the service."""
        ...


_EMPTY = object()

# Thread ident -> binding whose creation lock that thread is blocked on.
_waiting_on: Dict[int, "Binding"] = {}
_waiting_lock = threading.Lock()
_WAIT_POLL_SECONDS = 0.05


class Binding:
    """Registration of one service key in one container.

    The key is fixed at creation. Exactly one of ``implementation``,
    ``instance`` and ``factory`` is authoritative; the setters below clear
    the other two. The singleton slot is filled at most once while the
    creation lock is held (see ``acquire``).
    """

    __slots__ = (
        "key",
        "lifetime",
        "_implementation",
        "_instance",
        "_factory",
        "_slot",
        "_lock",
        "_owner",
        "_depth",
    )

    def __init__(self, key: Any):
        self.key = key
        self.lifetime = Lifetime.TRANSIENT
        self._implementation: Optional[type] = None
        self._instance: Any = _EMPTY
        self._factory: Optional[Callable[["Container"], Any]] = None
        self._slot: Any = _EMPTY
        # Re-entrant: a singleton factory may resolve further keys on the same thread.
        self._lock = threading.RLock()
        self._owner: Optional[int] = None
        self._depth = 0

    @property
    def implementation(self) -> Optional[type]:
        return self._implementation

    @property
    def factory(self) -> Optional[Callable[["Container"], Any]]:
        return self._factory

    @property
    def has_instance(self) -> bool:
        """True if the binding holds a fixed instance."""
        return self._instance is not _EMPTY

    @property
    def instance(self) -> Any:
        return None if self._instance is _EMPTY else self._instance

    @property
    def source(self) -> BindingSource:
        if self._factory is not None:
            return BindingSource.FACTORY
        if self._implementation is not None:
            return BindingSource.IMPLEMENTATION
        if self.has_instance:
            return BindingSource.INSTANCE
        return BindingSource.SELF

    def use_implementation(self, implementation: type) -> None:
        self._drop_instance()
        self._implementation = implementation
        self._factory = None
        self._slot = _EMPTY

    def use_instance(self, instance: Any) -> None:
        self._instance = instance
        self._implementation = None
        self._factory = None
        self._slot = instance
        self.lifetime = Lifetime.SINGLETON

    def use_factory(self, factory: Callable[["Container"], Any]) -> None:
        self._drop_instance()
        self._factory = factory
        self._implementation = None
        self._slot = _EMPTY

    def _drop_instance(self) -> None:
        # The singleton lifetime was forced by the instance, not chosen.
        if self.has_instance:
            self._instance = _EMPTY
            self.lifetime = Lifetime.TRANSIENT

    @property
    def is_materialized(self) -> bool:
        """True once the singleton slot has been filled."""
        return self._slot is not _EMPTY

    @property
    def materialized(self) -> Any:
        return None if self._slot is _EMPTY else self._slot

    def fill(self, value: Any) -> None:
        """Store the singleton value. Callers must hold the creation lock."""
        self._slot = value

    def acquire(self) -> bool:
        """Take the creation lock, waiting for another thread if needed.

        Returns False instead of blocking forever when the thread holding the
        lock is itself waiting, directly or through further threads, for a
        binding held by the caller. Each thread is then stuck on the other's
        singleton, which is a dependency cycle split across threads.
        """
        me = threading.get_ident()
        while True:
            with _waiting_lock:
                if self._lock.acquire(blocking=False):
                    self._claim(me)
                    return True
                if self._held_through(me):
                    return False
                _waiting_on[me] = self

            acquired = False
            try:
                acquired = self._lock.acquire(timeout=_WAIT_POLL_SECONDS)
            finally:
                with _waiting_lock:
                    _waiting_on.pop(me, None)
                    if acquired:
                        self._claim(me)
            if acquired:
                return True

    def release(self) -> None:
        with _waiting_lock:
            self._depth -= 1
            if self._depth == 0:
                self._owner = None
            self._lock.release()

    def _claim(self, thread_id: int) -> None:
        if self._owner == thread_id:
            self._depth += 1
        else:
            self._owner = thread_id
            self._depth = 1

    def _held_through(self, thread_id: int) -> bool:
        # Follow owner -> binding it waits on -> that binding's owner ...
        owner = self._owner
        seen = set()
        while owner is not None and owner not in seen:
            if owner == thread_id:
                return True
            seen.add(owner)
            blocked = _waiting_on.get(owner)
            owner = blocked._owner if blocked is not None else None
        return False

    def describe(self) -> "BindingInfo":
        """Snapshot of this binding for read-only inspection."""
        return BindingInfo(
            key=self.key,
            source=self.source,
            lifetime=self.lifetime,
            implementation=self._implementation,
            has_instance=self.has_instance,
            has_factory=self._factory is not None,
            materialized=self.is_materialized,
        )

    def __repr__(self) -> str:
        return f"Binding(key={self.key!r}, source={self.source.value}, lifetime={self.lifetime.value})"


@dataclass(frozen=True)
class BindingInfo:
    """Immutable view of a binding, consumed by inspection tooling."""

    key: Any
    source: BindingSource
    lifetime: Lifetime
    implementation: Optional[type] = None
    has_instance: bool = False
    has_factory: bool = False
    materialized: bool = field(default=False, compare=False)
