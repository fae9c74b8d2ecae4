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

"""Tests for the fluent registration syntax and binding records."""

from abc import ABC, abstractmethod
from typing import Generic, Protocol, TypeVar, runtime_checkable

import pytest

from arbor import ConfigurationError, Container, ContainerSettings, Lifetime
from arbor.core.binding import Binding, BindingSource
from arbor.core.syntax import BindingSyntax, FixedLifetimeSyntax, LifetimeSyntax

T = TypeVar("T")


class IRepository(ABC):
    @abstractmethod
    def get(self, key: str) -> str: ...


class MemoryRepository(IRepository):
    def get(self, key: str) -> str:
        return key


class AbstractRepository(IRepository):
    """Still abstract: does not implement get()."""


class Unrelated:
    pass


class Box(Generic[T]):
    def __init__(self):
        self.items = []


@runtime_checkable
class IGreeter(Protocol):
    def greet(self) -> str: ...


class Greeter:
    def greet(self) -> str:
        return "hi"


class TestBindingSyntax:
    """Tests for BindingSyntax validation."""

    def setup_method(self):
        self.container = Container(settings=ContainerSettings())

    def teardown_method(self):
        self.container.dispose()

    def test_register_returns_binding_syntax(self):
        """register() hands back syntax bound to the key."""
        syntax = self.container.register(IRepository)

        assert isinstance(syntax, BindingSyntax)
        assert syntax.key is IRepository

    def test_to_implementation_returns_lifetime_syntax(self):
        """Choosing an implementation leaves the lifetime open, transient by default."""
        lifetime = self.container.register(IRepository).to_implementation(MemoryRepository)

        assert type(lifetime) is LifetimeSyntax
        assert self.container.bindings()[IRepository].lifetime is Lifetime.TRANSIENT

    def test_as_singleton_then_as_transient(self):
        """The last lifetime call wins on a normal binding."""
        lifetime = self.container.register(IRepository).to_implementation(MemoryRepository)
        lifetime.as_singleton()
        assert self.container.bindings()[IRepository].lifetime is Lifetime.SINGLETON

        lifetime.as_transient()
        assert self.container.bindings()[IRepository].lifetime is Lifetime.TRANSIENT

    def test_rejects_abstract_implementation(self):
        """Abstract implementations are refused at registration time."""
        with pytest.raises(ConfigurationError):
            self.container.register(IRepository).to_implementation(AbstractRepository)

    def test_rejects_protocol_implementation(self):
        """Protocols cannot be implementations."""
        with pytest.raises(ConfigurationError):
            self.container.register(IGreeter).to_implementation(IGreeter)

    def test_rejects_unassignable_implementation(self):
        """The implementation must subclass the key."""
        with pytest.raises(ConfigurationError) as exc_info:
            self.container.register(IRepository).to_implementation(Unrelated)

        assert "not assignable" in str(exc_info.value)

    def test_rejects_open_generic_implementation(self):
        """Open generics need their type parameters bound."""
        with pytest.raises(ConfigurationError):
            self.container.register(Box).to_implementation(Box)

    def test_accepts_closed_generic(self):
        """Box[int] is bound and built through its origin class."""
        self.container.register(Box[int]).to_implementation(Box[int]).as_singleton()

        box = self.container.resolve(Box[int])

        assert isinstance(box, Box)
        assert self.container.resolve(Box[int]) is box

    def test_runtime_protocol_checks_structure(self):
        """Runtime checkable protocols are verified structurally."""
        self.container.register(IGreeter).to_implementation(Greeter)

        assert self.container.resolve(IGreeter).greet() == "hi"

    def test_rejects_none_implementation(self):
        with pytest.raises(ConfigurationError):
            self.container.register(IRepository).to_implementation(None)

    def test_rejects_none_instance(self):
        with pytest.raises(ConfigurationError):
            self.container.register(IRepository).to_instance(None)

    def test_rejects_wrong_instance_type(self):
        """Instances are checked against the key."""
        with pytest.raises(ConfigurationError):
            self.container.register(IRepository).to_instance(Unrelated())

    def test_rejects_non_callable_factory(self):
        with pytest.raises(ConfigurationError):
            self.container.register(IRepository).to_factory("not callable")

    def test_instance_binding_cannot_become_transient(self):
        """to_instance(x).as_transient() fails and the binding stays singleton."""
        lifetime = self.container.register(IRepository).to_instance(MemoryRepository())

        assert isinstance(lifetime, FixedLifetimeSyntax)
        with pytest.raises(ConfigurationError) as exc_info:
            lifetime.as_transient()

        assert exc_info.value.recovery_hint is not None
        assert self.container.bindings()[IRepository].lifetime is Lifetime.SINGLETON

    def test_instance_binding_as_singleton_is_noop(self):
        """as_singleton() on an instance binding is accepted."""
        repo = MemoryRepository()
        self.container.register(IRepository).to_instance(repo).as_singleton()

        assert self.container.resolve(IRepository) is repo

    def test_later_strategy_replaces_earlier(self):
        """Only the last construction strategy on a binding applies."""
        syntax = self.container.register(IRepository)
        syntax.to_instance(MemoryRepository())
        syntax.to_factory(lambda c: MemoryRepository())

        info = self.container.bindings()[IRepository]
        assert info.source is BindingSource.FACTORY
        assert not info.has_instance
        assert self.container.resolve(IRepository) is not self.container.resolve(IRepository)


class TestBinding:
    """Tests for the Binding record."""

    def test_new_binding_is_transient_self_binding(self):
        binding = Binding(MemoryRepository)

        assert binding.lifetime is Lifetime.TRANSIENT
        assert binding.source is BindingSource.SELF
        assert not binding.is_materialized

    def test_use_instance_fills_slot(self):
        """An instance binding is a materialized singleton from the start."""
        repo = MemoryRepository()
        binding = Binding(IRepository)
        binding.use_instance(repo)

        assert binding.lifetime is Lifetime.SINGLETON
        assert binding.is_materialized
        assert binding.materialized is repo

    def test_describe_snapshot(self):
        """describe() produces an immutable BindingInfo."""
        binding = Binding(IRepository)
        binding.use_implementation(MemoryRepository)
        info = binding.describe()

        assert info.key is IRepository
        assert info.implementation is MemoryRepository
        with pytest.raises(AttributeError):
            info.lifetime = Lifetime.SINGLETON
