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

"""Fluent registration syntax.

``Container.register(key)`` returns a :class:`BindingSyntax`; choosing a
construction strategy returns a lifetime syntax:

    container.register(IClock).to_implementation(SystemClock).as_singleton()
    container.register(Settings).to_instance(settings)
    container.register(Session).to_factory(lambda c: Session(c.resolve(Engine)))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from arbor.core.binding import Binding, Lifetime
from arbor.core.errors import ConfigurationError, describe_key
from arbor.core.reflection import concrete_class, is_assignable, is_instance_of, is_open_generic

if TYPE_CHECKING:
    from arbor.core.container import Container

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LifetimeSyntax:
    """Chooses the lifetime of a binding. Defaults to transient."""

    def __init__(self, binding: Binding):
        self._binding = binding

    def as_singleton(self) -> None:
        if self._binding.has_instance:
            raise ConfigurationError(
                f"Cannot change lifetime of instance binding {describe_key(self._binding.key)}; "
                "it is already a singleton."
            )
        self._binding.lifetime = Lifetime.SINGLETON
        logger.debug(f"{describe_key(self._binding.key)} lifetime set to singleton")

    def as_transient(self) -> None:
        if self._binding.has_instance:
            raise ConfigurationError(
                f"Cannot change lifetime of instance binding {describe_key(self._binding.key)}; "
                "it is fixed as a singleton."
            )
        self._binding.lifetime = Lifetime.TRANSIENT
        logger.debug(f"{describe_key(self._binding.key)} lifetime set to transient")


class FixedLifetimeSyntax(LifetimeSyntax):
    """Lifetime syntax for instance bindings, which are always singletons."""

    def as_singleton(self) -> None:
        pass

    def as_transient(self) -> None:
        raise ConfigurationError(
            f"Cannot make instance binding {describe_key(self._binding.key)} transient. "
            "Instance bindings are always singletons.",
            recovery_hint="Use to_factory() to build a fresh value per resolution.",
        )


class BindingSyntax(Generic[T]):
    """Chooses how the service registered under one key is built."""

    def __init__(self, container: "Container", binding: Binding):
        self._container = container
        self._binding = binding

    @property
    def key(self) -> Any:
        return self._binding.key

    def to_implementation(self, implementation: type) -> LifetimeSyntax:
        """Build the service by constructor injection of ``implementation``.

        Raises:
            ConfigurationError: If the class is abstract, a protocol, an open
                generic, or not assignable to the key
        """
        if implementation is None:
            raise ConfigurationError(f"Implementation for {describe_key(self.key)} cannot be None")
        if is_open_generic(implementation):
            raise ConfigurationError(
                f"Implementation {describe_key(implementation)} cannot be an open generic type. "
                "Provide a parameterised type."
            )
        cls = concrete_class(implementation)
        if cls is None:
            raise ConfigurationError(
                f"Implementation {describe_key(implementation)} cannot be an abstract class, "
                "a protocol or a non-class object."
            )
        if not is_assignable(self.key, cls):
            raise ConfigurationError(
                f"Implementation {describe_key(implementation)} is not assignable to "
                f"service {describe_key(self.key)}."
            )
        self._binding.use_implementation(implementation)
        logger.debug(f"Bound {describe_key(self.key)} to {describe_key(implementation)}")
        return LifetimeSyntax(self._binding)

    def to_instance(self, instance: T) -> FixedLifetimeSyntax:
        """Always resolve to ``instance``; the binding becomes a singleton.

        A disposable instance is tracked by the container right away.

        Raises:
            ConfigurationError: If the instance is None or of the wrong type
        """
        if instance is None:
            raise ConfigurationError(f"Instance for {describe_key(self.key)} cannot be None")
        if not is_instance_of(self.key, instance):
            raise ConfigurationError(
                f"Instance of {describe_key(type(instance))} is not assignable to "
                f"service {describe_key(self.key)}."
            )
        self._binding.use_instance(instance)
        self._container._track_disposable(instance)
        logger.debug(f"Bound {describe_key(self.key)} to an instance of {describe_key(type(instance))}")
        return FixedLifetimeSyntax(self._binding)

    def to_factory(self, factory: Callable[["Container"], T]) -> LifetimeSyntax:
        """Build the service by calling ``factory(container)``.

        The container passed in is the one that owns the binding.
        """
        if not callable(factory):
            raise ConfigurationError(f"Factory for {describe_key(self.key)} must be callable")
        self._binding.use_factory(factory)
        logger.debug(f"Bound {describe_key(self.key)} to factory {getattr(factory, '__qualname__', factory)!r}")
        return LifetimeSyntax(self._binding)
