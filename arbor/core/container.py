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

"""Hierarchical dependency injection container.

This module provides the resolution engine:
- A binding table per container, filled through the fluent ``register`` syntax
- Singleton and transient lifetimes with per-binding locking
- Constructor injection with fallback to less specific constructors
- Deterministic circular dependency detection
- Child containers that see and may shadow their parent's bindings

Design Principles:
- A container owns its bindings and the singletons it creates
- Parents are referenced, never mutated or disposed by children
- Failed resolutions leave the table and the resolution stack consistent

Example Usage:
    from arbor import Container

    container = Container()
    container.register(IClock).to_implementation(SystemClock).as_singleton()
    container.register(Scheduler).to_implementation(Scheduler)

    scheduler = container.resolve(Scheduler)

    with container.create_child() as scope:
        scope.register(IClock).to_instance(FrozenClock())
        frozen = scope.resolve(Scheduler)
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, TypeVar, cast

from arbor.config.settings import ContainerSettings, load_settings
from arbor.core.binding import Binding, BindingInfo, Disposable, Lifetime
from arbor.core.errors import (
    ArborError,
    CircularDependencyError,
    ConfigurationError,
    ConstructionError,
    ContainerArgumentError,
    ContainerDisposedError,
    ResolutionError,
    UnresolvableDependencyError,
    describe_key,
)
from arbor.core.reflection import (
    MISSING,
    VALUE_TYPES,
    ConstructorInfo,
    ParameterInfo,
    concrete_class,
    deferred_target,
    get_constructors,
    is_concrete,
    optional_target,
)
from arbor.core.syntax import BindingSyntax

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Container:
    """Dependency injection container.

    Manages registration, resolution and the lifetime of the singletons it
    creates. Thread-safe for concurrent registration and resolution; see
    :class:`~arbor.config.ContainerSettings` for the cycle-detection mode.

    Example:
        container = Container()
        container.register(ILogger).to_implementation(FileLogger).as_singleton()
        container.register(ICache).to_factory(lambda c: RedisCache(c.resolve(ILogger)))

        cache = container.resolve(ICache)
    """

    def __init__(
        self,
        settings: Optional[ContainerSettings] = None,
        parent: Optional["Container"] = None,
    ) -> None:
        """Initialize an empty container.

        Args:
            settings: Behavioural settings; children inherit their parent's
            parent: Container to inherit bindings from. Prefer ``create_child()``.
        """
        if settings is None:
            settings = parent.settings if parent is not None else load_settings()
        self._settings = settings
        self._parent = parent
        self._bindings: Dict[Any, Binding] = {}
        self._disposables: List[Any] = []
        self._lock = threading.RLock()
        self._disposed = False

        self._shared_stack: Dict[Any, None] = {}
        self._thread_stacks: Optional[threading.local] = (
            threading.local() if settings.thread_local_resolution else None
        )

        # Every container can inject itself.
        self.register(Container).to_instance(self)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def parent(self) -> Optional["Container"]:
        return self._parent

    @property
    def settings(self) -> ContainerSettings:
        return self._settings

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, service_key: Type[T]) -> BindingSyntax[T]:
        """Start a registration for ``service_key``.

        Any existing binding for the key in this container is replaced.
        Parent containers are never touched.

        Args:
            service_key: Class, protocol, generic alias or hashable token

        Returns:
            Syntax object to choose implementation, instance or factory

        Raises:
            ConfigurationError: If the key is None or unhashable
            ContainerDisposedError: If the container has been disposed
        """
        self._check_disposed()
        self._check_key(service_key, ConfigurationError)

        binding = Binding(service_key)
        with self._lock:
            replaced = service_key in self._bindings
            self._bindings[service_key] = binding
        logger.debug(f"{'Replaced' if replaced else 'Registered'} {describe_key(service_key)}")
        return BindingSyntax(self, binding)

    def is_registered(self, service_key: Any, include_parents: bool = True) -> bool:
        """Check for an explicit binding, here or along the parent chain."""
        if self._disposed or service_key is None:
            return False
        with self._lock:
            if service_key in self._bindings:
                return True
        if include_parents and self._parent is not None:
            return self._parent.is_registered(service_key)
        return False

    def bindings(self) -> Mapping[Any, BindingInfo]:
        """Read-only snapshot of this container's own bindings.

        Returns:
            Mapping of service key to immutable ``BindingInfo``
        """
        self._check_disposed()
        with self._lock:
            snapshot = {key: binding.describe() for key, binding in self._bindings.items()}
        return MappingProxyType(snapshot)

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, service_key: Type[T]) -> T:
        """Resolve an instance for ``service_key``.

        Order of lookup: local binding, deferred factory (``Callable[[], T]``),
        parent chain, implicit construction of a concrete class.

        Raises:
            CircularDependencyError: If ``service_key`` is already being resolved
            UnresolvableDependencyError: If nothing can provide the key
            ConstructionError: If building the instance failed
            ContainerDisposedError: If the container has been disposed
        """
        self._check_disposed()
        self._check_key(service_key, ContainerArgumentError)

        stack = self._resolution_stack()
        if service_key in stack:
            raise CircularDependencyError(service_key, stack.keys())
        stack[service_key] = None
        try:
            return cast(T, self._resolve_unguarded(service_key))
        finally:
            stack.pop(service_key, None)

    def can_resolve(self, service_key: Any) -> bool:
        """Check whether ``service_key`` could be resolved, without building it.

        For unregistered concrete classes this is optimistic: constructor
        parameters are not checked.
        """
        if self._disposed or service_key is None:
            return False
        try:
            hash(service_key)
        except TypeError:
            return False

        with self._lock:
            if service_key in self._bindings:
                return True
        if self._parent is not None and self._parent.can_resolve(service_key):
            return True
        target = deferred_target(service_key)
        if target is not MISSING:
            return self.can_resolve(target)
        return self._settings.auto_bind_concrete and is_concrete(service_key)

    def construct(self, concrete_type: Type[T]) -> T:
        """Build ``concrete_type`` by constructor injection from this container.

        No binding is required and none is created.

        Raises:
            ContainerArgumentError: If the type is abstract, a protocol, an
                open generic or not a class
            ConstructionError: If no constructor could be satisfied
        """
        self._check_disposed()
        self._check_key(concrete_type, ContainerArgumentError)
        if not is_concrete(concrete_type):
            raise ContainerArgumentError(
                f"Cannot construct {describe_key(concrete_type)}. Provide a concrete class, "
                "not an abstract class, protocol or open generic type.",
                service_key=concrete_type,
            )
        return cast(T, self._instantiate(concrete_type, self))

    def _resolve_unguarded(self, service_key: Any) -> Any:
        with self._lock:
            binding = self._bindings.get(service_key)
        if binding is not None:
            return self._resolve_binding(binding, self)

        target = deferred_target(service_key)
        if target is not MISSING and self.can_resolve(target):
            return self._deferred_factory(target)

        parent = self._parent
        if parent is not None and parent.can_resolve(service_key):
            # The parent tracks its own cycles and becomes the resolution context.
            return parent.resolve(service_key)

        if self._settings.auto_bind_concrete and is_concrete(service_key):
            try:
                return self._instantiate(service_key, self)
            except CircularDependencyError:
                raise
            except ResolutionError as e:
                raise UnresolvableDependencyError(
                    f"Could not resolve concrete type {describe_key(service_key)}. It was not "
                    f"registered and implicit construction failed: {e.message}",
                    service_key=service_key,
                    cause=e,
                ) from e

        raise UnresolvableDependencyError(
            f"Could not resolve {describe_key(service_key)}. No registration found in this "
            "container or its parents, and it is not an instantiable concrete type.",
            service_key=service_key,
        )

    def _deferred_factory(self, target: Any) -> Callable[[], Any]:
        def deferred() -> Any:
            return self.resolve(target)

        deferred.__qualname__ = f"deferred[{describe_key(target)}]"
        return deferred

    def _resolve_binding(self, binding: Binding, context: "Container") -> Any:
        if binding.lifetime is Lifetime.SINGLETON:
            if not binding.is_materialized:
                if not binding.acquire():
                    path = [k for k in self._resolution_stack() if k != binding.key]
                    logger.error(
                        f"Singleton {describe_key(binding.key)} is being created by another "
                        "thread that waits on this one"
                    )
                    raise CircularDependencyError(binding.key, path, details={"cross_thread": True})
                try:
                    if not binding.is_materialized:
                        instance = self._create_instance(binding, context)
                        binding.fill(instance)
                        self._track_disposable(instance)
                        logger.debug(f"Created singleton {describe_key(binding.key)}")
                finally:
                    binding.release()
            return binding.materialized

        # Transient instances are not tracked for disposal.
        return self._create_instance(binding, context)

    def _create_instance(self, binding: Binding, context: "Container") -> Any:
        key = binding.key
        try:
            if binding.factory is not None:
                return binding.factory(context)
            if binding.implementation is not None:
                return self._instantiate(binding.implementation, context)
            if binding.has_instance:
                return binding.instance
            if is_concrete(key):
                return self._instantiate(key, context)
        except ArborError:
            raise
        except Exception as e:
            raise ConstructionError(
                f"Failed to create instance for registration {describe_key(key)}: {e}",
                service_key=key,
                cause=e,
            ) from e

        raise ResolutionError(
            f"Binding for {describe_key(key)} is incomplete. No instance, implementation or "
            "factory was provided, and the key is not a concrete type.",
            service_key=key,
            recovery_hint="Finish the registration with to_implementation(), to_instance() or to_factory().",
        )

    # -------------------------------------------------------------------------
    # Constructor injection
    # -------------------------------------------------------------------------

    def _instantiate(self, concrete_type: Any, context: "Container") -> Any:
        cls = concrete_class(concrete_type)
        if cls is None:
            raise ConstructionError(
                f"Cannot instantiate {describe_key(concrete_type)}. It is not a concrete type.",
                service_key=concrete_type,
            )

        constructors = get_constructors(cls)
        if not constructors:
            if issubclass(cls, VALUE_TYPES):
                return cls()
            raise ConstructionError(
                f"Cannot instantiate {describe_key(concrete_type)}. No inspectable constructors found.",
                service_key=concrete_type,
            )

        last_error: Optional[ResolutionError] = None
        for ctor in constructors:
            try:
                args, kwargs = self._resolve_arguments(ctor, cls, context)
            except CircularDependencyError:
                raise
            except ResolutionError as e:
                # Try the next, less specific constructor.
                last_error = e
                continue

            target = concrete_type if ctor.is_primary else getattr(cls, ctor.name)
            try:
                return target(*args, **kwargs)
            except ArborError:
                raise
            except Exception as e:
                raise ConstructionError(
                    f"Constructor {ctor.describe(cls)} failed for {describe_key(concrete_type)}: {e}",
                    service_key=concrete_type,
                    cause=e,
                ) from e

        raise ConstructionError(
            f"Could not instantiate {describe_key(concrete_type)}. No constructor had all "
            f"parameters resolvable. Last error: {last_error.message if last_error else 'none'}",
            service_key=concrete_type,
            cause=last_error,
        )

    def _resolve_arguments(
        self, ctor: ConstructorInfo, cls: type, context: "Container"
    ) -> Tuple[List[Any], Dict[str, Any]]:
        args: List[Any] = []
        kwargs: Dict[str, Any] = {}
        for param in ctor.parameters:
            try:
                value = context.resolve_parameter(param)
            except CircularDependencyError:
                raise
            except ResolutionError as e:
                raise ResolutionError(
                    f"Failed to resolve parameter '{param.name}' ({describe_key(param.annotation)}) "
                    f"for {ctor.describe(cls)}: {e.message}",
                    service_key=param.annotation if param.annotation is not MISSING else None,
                    cause=e,
                ) from e
            if param.positional_only:
                args.append(value)
            else:
                kwargs[param.name] = value
        return args, kwargs

    def resolve_parameter(self, param: ParameterInfo) -> Any:
        """Resolve one constructor or method parameter.

        Parameters with a default are only resolved when explicitly
        registered; ``Optional[T]`` without a default becomes None when
        ``T`` cannot be resolved.

        Raises:
            ResolutionError: If the parameter cannot be satisfied
        """
        annotation = param.annotation
        if annotation is MISSING:
            if param.has_default:
                return param.default
            raise UnresolvableDependencyError(
                f"Parameter '{param.name}' has no type annotation and no default value."
            )
        if isinstance(annotation, str):
            if not self.is_registered(annotation) and param.has_default:
                return param.default
            return self.resolve(annotation)

        if param.has_default:
            return self.resolve(annotation) if self.is_registered(annotation) else param.default

        inner = optional_target(annotation)
        if inner is not MISSING and not self.is_registered(annotation):
            return self.resolve(inner) if self.can_resolve(inner) else None
        return self.resolve(annotation)

    # -------------------------------------------------------------------------
    # Scoping and disposal
    # -------------------------------------------------------------------------

    def create_child(self) -> "Container":
        """Create a child container that inherits this container's bindings.

        The child can shadow any binding by registering its own. Disposing
        the child never affects this container, and disposing this container
        does not dispose the child.
        """
        self._check_disposed()
        child = Container(settings=self._settings, parent=self)
        logger.debug(f"Created child container {id(child):#x} of {id(self):#x}")
        return child

    def _track_disposable(self, instance: Any) -> None:
        if instance is self or not isinstance(instance, Disposable):
            return
        with self._lock:
            if not any(tracked is instance for tracked in self._disposables):
                self._disposables.append(instance)

    def dispose(self) -> None:
        """Dispose tracked singletons in reverse creation order and clear bindings.

        Safe to call more than once. Failures of individual singletons are
        logged and do not stop the remaining ones.
        """
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            disposables = list(reversed(self._disposables))
            self._disposables.clear()

        logger.debug(f"Disposing container {id(self):#x} ({len(disposables)} singletons)")
        for instance in disposables:
            try:
                instance.dispose()
            except Exception as e:
                logger.warning(f"Error disposing singleton {describe_key(type(instance))}: {e}")

        with self._lock:
            self._bindings.clear()
            self._shared_stack.clear()
        if self._thread_stacks is not None:
            self._thread_stacks.__dict__.pop("stack", None)

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else f"{len(self._bindings)} bindings"
        if self._parent is None:
            return f"<Container {id(self):#x} {state}>"
        return f"<Container {id(self):#x} {state} parent={id(self._parent):#x}>"

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _resolution_stack(self) -> Dict[Any, None]:
        if self._thread_stacks is None:
            return self._shared_stack
        stack = getattr(self._thread_stacks, "stack", None)
        if stack is None:
            stack = self._thread_stacks.stack = {}
        return stack

    def _check_disposed(self) -> None:
        if self._disposed:
            raise ContainerDisposedError()

    @staticmethod
    def _check_key(service_key: Any, error: Type[ArborError]) -> None:
        if service_key is None:
            raise error("Service key cannot be None")
        try:
            hash(service_key)
        except TypeError as e:
            raise error(f"Service key {service_key!r} is not hashable") from e
