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

"""Field, property and method injection into existing objects.

Objects built outside the container (by a host framework, a test, a plain
constructor call) can still receive dependencies through marked injection
points:

    class HealthPanel:
        clock: Annotated[IClock, Inject()]
        tracer: Annotated[ITracer, Inject(optional=True)]

        @property
        def theme(self) -> Theme:
            return self._theme

        @theme.setter
        @inject
        def theme(self, value: Theme) -> None:
            self._theme = value

        @inject(optional=True)
        def attach(self, bus: IEventBus, metrics: IMetrics) -> None:
            ...

    inject_into(container, panel)

Injection points are discovered once per class and cached. Optional points
that cannot be satisfied are skipped silently; mandatory ones are logged
as errors and the remaining points are still processed.
"""

from __future__ import annotations

import inspect
import logging
import threading
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
    get_args,
    get_origin,
    overload,
)

from arbor.core.errors import ArborError, describe_key
from arbor.core.reflection import (
    MISSING,
    ParameterInfo,
    optional_target,
    parameters_of,
    safe_type_hints,
)

if TYPE_CHECKING:
    from arbor.core.container import Container

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

INJECT_MARKER = "__arbor_inject__"


@dataclass(frozen=True)
class Inject:
    """Marks an injection point.

    Use as ``Annotated`` metadata on a class attribute, or through the
    :func:`inject` decorator on a method or property setter.

    Attributes:
        optional: Skip silently when the dependency cannot be resolved
    """

    optional: bool = False


@overload
def inject(func: F) -> F: ...


@overload
def inject(*, optional: bool = False) -> Callable[[F], F]: ...


def inject(func: Optional[F] = None, *, optional: bool = False) -> Union[F, Callable[[F], F]]:
    """Mark a method or property setter as an injection point.

    Usage:
        @inject
        def attach(self, bus: IEventBus) -> None: ...

        @inject(optional=True)
        def attach_metrics(self, metrics: IMetrics) -> None: ...
    """

    def decorator(f: F) -> F:
        setattr(f, INJECT_MARKER, Inject(optional=optional))
        return f

    if func is not None:
        return decorator(func)
    return decorator


# =============================================================================
# Injection point metadata
# =============================================================================


@dataclass(frozen=True)
class MemberPoint:
    """A field or property to assign."""

    name: str
    service_key: Any
    optional: bool
    is_property: bool = False

    @property
    def kind(self) -> str:
        return "property" if self.is_property else "field"


@dataclass(frozen=True)
class MethodPoint:
    """A method to call with resolved arguments."""

    name: str
    parameters: Tuple[ParameterInfo, ...]
    optional: bool


@dataclass
class InjectionPoints:
    """Cached injection points of one class."""

    fields: List[MemberPoint] = field(default_factory=list)
    properties: List[MemberPoint] = field(default_factory=list)
    methods: List[MethodPoint] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.fields or self.properties or self.methods)


def _marker_from_metadata(metadata: Iterable[Any]) -> Optional[Inject]:
    for item in metadata:
        if isinstance(item, Inject):
            return item
        if item is Inject:
            return Inject()
    return None


def _field_points(cls: type) -> List[MemberPoint]:
    points: List[MemberPoint] = []
    for name, hint in safe_type_hints(cls, include_extras=True).items():
        if isinstance(hint, str):
            if "Inject" in hint:
                logger.error(
                    f"Cannot evaluate annotation {hint!r} of field '{name}' in {cls.__qualname__}. "
                    "The field will not be injected."
                )
            continue
        if get_origin(hint) is ClassVar:
            continue
        if get_origin(hint) is not Annotated:
            continue
        marker = _marker_from_metadata(hint.__metadata__)
        if marker is None:
            continue
        points.append(MemberPoint(name, get_args(hint)[0], marker.optional))
    return points


def _class_members(cls: type) -> Dict[str, Any]:
    # Most derived definition wins, in base-first declaration order.
    members: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, attr in vars(klass).items():
            members[name] = attr
    return members


def _setter_type(setter: Callable[..., Any]) -> Any:
    params = list(inspect.signature(setter).parameters.values())
    if len(params) < 2:
        return MISSING
    hints = safe_type_hints(setter)
    annotation = hints.get(params[1].name, params[1].annotation)
    return MISSING if annotation is inspect.Parameter.empty else annotation


def _member_points(cls: type) -> Tuple[List[MemberPoint], List[MethodPoint]]:
    properties: List[MemberPoint] = []
    methods: List[MethodPoint] = []
    for name, attr in _class_members(cls).items():
        if isinstance(attr, property):
            marker = getattr(attr.fset, INJECT_MARKER, None) if attr.fset else None
            if marker is not None:
                properties.append(MemberPoint(name, _setter_type(attr.fset), marker.optional, True))
            continue
        if inspect.isfunction(attr):
            marker = getattr(attr, INJECT_MARKER, None)
            if marker is None:
                continue
            hints = safe_type_hints(attr)
            hints.pop("return", None)
            # Drop ``self``.
            params = parameters_of(inspect.signature(attr), hints)[1:]
            methods.append(MethodPoint(name, params, marker.optional))
    return properties, methods


def _discover(cls: type) -> InjectionPoints:
    properties, methods = _member_points(cls)
    return InjectionPoints(fields=_field_points(cls), properties=properties, methods=methods)


_points_cache: Dict[type, InjectionPoints] = {}
_points_cache_lock = threading.Lock()


def get_injection_points(cls: type) -> InjectionPoints:
    """Injection points of ``cls``, computed on first use and cached."""
    cached = _points_cache.get(cls)
    if cached is not None:
        return cached
    points = _discover(cls)
    with _points_cache_lock:
        return _points_cache.setdefault(cls, points)


def clear_injection_cache() -> None:
    """Drop cached injection metadata."""
    with _points_cache_lock:
        _points_cache.clear()


# =============================================================================
# Injection pass
# =============================================================================


def _inject_member(container: "Container", target: Any, point: MemberPoint, owner: str) -> bool:
    key = point.service_key
    try:
        if key is not MISSING and container.can_resolve(key):
            setattr(target, point.name, container.resolve(key))
            return True
        if not point.optional:
            logger.error(
                f"Could not resolve mandatory dependency {describe_key(key)} "
                f"for {point.kind} '{point.name}' in {owner}"
            )
    except ArborError as e:
        if point.optional:
            logger.debug(f"Skipped optional {point.kind} '{point.name}' in {owner}: {e.message}")
        else:
            logger.error(f"Error injecting {point.kind} '{point.name}' in {owner}: {e.message}")
    except Exception as e:
        logger.error(f"Error injecting {point.kind} '{point.name}' in {owner}: {e}")
    return False


def _inject_method(container: "Container", target: Any, point: MethodPoint, owner: str) -> bool:
    arguments: List[Any] = []
    keywords: Dict[str, Any] = {}
    for param in point.parameters:
        # Optional[T] parameters resolve to None when T is unavailable.
        resolvable = param.has_default or (
            param.annotation is not MISSING
            and (
                optional_target(param.annotation) is not MISSING
                or container.can_resolve(param.annotation)
            )
        )
        if not resolvable:
            if not point.optional:
                logger.error(
                    f"Could not resolve mandatory parameter '{param.name}' of type "
                    f"{describe_key(param.annotation)} for method '{point.name}' in {owner}. "
                    "Skipping method injection."
                )
            return False
        try:
            value = container.resolve_parameter(param)
        except ArborError as e:
            if point.optional:
                logger.debug(f"Skipped optional method '{point.name}' in {owner}: {e.message}")
            else:
                logger.error(f"Error injecting method '{point.name}' in {owner}: {e.message}")
            return False
        if param.positional_only:
            arguments.append(value)
        else:
            keywords[param.name] = value

    try:
        getattr(target, point.name)(*arguments, **keywords)
    except Exception as e:
        logger.error(f"Error invoking injection method '{point.name}' in {owner}: {e}")
        return False
    return True


def inject_into(container: Optional["Container"], target: Any) -> bool:
    """Populate the injection points of an existing object.

    Fields first, then properties, then methods. A failure on one point
    never stops the others.

    Args:
        container: Container to resolve dependencies from
        target: Object to inject into

    Returns:
        True if at least one injection point was populated
    """
    if container is None or target is None:
        return False

    cls = type(target)
    points = get_injection_points(cls)
    if points.empty:
        return False

    owner = cls.__qualname__
    injected_any = False
    for member in points.fields:
        injected_any = _inject_member(container, target, member, owner) or injected_any
    for member in points.properties:
        injected_any = _inject_member(container, target, member, owner) or injected_any
    for method in points.methods:
        injected_any = _inject_method(container, target, method, owner) or injected_any
    return injected_any


def inject_all(container: Optional["Container"], targets: Iterable[Any]) -> int:
    """Run :func:`inject_into` over several objects, e.g. a component tree.

    Returns:
        Number of objects that received at least one injection
    """
    if container is None:
        return 0
    count = 0
    for target in targets:
        try:
            if inject_into(container, target):
                count += 1
        except Exception as e:
            logger.error(f"Error injecting into {type(target).__qualname__}: {e}")
    return count
