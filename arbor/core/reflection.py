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

"""Runtime type inspection used by the resolution engine.

Answers three questions about service keys and classes:
- Is a key a concrete, instantiable class (or a closed generic alias of one)?
- Is an implementation or instance assignable to a key, where that can be checked?
- Which constructors does a class offer, and what do their parameters need?

Constructor candidates are the class call itself (``__init__``/``__new__``)
plus every classmethod marked with :func:`constructor`. They are computed
once per class and cached for the process lifetime.
"""

from __future__ import annotations

import collections.abc
import inspect
import logging
import sys
import threading
import types
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    ForwardRef,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

CONSTRUCTOR_MARKER = "__arbor_constructor__"

# Numeric builtins without an inspectable signature; built as their zero value.
# str, bytes, tuple and frozenset are left out: an unregistered one fails the candidate.
VALUE_TYPES: Tuple[type, ...] = (int, float, complex, bool)


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()


# =============================================================================
# Key classification
# =============================================================================


def _is_protocol(cls: type) -> bool:
    return bool(getattr(cls, "_is_protocol", False))


def is_open_generic(key: Any) -> bool:
    """True for a generic class whose type parameters are still unbound."""
    return isinstance(key, type) and bool(getattr(key, "__parameters__", ()))


def concrete_class(key: Any) -> Optional[type]:
    """Return the class that would be instantiated for ``key``, if any.

    Plain classes qualify unless abstract, a protocol or an open generic.
    A parameterised alias such as ``Repository[User]`` qualifies through its
    origin class.
    """
    if isinstance(key, type):
        if inspect.isabstract(key) or _is_protocol(key) or is_open_generic(key):
            return None
        return key
    origin = get_origin(key)
    if isinstance(origin, type):
        if origin is collections.abc.Callable or inspect.isabstract(origin) or _is_protocol(origin):
            return None
        return origin
    return None


def is_concrete(key: Any) -> bool:
    return concrete_class(key) is not None


def _contract_class(key: Any) -> Optional[type]:
    if isinstance(key, type):
        return key
    origin = get_origin(key)
    return origin if isinstance(origin, type) else None


def is_assignable(key: Any, implementation: type) -> bool:
    """Whether ``implementation`` satisfies ``key``.

    Keys that are not classes (string tokens, unions) and protocols that are
    not runtime checkable cannot be verified and are accepted.
    """
    contract = _contract_class(key)
    if contract is None:
        return True
    if _is_protocol(contract) and not getattr(contract, "_is_runtime_protocol", False):
        return True
    try:
        return issubclass(implementation, contract)
    except TypeError:
        # Runtime protocols with data members do not support issubclass().
        return True


def is_instance_of(key: Any, value: Any) -> bool:
    """Instance counterpart of :func:`is_assignable`."""
    contract = _contract_class(key)
    if contract is None:
        return True
    if _is_protocol(contract) and not getattr(contract, "_is_runtime_protocol", False):
        return True
    try:
        return isinstance(value, contract)
    except TypeError:
        return True


def deferred_target(key: Any) -> Any:
    """For ``Callable[[], T]`` return ``T``; otherwise :data:`MISSING`."""
    if get_origin(key) is not collections.abc.Callable:
        return MISSING
    args = get_args(key)
    if len(args) != 2 or args[0] != []:
        return MISSING
    return args[1]


def optional_target(annotation: Any) -> Any:
    """For ``Optional[T]`` return ``T``; otherwise :data:`MISSING`."""
    origin = get_origin(annotation)
    if origin is not Union and origin is not getattr(types, "UnionType", None):
        return MISSING
    members = [arg for arg in get_args(annotation) if arg is not type(None)]
    if len(members) != 1 or len(get_args(annotation)) != 2:
        return MISSING
    return members[0]


def safe_type_hints(obj: Any, include_extras: bool = False) -> Dict[str, Any]:
    """``get_type_hints`` that degrades name by name on failure.

    ``get_type_hints`` gives up on the whole object when a single annotation
    cannot be evaluated (typically a name imported only under
    ``TYPE_CHECKING``). The fallback evaluates each annotation on its own, so
    only the broken ones stay as strings.
    """
    try:
        return get_type_hints(obj, include_extras=include_extras)
    except Exception as e:
        logger.debug(f"Evaluating annotations of {obj!r} one by one: {e}")

    hints: Dict[str, Any] = {}
    if isinstance(obj, type):
        # Base classes first so subclasses override, as get_type_hints does.
        for klass in reversed(obj.__mro__):
            globalns = _module_namespace(klass)
            localns = dict(vars(klass))
            for name, annotation in _own_annotations(klass).items():
                hints[name] = _evaluate(annotation, globalns, localns)
    else:
        globalns = getattr(inspect.unwrap(obj), "__globals__", None) or _module_namespace(obj)
        for name, annotation in _own_annotations(obj).items():
            hints[name] = _evaluate(annotation, globalns, None)

    if not include_extras:
        hints = {name: _strip_annotated(hint) for name, hint in hints.items()}
    return hints


def _own_annotations(obj: Any) -> Dict[str, Any]:
    try:
        return dict(inspect.get_annotations(obj))
    except Exception as e:
        logger.debug(f"Cannot read annotations of {obj!r}: {e}")
        return {}


def _module_namespace(obj: Any) -> Dict[str, Any]:
    module = sys.modules.get(getattr(obj, "__module__", None) or "")
    return dict(vars(module)) if module is not None else {}


def _evaluate(annotation: Any, globalns: Dict[str, Any], localns: Optional[Dict[str, Any]]) -> Any:
    if isinstance(annotation, ForwardRef):
        annotation = annotation.__forward_arg__
    if not isinstance(annotation, str):
        return annotation
    try:
        return eval(annotation, globalns, localns)
    except Exception as e:
        logger.debug(f"Keeping unevaluated annotation {annotation!r}: {e}")
        return annotation


def _strip_annotated(hint: Any) -> Any:
    if get_origin(hint) is Annotated:
        return get_args(hint)[0]
    return hint


# =============================================================================
# Constructors
# =============================================================================


def constructor(func: F) -> F:
    """Mark a classmethod as an alternative constructor for injection.

    Usage:
        class Widget:
            def __init__(self, a: A, b: B, c: C): ...

            @constructor
            def minimal(cls, a: A, b: B) -> "Widget":
                return cls(a, b, DefaultC())

    A plain function is wrapped in ``classmethod`` automatically.
    """
    if isinstance(func, classmethod):
        setattr(func.__func__, CONSTRUCTOR_MARKER, True)
        return func  # type: ignore[return-value]
    setattr(func, CONSTRUCTOR_MARKER, True)
    return classmethod(func)  # type: ignore[return-value]


def _is_marked_constructor(attr: Any) -> bool:
    return isinstance(attr, classmethod) and getattr(attr.__func__, CONSTRUCTOR_MARKER, False)


@dataclass(frozen=True)
class ParameterInfo:
    """One injectable parameter of a constructor or method."""

    name: str
    annotation: Any
    kind: Any
    default: Any = MISSING

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def positional_only(self) -> bool:
        return self.kind is inspect.Parameter.POSITIONAL_ONLY


@dataclass(frozen=True)
class ConstructorInfo:
    """A constructor candidate of a class."""

    name: str
    parameters: Tuple[ParameterInfo, ...]
    order: int

    @property
    def is_primary(self) -> bool:
        return self.name == "__init__"

    def describe(self, cls: type) -> str:
        if self.is_primary:
            return f"{cls.__qualname__}.__init__"
        return f"{cls.__qualname__}.{self.name}"


def parameters_of(signature: inspect.Signature, hints: Dict[str, Any]) -> Tuple[ParameterInfo, ...]:
    """Convert a signature into injectable parameters.

    ``*args`` and ``**kwargs`` are dropped; annotations prefer evaluated hints.
    """
    params: List[ParameterInfo] = []
    for param in signature.parameters.values():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = MISSING
        default = MISSING if param.default is inspect.Parameter.empty else param.default
        params.append(ParameterInfo(param.name, annotation, param.kind, default))
    return tuple(params)


def _primary_hints(cls: type) -> Dict[str, Any]:
    hints: Dict[str, Any] = {}
    for name in ("__new__", "__init__"):
        func = getattr(cls, name, None)
        if func is None or func in (object.__new__, object.__init__):
            continue
        if inspect.isfunction(func) or inspect.ismethod(func):
            hints.update(safe_type_hints(func))
    hints.pop("return", None)
    return hints


def _primary_constructor(cls: type, order: int) -> Optional[ConstructorInfo]:
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return None
    return ConstructorInfo("__init__", parameters_of(signature, _primary_hints(cls)), order)


def _alternative_constructor(cls: type, name: str, order: int) -> Optional[ConstructorInfo]:
    bound = getattr(cls, name)
    try:
        signature = inspect.signature(bound)
    except (TypeError, ValueError):
        return None
    hints = safe_type_hints(bound.__func__)
    hints.pop("return", None)
    return ConstructorInfo(name, parameters_of(signature, hints), order)


def _discover_constructors(cls: type) -> Tuple[ConstructorInfo, ...]:
    # Declaration order across the MRO, base classes first.
    names: List[str] = []
    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if name in names:
                continue
            if (name == "__init__" and klass is not object) or _is_marked_constructor(attr):
                names.append(name)
    if "__init__" not in names:
        names.insert(0, "__init__")

    candidates: List[ConstructorInfo] = []
    for order, name in enumerate(names):
        if name == "__init__":
            info = _primary_constructor(cls, order)
        elif _is_marked_constructor(inspect.getattr_static(cls, name)):
            info = _alternative_constructor(cls, name, order)
        else:
            info = None
        if info is not None:
            candidates.append(info)

    candidates.sort(key=lambda c: (-len(c.parameters), c.order))
    return tuple(candidates)


_constructor_cache: Dict[type, Tuple[ConstructorInfo, ...]] = {}
_constructor_cache_lock = threading.Lock()


def get_constructors(cls: type) -> Tuple[ConstructorInfo, ...]:
    """Constructor candidates of ``cls``, most parameters first.

    Ties keep declaration order. An empty tuple means the class offers no
    inspectable constructor.
    """
    cached = _constructor_cache.get(cls)
    if cached is not None:
        return cached
    constructors = _discover_constructors(cls)
    with _constructor_cache_lock:
        return _constructor_cache.setdefault(cls, constructors)


def clear_constructor_cache() -> None:
    """Drop cached constructor metadata (classes redefined in tests)."""
    with _constructor_cache_lock:
        _constructor_cache.clear()
