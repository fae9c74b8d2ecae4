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

"""Exception types raised by the container.

This module provides:
- Error categories for classifying container failures
- A structured base exception carrying details and a recovery hint
- Concrete errors for configuration, resolution, construction and disposal
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


def describe_key(key: Any) -> str:
    """Return a readable name for a service key.

    Classes are rendered with their module and qualified name, everything
    else (generic aliases, string tokens) with ``repr``.
    """
    if isinstance(key, type):
        module = key.__module__
        if module == "builtins":
            return key.__qualname__
        return f"{module}.{key.__qualname__}"
    return repr(key)


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(Enum):
    """Categories of container errors."""

    CONFIGURATION = "configuration"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    UNRESOLVABLE = "unresolvable"
    CONSTRUCTION = "construction"
    DISPOSED = "disposed"
    UNKNOWN = "unknown"


# =============================================================================
# Custom Exception Types
# =============================================================================


class ArborError(Exception):
    """Base exception for all container errors.

    Provides structured error information including:
    - Error category
    - Details dictionary for structured logging
    - Recovery suggestion
    - Original exception chain
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.details = details or {}
        self.recovery_hint = recovery_hint
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.message,
            "type": type(self).__name__,
            "category": self.category.value,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
            "cause": str(self.cause) if self.cause is not None else None,
        }

    def __str__(self) -> str:
        result = self.message
        if self.recovery_hint:
            result += f"\nRecovery hint: {self.recovery_hint}"
        return result


class ConfigurationError(ArborError, ValueError):
    """Invalid registration, raised at the registration call site."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.CONFIGURATION)
        super().__init__(message, **kwargs)


class ContainerArgumentError(ConfigurationError):
    """A type passed to ``construct`` cannot be instantiated at all."""

    def __init__(self, message: str, service_key: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.service_key = service_key
        self.details["service_key"] = describe_key(service_key)


class ResolutionError(ArborError):
    """A dependency could not be resolved."""

    def __init__(self, message: str, service_key: Any = None, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.UNRESOLVABLE)
        super().__init__(message, **kwargs)
        self.service_key = service_key
        if service_key is not None:
            self.details["service_key"] = describe_key(service_key)


class CircularDependencyError(ResolutionError):
    """A resolution chain revisited a key that is still being resolved."""

    def __init__(self, service_key: Any, path: Iterable[Any], **kwargs: Any):
        self.path: List[Any] = list(path) + [service_key]
        rendered = " -> ".join(describe_key(k) for k in self.path)
        super().__init__(
            f"Circular dependency detected while resolving {describe_key(service_key)}. "
            f"Resolution path: {rendered}",
            service_key=service_key,
            category=ErrorCategory.CIRCULAR_DEPENDENCY,
            recovery_hint=(
                "Break the cycle by depending on a deferred factory (Callable[[], T]) "
                "or by binding one side with to_factory()."
            ),
            **kwargs,
        )
        self.details["path"] = [describe_key(k) for k in self.path]


class UnresolvableDependencyError(ResolutionError):
    """No binding, no resolvable parent and no instantiable concrete type."""

    def __init__(self, message: str, service_key: Any = None, **kwargs: Any):
        kwargs.setdefault(
            "recovery_hint",
            "Register the service with container.register(key) in this container or a parent.",
        )
        super().__init__(message, service_key=service_key, **kwargs)


class ConstructionError(ResolutionError):
    """A concrete type could not be built (no viable constructor, or it raised)."""

    def __init__(self, message: str, service_key: Any = None, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.CONSTRUCTION)
        super().__init__(message, service_key=service_key, **kwargs)


class ContainerDisposedError(ArborError, RuntimeError):
    """Raised when a disposed container is used."""

    def __init__(self, message: str = "Container has been disposed", **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.DISPOSED)
        super().__init__(message, **kwargs)


class RootContainerNotInitializedError(ArborError, RuntimeError):
    """Raised when the process root container is requested before bootstrap."""

    def __init__(self, message: str = "Root container has not been bootstrapped", **kwargs: Any):
        kwargs.setdefault(
            "recovery_hint", "Call arbor.bootstrap_container() during application start-up."
        )
        super().__init__(message, **kwargs)
