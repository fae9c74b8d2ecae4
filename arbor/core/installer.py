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

"""Installers: reusable units of container configuration.

An installer only calls ``container.register(...)``. Installers are
declared in code or referenced from settings as ``"package.module:attr"``.
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Iterable, Union

from arbor.core.errors import ConfigurationError

if TYPE_CHECKING:
    from arbor.core.container import Container

logger = logging.getLogger(__name__)


class Installer(ABC):
    """Base class for installers that configure container bindings."""

    @property
    def name(self) -> str:
        return type(self).__qualname__

    @abstractmethod
    def install_bindings(self, container: "Container") -> None:
        """Register bindings into ``container``."""
        ...


class FunctionInstaller(Installer):
    """Adapts a plain ``fn(container)`` callable to :class:`Installer`."""

    def __init__(self, func: Callable[["Container"], Any]):
        self._func = func

    @property
    def name(self) -> str:
        return getattr(self._func, "__qualname__", repr(self._func))

    def install_bindings(self, container: "Container") -> None:
        self._func(container)


InstallerLike = Union[Installer, Callable[["Container"], Any], str]


def load_installer(path: str) -> Installer:
    """Import an installer from ``"package.module:attribute"``.

    The attribute may be an :class:`Installer` subclass (instantiated with no
    arguments), an installer instance, or a callable taking the container.

    Raises:
        ConfigurationError: If the path cannot be imported or is not an installer
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(f"Installer path must look like 'package.module:attribute', got {path!r}")
    try:
        module = importlib.import_module(module_name)
        obj = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load installer {path!r}: {e}", cause=e) from e
    return as_installer(obj)


def as_installer(obj: InstallerLike) -> Installer:
    """Normalise an installer class, instance, callable or import path."""
    if isinstance(obj, Installer):
        return obj
    if isinstance(obj, str):
        return load_installer(obj)
    if isinstance(obj, type) and issubclass(obj, Installer):
        return obj()
    if callable(obj):
        return FunctionInstaller(obj)
    raise ConfigurationError(f"{obj!r} is not an installer")


def run_installers(container: "Container", installers: Iterable[InstallerLike]) -> int:
    """Run installers in order against ``container``.

    An installer that raises is logged and the remaining ones still run.

    Returns:
        Number of installers that completed
    """
    completed = 0
    for item in installers:
        try:
            installer = as_installer(item)
        except ConfigurationError as e:
            logger.error(f"Skipping installer: {e.message}")
            continue
        try:
            installer.install_bindings(container)
        except Exception as e:
            logger.error(f"Error in installer {installer.name}: {e}")
            continue
        logger.debug(f"Ran installer {installer.name}")
        completed += 1
    return completed
