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

"""Process-wide root container.

The root container is explicit state: it is created once by
``bootstrap_container()`` before dependent work starts, handed to whatever
needs it, and disposed once by ``shutdown_root_container()`` at exit.

Usage:
    from arbor import bootstrap_container, shutdown_root_container

    root = bootstrap_container(installers=[CoreInstaller()])
    try:
        app = root.resolve(Application)
        app.run()
    finally:
        shutdown_root_container()
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Type, TypeVar

from arbor.config.settings import ContainerSettings, configure_logging, load_settings
from arbor.core.container import Container
from arbor.core.errors import RootContainerNotInitializedError
from arbor.core.installer import InstallerLike, run_installers

logger = logging.getLogger(__name__)

T = TypeVar("T")

_root_container: Optional[Container] = None
_root_lock = threading.Lock()


def bootstrap_container(
    settings: Optional[ContainerSettings] = None,
    installers: Iterable[InstallerLike] = (),
    override_services: Optional[Dict[Any, Any]] = None,
) -> Container:
    """Create, configure and publish the root container.

    Installers run in this order: ``settings.installers``, then
    ``installers``, then ``settings.override_installers``, then
    ``override_services`` (key -> instance, for tests). Later registrations
    win. If a root container already exists it is returned unchanged.

    Args:
        settings: Optional settings (loads from environment if None)
        installers: Installers given in code
        override_services: Instances that replace earlier bindings

    Returns:
        The root container
    """
    global _root_container
    with _root_lock:
        if _root_container is not None:
            logger.warning("Root container already bootstrapped. Skipping initialization.")
            return _root_container

        if settings is None:
            settings = load_settings()
        configure_logging(settings)

        container = Container(settings=settings)
        try:
            container.register(ContainerSettings).to_instance(settings)
            run_installers(container, settings.installers)
            run_installers(container, installers)
            run_installers(container, settings.override_installers)
            for service_key, instance in (override_services or {}).items():
                container.register(service_key).to_instance(instance)
        except Exception:
            logger.error("Failed to bootstrap root container", exc_info=True)
            container.dispose()
            raise

        _root_container = container

    logger.info("Bootstrapped root container")
    return container


def get_root_container() -> Container:
    """Return the root container.

    Raises:
        RootContainerNotInitializedError: If ``bootstrap_container`` has not run
    """
    container = _root_container
    if container is None:
        raise RootContainerNotInitializedError()
    return container


def has_root_container() -> bool:
    return _root_container is not None


def set_root_container(container: Optional[Container]) -> None:
    """Replace the root container, disposing the previous one.

    Args:
        container: New root, or None to clear it
    """
    global _root_container
    with _root_lock:
        previous, _root_container = _root_container, container
    if previous is not None and previous is not container:
        previous.dispose()


def shutdown_root_container() -> None:
    """Dispose the root container. Safe to call more than once."""
    global _root_container
    with _root_lock:
        container, _root_container = _root_container, None
    if container is not None:
        logger.info("Shutting down root container")
        container.dispose()


def get_service(service_type: Type[T]) -> T:
    """Resolve a service from the root container.

    Args:
        service_type: Type of service to retrieve

    Returns:
        Service instance
    """
    return get_root_container().resolve(service_type)
