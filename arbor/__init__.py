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

"""
Arbor - hierarchical dependency injection for Python applications.

Quick start:
    from arbor import Container

    container = Container()
    container.register(IClock).to_implementation(SystemClock).as_singleton()
    scheduler = container.resolve(Scheduler)

Application start-up:
    from arbor import bootstrap_container, shutdown_root_container

    root = bootstrap_container(installers=[CoreInstaller()])
    ...
    shutdown_root_container()
"""

__version__ = "0.1.0"
__author__ = "Vijaykumar Singh"
__license__ = "Apache-2.0"

from arbor.config import ContainerSettings, configure_logging, load_settings
from arbor.core import (
    ArborError,
    BindingInfo,
    BindingSource,
    CircularDependencyError,
    ConfigurationError,
    ConstructionError,
    Container,
    ContainerArgumentError,
    ContainerDisposedError,
    Disposable,
    FunctionInstaller,
    Inject,
    Installer,
    Lifetime,
    ResolutionError,
    RootContainerNotInitializedError,
    UnresolvableDependencyError,
    bootstrap_container,
    constructor,
    get_root_container,
    get_service,
    inject,
    inject_all,
    inject_into,
    set_root_container,
    shutdown_root_container,
)

__all__ = [
    "Container",
    "ContainerSettings",
    "Lifetime",
    "BindingInfo",
    "BindingSource",
    "Disposable",
    "constructor",
    "Inject",
    "inject",
    "inject_into",
    "inject_all",
    "Installer",
    "FunctionInstaller",
    "bootstrap_container",
    "get_root_container",
    "get_service",
    "set_root_container",
    "shutdown_root_container",
    "configure_logging",
    "load_settings",
    "ArborError",
    "ConfigurationError",
    "ContainerArgumentError",
    "ResolutionError",
    "CircularDependencyError",
    "UnresolvableDependencyError",
    "ConstructionError",
    "ContainerDisposedError",
    "RootContainerNotInitializedError",
]
