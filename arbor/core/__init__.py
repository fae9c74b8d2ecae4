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

"""Core container modules.

This package provides:
- The hierarchical dependency injection container
- Fluent registration syntax and binding records
- Field, property and method injection into existing objects
- Installers and the process-wide root container
- Structured container errors
"""

from arbor.core.binding import BindingInfo, BindingSource, Disposable, Lifetime
from arbor.core.bootstrap import (
    bootstrap_container,
    get_root_container,
    get_service,
    has_root_container,
    set_root_container,
    shutdown_root_container,
)
from arbor.core.container import Container
from arbor.core.errors import (
    ArborError,
    CircularDependencyError,
    ConfigurationError,
    ConstructionError,
    ContainerArgumentError,
    ContainerDisposedError,
    ErrorCategory,
    ResolutionError,
    RootContainerNotInitializedError,
    UnresolvableDependencyError,
)
from arbor.core.injection import Inject, inject, inject_all, inject_into
from arbor.core.installer import FunctionInstaller, Installer, load_installer, run_installers
from arbor.core.reflection import constructor
from arbor.core.syntax import BindingSyntax, FixedLifetimeSyntax, LifetimeSyntax

__all__ = [
    # Container
    "Container",
    "Lifetime",
    "BindingInfo",
    "BindingSource",
    "Disposable",
    "BindingSyntax",
    "LifetimeSyntax",
    "FixedLifetimeSyntax",
    "constructor",
    # Injection
    "Inject",
    "inject",
    "inject_into",
    "inject_all",
    # Installers and root container
    "Installer",
    "FunctionInstaller",
    "load_installer",
    "run_installers",
    "bootstrap_container",
    "get_root_container",
    "get_service",
    "has_root_container",
    "set_root_container",
    "shutdown_root_container",
    # Errors
    "ArborError",
    "ErrorCategory",
    "ConfigurationError",
    "ContainerArgumentError",
    "ResolutionError",
    "CircularDependencyError",
    "UnresolvableDependencyError",
    "ConstructionError",
    "ContainerDisposedError",
    "RootContainerNotInitializedError",
]
