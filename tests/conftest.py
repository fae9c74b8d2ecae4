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

"""Shared pytest fixtures and configuration."""

import logging
import os

import pytest

from arbor import Container, ContainerSettings
from arbor.core.bootstrap import shutdown_root_container


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch):
    """Isolate tests from ARBOR_* variables set in the developer's shell."""
    for var in list(os.environ):
        if var.upper().startswith("ARBOR_"):
            monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def reset_root_container():
    """Ensure every test starts and ends without a root container."""
    shutdown_root_container()
    yield
    shutdown_root_container()


@pytest.fixture(autouse=True)
def reset_arbor_logger():
    """Undo configure_logging() side effects between tests."""
    package_logger = logging.getLogger("arbor")
    handlers = list(package_logger.handlers)
    yield
    package_logger.setLevel(logging.NOTSET)
    for handler in package_logger.handlers:
        if handler not in handlers:
            package_logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def container():
    """A fresh root-less container, disposed after the test."""
    with Container(settings=ContainerSettings()) as c:
        yield c


@pytest.fixture
def shared_stack_container():
    """Container whose threads share one cycle-detection stack."""
    with Container(settings=ContainerSettings(thread_local_resolution=False)) as c:
        yield c
