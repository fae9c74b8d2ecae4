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

"""Configuration management for arbor containers.

Settings come from (highest precedence first):
- Keyword arguments passed to ``ContainerSettings``
- ``ARBOR_*`` environment variables
- A YAML file loaded with ``ContainerSettings.from_yaml``
- Field defaults
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


class ContainerSettings(BaseSettings):
    """Behavioural switches shared by a root container and its children."""

    model_config = SettingsConfigDict(
        env_prefix="ARBOR_",
        case_sensitive=False,
        extra="ignore",
    )

    # Resolve unregistered concrete classes by constructor injection.
    auto_bind_concrete: bool = True
    # One cycle-detection stack per thread. A cycle split across threads (each
    # creating a singleton the other needs) is caught by the singleton creation
    # lock and raised as CircularDependencyError. False shares one stack per
    # container between threads, which can report spurious cycles under concurrency.
    thread_local_resolution: bool = True

    # Logging
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    # Installers as "package.module:attribute" paths
    installers: List[str] = Field(default_factory=list)
    # Run after ``installers`` so their bindings win (test doubles, local mocks)
    override_installers: List[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and validate the log level name.

        Raises:
            ValueError: If the level is not a standard logging level name
        """
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {v!r}")
        return level

    @field_validator("installers", "override_installers")
    @classmethod
    def validate_installer_paths(cls, v: List[str]) -> List[str]:
        for path in v:
            module, sep, attr = path.partition(":")
            if not module or not sep or not attr:
                raise ValueError(f"Installer path must look like 'package.module:attribute', got {path!r}")
        return v

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides: Any) -> "ContainerSettings":
        """Load settings from a YAML mapping.

        ``ARBOR_*`` environment variables beat values from the file and
        ``overrides`` beat both.

        Args:
            path: YAML file, either flat or nested under an ``arbor:`` key

        Returns:
            Loaded settings
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")
        section: Dict[str, Any] = data.get("arbor", data)
        values = {**{k: v for k, v in section.items() if k not in _env_overridden(cls)}, **overrides}
        logger.debug(f"Loaded container settings from {path}")
        return cls(**values)


def _env_overridden(settings_cls: type) -> Set[str]:
    """Field names that are set through ``ARBOR_*`` environment variables."""
    prefix = settings_cls.model_config.get("env_prefix", "")
    env_keys = {key.lower() for key in os.environ if key.upper().startswith(prefix)}
    return {name for name in settings_cls.model_fields if f"{prefix}{name}".lower() in env_keys}


def load_settings(**overrides: Any) -> ContainerSettings:
    """Load container settings from the environment.

    Returns:
        ContainerSettings instance
    """
    return ContainerSettings(**overrides)


def configure_logging(settings: Optional[ContainerSettings] = None) -> logging.Logger:
    """Apply ``log_level``/``log_file`` to the ``arbor`` logger hierarchy.

    The root logger is left alone so host applications keep control of it.

    Returns:
        The configured ``arbor`` logger
    """
    settings = settings or load_settings()
    package_logger = logging.getLogger("arbor")
    package_logger.setLevel(settings.log_level)
    if settings.log_file and not any(
        isinstance(h, logging.FileHandler) and h.baseFilename == os.path.abspath(settings.log_file)
        for h in package_logger.handlers
    ):
        handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)
    return package_logger
