# Rulesync — Rule-driven provisioning engine
# Copyright (C) 2026 Rulesync Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Engine settings.

Resolved in this order: explicit arguments, environment variables
(``RULESYNC_RULES_FILE``, ``RULESYNC_LOG_LEVEL``,
``RULESYNC_DISABLE_ALL_RULES``), ``~/.rulesync/config.yaml``, defaults.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".rulesync"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

ENV_PREFIX = "RULESYNC_"
_TRUE_WORDS = ("1", "true", "yes", "on")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class EngineSettings(BaseModel):
    rules_file: Optional[Path] = None
    log_level: str = "WARNING"
    disable_all_rules: bool = False

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level '{value}'")
        return level

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level)


def load_config(config_file: Optional[Path] = None) -> dict:
    """Load the YAML config file.

    Returns an empty dict if the file does not exist or cannot be read.
    """
    path = config_file or CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        logger.warning("Could not load config from %s", path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not a mapping", path)
        return {}
    return data


def _from_environment(environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    rules_file = env.get(f"{ENV_PREFIX}RULES_FILE", "").strip()
    if rules_file:
        values["rules_file"] = rules_file
    log_level = env.get(f"{ENV_PREFIX}LOG_LEVEL", "").strip()
    if log_level:
        values["log_level"] = log_level
    disabled = env.get(f"{ENV_PREFIX}DISABLE_ALL_RULES", "").strip()
    if disabled:
        values["disable_all_rules"] = disabled.lower() in _TRUE_WORDS
    return values


def load_settings(
    config_file: Optional[Path] = None,
    environ: Optional[dict[str, str]] = None,
    **overrides: Any,
) -> EngineSettings:
    """Build EngineSettings from every source, highest priority last applied."""
    data: dict[str, Any] = {}
    file_data = load_config(config_file)
    for key in EngineSettings.model_fields:
        if key in file_data:
            data[key] = file_data[key]
    data.update(_from_environment(environ))
    data.update({k: v for k, v in overrides.items() if v is not None})
    return EngineSettings(**data)
