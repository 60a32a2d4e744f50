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

"""Exception taxonomy for the provisioning engine.

Configuration and conversion errors are fatal for the subject being
processed. Soft data problems (a referenced attribute that is absent)
never raise; they are reported through diagnostics instead.
"""

from __future__ import annotations

from typing import Any, Optional


class RulesyncError(Exception):
    """Base exception for all engine errors."""

    code = "RULESYNC_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(RulesyncError):
    """A rule is malformed or references something that does not exist."""

    code = "CONFIGURATION_ERROR"


class ConversionError(RulesyncError):
    """A value cannot be converted between two attribute types."""

    code = "CONVERSION_ERROR"

    def __init__(self, source_type: Any, target_type: Any, value: Any = None, reason: str = "") -> None:
        self.source_type = source_type
        self.target_type = target_type
        self.value = value
        message = f"Cannot convert {_type_name(source_type)} source value to target type {_type_name(target_type)}"
        if value is not None:
            message += f" (value: {value!r})"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            {"source_type": _type_name(source_type), "target_type": _type_name(target_type)},
        )


class RuleSetLoadError(RulesyncError):
    """The rule-set document could not be read or validated."""

    code = "RULE_SET_LOAD_ERROR"


class NotSupportedError(RulesyncError):
    """The requested host callback is not implemented."""

    code = "NOT_SUPPORTED"


class EngineStateError(RulesyncError):
    """The engine was used before initialize() or after terminate()."""

    code = "ENGINE_STATE_ERROR"


def _type_name(value: Any) -> str:
    return getattr(value, "value", str(value))
