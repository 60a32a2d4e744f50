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

"""Typed attribute values exchanged with the host platform.

The host owns the schema: every lookup returns a TypedValue that carries
the declared attribute type even when no value is present, so flows can
pick a conversion before anything is written.
"""

from __future__ import annotations

import base64
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AttributeType(str, Enum):
    """Attribute data types known to the host schema."""

    STRING = "string"
    INTEGER = "integer"
    BINARY = "binary"
    BOOLEAN = "boolean"
    REFERENCE = "reference"
    UNDEFINED = "undefined"


class TypedValue(BaseModel):
    """An attribute value (single or multivalued) plus its declared type."""

    model_config = ConfigDict(frozen=True)

    data_type: AttributeType = AttributeType.UNDEFINED
    values: tuple[Any, ...] = ()

    @classmethod
    def of(cls, data_type: AttributeType, *values: Any) -> "TypedValue":
        return cls(data_type=data_type, values=tuple(v for v in values if v is not None))

    @classmethod
    def absent(cls, data_type: AttributeType = AttributeType.UNDEFINED) -> "TypedValue":
        return cls(data_type=data_type)

    @classmethod
    def string(cls, *values: str) -> "TypedValue":
        return cls.of(AttributeType.STRING, *values)

    @classmethod
    def integer(cls, *values: int) -> "TypedValue":
        return cls.of(AttributeType.INTEGER, *values)

    @classmethod
    def boolean(cls, *values: bool) -> "TypedValue":
        return cls.of(AttributeType.BOOLEAN, *values)

    @classmethod
    def binary(cls, *values: bytes) -> "TypedValue":
        return cls.of(AttributeType.BINARY, *values)

    @classmethod
    def reference(cls, *values: Any) -> "TypedValue":
        return cls.of(AttributeType.REFERENCE, *values)

    @property
    def is_present(self) -> bool:
        return len(self.values) > 0

    @property
    def is_multivalued(self) -> bool:
        return len(self.values) > 1

    @property
    def value(self) -> Optional[Any]:
        """First value, or None when absent."""
        return self.values[0] if self.values else None

    def as_text(self) -> str:
        """Render the first value as text the way the host displays it.

        Booleans render as ``True``/``False`` and binaries as base64.
        An absent value renders as an empty string.
        """
        if not self.values:
            return ""
        return render_text(self.values[0])

    def text_values(self) -> list[str]:
        """Render every value as text (used by multivalue membership tests)."""
        return [render_text(v) for v in self.values]

    def as_integer(self) -> int:
        value = self.value
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        return int(str(value).strip())

    def as_boolean(self) -> bool:
        value = self.value
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        return str(value).strip().lower() in ("true", "1")


def render_text(value: Any) -> str:
    """Text form of a single raw value."""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return str(value)
