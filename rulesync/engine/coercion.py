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

"""Type-coercion matrix for attribute copy flows.

Each supported (source type, target type) pair maps to one converter.
A pair that is not in the matrix is rejected with ConversionError naming
both types. String normalizations (lowercase, uppercase, trim, prefix)
only apply where the result is a string built from text.
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from rulesync.errors import ConversionError
from rulesync.models.flows import CopyAttributeFlow
from rulesync.models.values import AttributeType

_T = AttributeType

_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class StringOptions:
    """Normalizations applied to string results, in this order."""

    lowercase: bool = False
    uppercase: bool = False
    trim: bool = False
    prefix: Optional[str] = None

    @classmethod
    def from_flow(cls, flow: CopyAttributeFlow) -> "StringOptions":
        return cls(
            lowercase=flow.lowercase,
            uppercase=flow.uppercase,
            trim=flow.trim,
            prefix=flow.prefix,
        )

    def apply(self, text: str) -> str:
        if self.lowercase:
            text = text.lower()
        if self.uppercase:
            text = text.upper()
        if self.trim:
            text = text.strip()
        if self.prefix:
            text = self.prefix + text
        return text


Converter = Callable[[Any, StringOptions], Any]


# ── String source ──


def _string_to_string(value: Any, options: StringOptions) -> str:
    return options.apply(str(value))


def _string_to_integer(value: Any, options: StringOptions) -> int:
    text = str(value).strip()
    if not _INTEGER_TEXT.fullmatch(text):
        raise ConversionError(_T.STRING, _T.INTEGER, value, "not an integer")
    number = int(text)
    if not -(2 ** 63) <= number < 2 ** 63:
        raise ConversionError(_T.STRING, _T.INTEGER, value, "out of range")
    return number


def _string_to_binary(value: Any, options: StringOptions) -> bytes:
    return str(value).encode("utf-8")


def _string_to_boolean(value: Any, options: StringOptions) -> bool:
    text = str(value).strip()
    lowered = text.lower()
    if lowered == "true" or text == "1":
        return True
    if lowered == "false" or text == "0":
        return False
    raise ConversionError(_T.STRING, _T.BOOLEAN, value, "not a boolean")


# ── Integer source ──


def _integer_to_integer(value: Any, options: StringOptions) -> int:
    return int(value)


def _integer_to_string(value: Any, options: StringOptions) -> str:
    return str(int(value))


def _integer_to_boolean(value: Any, options: StringOptions) -> bool:
    number = int(value)
    if number == 0:
        return False
    if number == 1:
        return True
    raise ConversionError(_T.INTEGER, _T.BOOLEAN, value, "only 0 and 1 map to a boolean")


# ── Binary source ──


def _binary_to_binary(value: Any, options: StringOptions) -> bytes:
    return bytes(value)


def _binary_to_string(value: Any, options: StringOptions) -> str:
    return base64.b64encode(bytes(value)).decode("ascii")


# ── Boolean source ──


def _boolean_to_boolean(value: Any, options: StringOptions) -> bool:
    return bool(value)


def _boolean_to_integer(value: Any, options: StringOptions) -> int:
    return 1 if value else 0


def _boolean_to_string(value: Any, options: StringOptions) -> str:
    return options.apply("True" if value else "False")


# ── Reference source ──


def _reference_to_reference(value: Any, options: StringOptions) -> Any:
    return value


MATRIX: dict[tuple[AttributeType, AttributeType], Converter] = {
    (_T.STRING, _T.STRING): _string_to_string,
    (_T.STRING, _T.INTEGER): _string_to_integer,
    (_T.STRING, _T.BINARY): _string_to_binary,
    (_T.STRING, _T.BOOLEAN): _string_to_boolean,
    (_T.INTEGER, _T.INTEGER): _integer_to_integer,
    (_T.INTEGER, _T.STRING): _integer_to_string,
    (_T.INTEGER, _T.BOOLEAN): _integer_to_boolean,
    (_T.BINARY, _T.BINARY): _binary_to_binary,
    (_T.BINARY, _T.STRING): _binary_to_string,
    (_T.BOOLEAN, _T.BOOLEAN): _boolean_to_boolean,
    (_T.BOOLEAN, _T.INTEGER): _boolean_to_integer,
    (_T.BOOLEAN, _T.STRING): _boolean_to_string,
    (_T.REFERENCE, _T.REFERENCE): _reference_to_reference,
}


def convert(
    value: Any,
    source_type: AttributeType,
    target_type: AttributeType,
    options: Optional[StringOptions] = None,
    to_name: bool = False,
) -> Any:
    """Convert one raw value from ``source_type`` to ``target_type``.

    ``to_name`` marks a result that will become a connector name; a
    boolean can never be one.

    Raises:
        ConversionError: unsupported pair or unparseable value.
    """
    if to_name and source_type == _T.BOOLEAN:
        raise ConversionError(source_type, "name", value, "a name cannot be a boolean value")
    converter = MATRIX.get((source_type, target_type))
    if converter is None:
        raise ConversionError(source_type, target_type, value)
    try:
        return converter(value, options or StringOptions())
    except (TypeError, ValueError) as e:
        raise ConversionError(source_type, target_type, value, str(e)) from e
