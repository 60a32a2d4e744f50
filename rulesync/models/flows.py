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

"""Pydantic models for attribute flows and concatenation source expressions."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

NAME_TARGET = "[DN]"
SUBJECT_ID_SOURCE = "[MVObjectID]"


class FlowKind(str, Enum):
    COPY_ATTRIBUTE = "copy_attribute"
    CONSTANT = "constant"
    MULTIVALUED_CONSTANT = "multivalued_constant"
    CONCATENATE = "concatenate"
    IDENTIFIER = "identifier"


class SourceExpressionKind(str, Enum):
    ATTRIBUTE = "attribute"
    CONSTANT = "constant"
    REGEX_REPLACE = "regex_replace"


def is_name_target(target: str) -> bool:
    """True when a flow target addresses the connector's name."""
    return target.strip().upper() == NAME_TARGET


# ── Source expressions (Concatenate only) ──


class _SourceExpressionModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class AttributeSource(_SourceExpressionModel):
    """Subject attribute value, verbatim."""

    kind: Literal["attribute"] = "attribute"
    source: str


class ConstantSource(_SourceExpressionModel):
    """Literal with macro placeholders."""

    kind: Literal["constant"] = "constant"
    source: str


class RegexReplaceSource(_SourceExpressionModel):
    """Subject attribute value with a regex substitution applied."""

    kind: Literal["regex_replace"] = "regex_replace"
    source: str
    pattern: str
    replacement: str = ""


SourceExpression = Annotated[
    Union[AttributeSource, ConstantSource, RegexReplaceSource],
    Field(discriminator="kind"),
]


# ── Attribute flows ──


class _FlowModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: str
    description: Optional[str] = None


class CopyAttributeFlow(_FlowModel):
    """Copy a subject attribute (or the subject id) with type coercion."""

    kind: Literal["copy_attribute"] = "copy_attribute"
    source: str
    prefix: Optional[str] = None
    lowercase: bool = False
    uppercase: bool = False
    trim: bool = False
    format: Optional[str] = None  # subject id only: N, D, B or P

    @property
    def source_is_subject_id(self) -> bool:
        return self.source.strip().lower() == SUBJECT_ID_SOURCE.lower()


class ConstantFlow(_FlowModel):
    kind: Literal["constant"] = "constant"
    constant: str
    escaped_cn: Optional[str] = None


class MultivaluedConstantFlow(_FlowModel):
    kind: Literal["multivalued_constant"] = "multivalued_constant"
    constants: Optional[tuple[str, ...]] = None
    escaped_cn: Optional[str] = None


class ConcatenateFlow(_FlowModel):
    kind: Literal["concatenate"] = "concatenate"
    source_expressions: tuple[SourceExpression, ...] = ()


class IdentifierFlow(_FlowModel):
    """Generate a fresh unique identifier."""

    kind: Literal["identifier"] = "identifier"


AttributeFlow = Annotated[
    Union[
        CopyAttributeFlow,
        ConstantFlow,
        MultivaluedConstantFlow,
        ConcatenateFlow,
        IdentifierFlow,
    ],
    Field(discriminator="kind"),
]
