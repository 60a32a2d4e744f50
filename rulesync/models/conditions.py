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

"""Pydantic models for rule conditions.

Conditions form a closed tagged union: every leaf carries a ``kind``
literal that pydantic uses as the discriminator when a rule set is
loaded, and the evaluator dispatches on the same ``kind``. A
``sub_condition`` holds its own operator and children, so AND/OR trees
nest to any depth.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ConditionOperator(str, Enum):
    """How the children of a condition group are combined."""

    AND = "and"
    OR = "or"


class ConditionKind(str, Enum):
    """Discriminator values for every condition variant."""

    IS_PRESENT = "is_present"
    IS_NOT_PRESENT = "is_not_present"
    MATCH = "match"
    NOT_MATCH = "not_match"
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"
    IS_NOT_TRUE = "is_not_true"
    BIT_IS_SET = "bit_is_set"
    ARE_EQUAL = "are_equal"
    ARE_NOT_EQUAL = "are_not_equal"
    IS_DN_EQUAL = "is_dn_equal"
    IS_DN_NOT_EQUAL = "is_dn_not_equal"
    AFTER = "after"
    BEFORE = "before"
    BETWEEN = "between"
    CONNECTED_TO = "connected_to"
    NOT_CONNECTED_TO = "not_connected_to"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    SUB_CONDITION = "sub_condition"


class _ConditionModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str = ""


class IsPresent(_ConditionModel):
    kind: Literal["is_present"] = "is_present"
    attribute: str


class IsNotPresent(_ConditionModel):
    kind: Literal["is_not_present"] = "is_not_present"
    attribute: str


class Match(_ConditionModel):
    """Case-insensitive regex search against a subject attribute."""

    kind: Literal["match"] = "match"
    attribute: str
    pattern: str


class NotMatch(_ConditionModel):
    """Passes when the attribute is absent or the pattern does not match."""

    kind: Literal["not_match"] = "not_match"
    attribute: str
    pattern: str


class IsTrue(_ConditionModel):
    kind: Literal["is_true"] = "is_true"
    attribute: str


class IsFalse(_ConditionModel):
    kind: Literal["is_false"] = "is_false"
    attribute: str


class IsNotTrue(_ConditionModel):
    """Passes when the attribute is absent or false."""

    kind: Literal["is_not_true"] = "is_not_true"
    attribute: str


class BitIsSet(_ConditionModel):
    kind: Literal["bit_is_set"] = "bit_is_set"
    attribute: str
    bit_position: int = Field(ge=0)


class AreEqual(_ConditionModel):
    """Subject attribute text equals connector attribute text."""

    kind: Literal["are_equal"] = "are_equal"
    attribute: str
    connector_attribute: str


class AreNotEqual(_ConditionModel):
    kind: Literal["are_not_equal"] = "are_not_equal"
    attribute: str
    connector_attribute: str


class IsDnEqual(_ConditionModel):
    """Compare parsed names; ``[DN]`` means the connector's own name."""

    kind: Literal["is_dn_equal"] = "is_dn_equal"
    attribute: str
    connector_attribute: str = "[DN]"


class IsDnNotEqual(_ConditionModel):
    kind: Literal["is_dn_not_equal"] = "is_dn_not_equal"
    attribute: str
    connector_attribute: str = "[DN]"


class After(_ConditionModel):
    """Now is later than the date held in the attribute."""

    kind: Literal["after"] = "after"
    attribute: str


class Before(_ConditionModel):
    """Now is earlier than the date held in the attribute."""

    kind: Literal["before"] = "before"
    attribute: str


class Between(_ConditionModel):
    kind: Literal["between"] = "between"
    start_attribute: str
    end_attribute: str


class ConnectedTo(_ConditionModel):
    kind: Literal["connected_to"] = "connected_to"
    target_system: str


class NotConnectedTo(_ConditionModel):
    kind: Literal["not_connected_to"] = "not_connected_to"
    target_system: str


class Contains(_ConditionModel):
    """Exact membership test against a multivalued subject attribute."""

    kind: Literal["contains"] = "contains"
    attribute: str
    value: str
    case_sensitive: bool = False


class NotContains(_ConditionModel):
    kind: Literal["not_contains"] = "not_contains"
    attribute: str
    value: str
    case_sensitive: bool = False


class SubCondition(_ConditionModel):
    """A nested group with its own operator."""

    kind: Literal["sub_condition"] = "sub_condition"
    operator: ConditionOperator = ConditionOperator.AND
    children: tuple[Condition, ...] = ()


Condition = Annotated[
    Union[
        IsPresent,
        IsNotPresent,
        Match,
        NotMatch,
        IsTrue,
        IsFalse,
        IsNotTrue,
        BitIsSet,
        AreEqual,
        AreNotEqual,
        IsDnEqual,
        IsDnNotEqual,
        After,
        Before,
        Between,
        ConnectedTo,
        NotConnectedTo,
        Contains,
        NotContains,
        SubCondition,
    ],
    Field(discriminator="kind"),
]


class Conditions(BaseModel):
    """Root of a condition tree. No children means always true."""

    model_config = ConfigDict(frozen=True)

    operator: ConditionOperator = ConditionOperator.AND
    children: tuple[Condition, ...] = ()


SubCondition.model_rebuild()
Conditions.model_rebuild()


def all_of(*children: Condition) -> Conditions:
    """Shorthand for an AND root."""
    return Conditions(operator=ConditionOperator.AND, children=children)


def any_of(*children: Condition) -> Conditions:
    """Shorthand for an OR root."""
    return Conditions(operator=ConditionOperator.OR, children=children)
