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

"""Pydantic models for helper value declarations.

A declaration only names a value and says how to produce it. The values
themselves are generated per rule invocation and never live on the
rule (see rulesync.engine.helper_values).
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class HelperKind(str, Enum):
    CONSTANT = "constant"
    SCOPED_IDENTIFIER = "scoped_identifier"
    RANDOM_SECRET = "random_secret"


class _HelperModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(pattern=r"^\w+$")


class ConstantHelper(_HelperModel):
    kind: Literal["constant"] = "constant"
    value: str = ""


class ScopedIdentifierHelper(_HelperModel):
    """A UUID generated once and shared by every flow of one invocation."""

    kind: Literal["scoped_identifier"] = "scoped_identifier"


class RandomSecretHelper(_HelperModel):
    kind: Literal["random_secret"] = "random_secret"
    length: int = Field(default=16, ge=1, le=256)


HelperValue = Annotated[
    Union[ConstantHelper, ScopedIdentifierHelper, RandomSecretHelper],
    Field(discriminator="kind"),
]
