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

"""Pydantic models for provisioning rules and the loaded rule set."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from rulesync.models.conditions import Conditions
from rulesync.models.flows import NAME_TARGET, AttributeFlow
from rulesync.models.helpers import HelperValue


class RuleAction(str, Enum):
    """What a rule does to the target system's connectors."""

    PROVISION = "provision"
    DEPROVISION = "deprovision"
    DEPROVISION_ALL = "deprovision_all"
    RENAME = "rename"
    EXTERNAL = "external"


class RenamePolicy(BaseModel):
    """How and when existing connectors are renamed.

    ``new_name`` goes through the same macro pipeline as a constant flow.
    With ``strict_name_compare`` the old and new names are compared as
    plain strings; otherwise the host's parsed-name equality decides.
    """

    model_config = ConfigDict(frozen=True)

    new_name: str
    escaped_cn: Optional[str] = None
    target: str = NAME_TARGET
    strict_name_compare: bool = False
    conditions: Conditions = Field(default_factory=Conditions)


class ReprovisionPolicy(BaseModel):
    """Deprovision-then-recreate of connectors matching ``conditions``."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    conditions: Conditions = Field(default_factory=Conditions)


class Rule(BaseModel):
    """A single provisioning directive."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    rule_id: Optional[str] = None
    description: str = ""
    enabled: bool = True
    action: RuleAction
    subject_type: str
    target_system: str = ""
    target_object_type: str = ""
    conditions: Conditions = Field(default_factory=Conditions)
    initial_flows: tuple[AttributeFlow, ...] = ()
    conditional_rename: Optional[RenamePolicy] = None
    reprovision: Optional[ReprovisionPolicy] = None
    helpers: tuple[HelperValue, ...] = ()
    additional_object_classes: tuple[str, ...] = ()
    additional_object_classes_attribute: Optional[str] = None
    external: Optional[str] = None  # reference id of an ExternalHandler

    @model_validator(mode="before")
    @classmethod
    def _default_conditions(cls, data: Any) -> Any:
        # An explicit null in a rule document means "always true".
        if isinstance(data, dict) and data.get("conditions", ...) is None:
            data = {**data, "conditions": {}}
        return data

    @model_validator(mode="after")
    def _check_action_requirements(self) -> "Rule":
        if self.action == RuleAction.RENAME and self.conditional_rename is None:
            raise ValueError(f"rule '{self.display_name}': action 'rename' requires a conditional_rename policy")
        if self.action == RuleAction.EXTERNAL and not self.external:
            raise ValueError(f"rule '{self.display_name}': action 'external' requires an external reference id")
        if self.action != RuleAction.EXTERNAL and not self.target_system:
            raise ValueError(f"rule '{self.display_name}': target_system is required")
        names = [h.name.lower() for h in self.helpers]
        if len(names) != len(set(names)):
            raise ValueError(f"rule '{self.display_name}': helper names must be unique")
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.rule_id or f"{self.action.value}:{self.target_system}"

    @property
    def reprovision_enabled(self) -> bool:
        return self.reprovision is not None and self.reprovision.enabled


class RuleSet(BaseModel):
    """All enabled rules, indexed by subject type.

    Lookup is case-insensitive. Declaration order is preserved within a
    subject type; it is the tie-break for "first matching rule wins".
    """

    model_config = ConfigDict(frozen=True)

    disable_all_rules: bool = False
    rules: tuple[Rule, ...] = ()

    _index: dict[str, tuple[Rule, ...]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        index: dict[str, list[Rule]] = {}
        for rule in self.rules:
            if rule.enabled:
                index.setdefault(rule.subject_type.lower(), []).append(rule)
        self._index = {key: tuple(rules) for key, rules in index.items()}

    @classmethod
    def from_rules(cls, rules: list[Rule], disable_all_rules: bool = False) -> "RuleSet":
        """Build a rule set, discarding disabled rules."""
        return cls(
            disable_all_rules=disable_all_rules,
            rules=tuple(r for r in rules if r.enabled),
        )

    def for_subject_type(self, subject_type: str) -> tuple[Rule, ...]:
        return self._index.get(subject_type.lower(), ())

    @property
    def subject_types(self) -> list[str]:
        return sorted(self._index)

    def __len__(self) -> int:
        return len(self.rules)
