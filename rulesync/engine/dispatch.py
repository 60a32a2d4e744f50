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

"""Rule dispatch engine.

Runs one provisioning pass for one subject: walks the rules for the
subject's type in declared order and decides, per target system, which
action to take. A target system is acted upon at most once per pass;
later rules for the same target system are skipped.

Decision per rule, with ``n`` = connectors the subject has in the
rule's target system:

- ``n == 0``: only ``provision`` acts (create a connector if the rule
  conditions hold).
- ``n >= 1``: ``rename`` renames, ``provision`` reprovisions (or renames
  when it carries a rename policy), ``deprovision`` removes matching
  connectors and ``deprovision_all`` removes every connector of the
  subject and ends the pass.
- ``external`` hands the subject to a registered ExternalHandler.

Errors are logged at the failing step and propagate; the rest of the
subject's pass is abandoned.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from rulesync.engine import conditions as condition_evaluator
from rulesync.engine.diagnostics import Diagnostics
from rulesync.engine.flows import generate
from rulesync.engine.helper_values import generate_helper_values
from rulesync.engine.macros import resolve_constant
from rulesync.errors import ConfigurationError
from rulesync.host.protocols import (
    ConnectorObject,
    ExternalHandler,
    Subject,
    TargetSystemConnection,
)
from rulesync.models.conditions import Conditions
from rulesync.models.flows import is_name_target
from rulesync.models.rules import RenamePolicy, Rule, RuleAction, RuleSet
from rulesync.models.values import AttributeType, TypedValue


class Outcome(str, Enum):
    """What happened to a connector (or the subject) during a pass."""

    CREATED = "created"
    RENAMED = "renamed"
    REPROVISIONED = "reprovisioned"
    DEPROVISIONED = "deprovisioned"
    EXTERNAL = "external"


class ActionRecord(BaseModel):
    """One host-visible change made during a pass."""

    model_config = ConfigDict(frozen=True)

    rule: str
    outcome: Outcome
    target_system: str = ""
    connector: Optional[str] = None
    previous_name: Optional[str] = None


class DispatchResult(BaseModel):
    """Everything a pass did for one subject."""

    subject_type: str
    actions: list[ActionRecord] = Field(default_factory=list)
    acted_upon: list[str] = Field(default_factory=list)
    stopped: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.actions)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for a in self.actions if a.outcome == outcome)


def _name_text(connector: ConnectorObject) -> Optional[str]:
    name = connector.name()
    return str(name) if name is not None else None


class _DispatchPass:
    """State for a single pass over a single subject."""

    def __init__(
        self,
        subject: Subject,
        rule_set: RuleSet,
        handlers: Mapping[str, ExternalHandler],
        diagnostics: Diagnostics,
        now: Optional[Callable[[], datetime]],
    ) -> None:
        self.subject = subject
        self.rule_set = rule_set
        self.handlers = handlers
        self.diagnostics = diagnostics
        self.now = now
        self.acted_upon: set[str] = set()
        self.result = DispatchResult(subject_type=subject.object_type)

    # ── bookkeeping ──

    def _mark(self, target_system: str) -> None:
        key = target_system.lower()
        if key not in self.acted_upon:
            self.acted_upon.add(key)
            self.result.acted_upon.append(target_system)

    def _record(
        self,
        rule: Rule,
        outcome: Outcome,
        target_system: str,
        connector: Optional[ConnectorObject] = None,
        previous_name: Optional[str] = None,
    ) -> None:
        record = ActionRecord(
            rule=rule.display_name,
            outcome=outcome,
            target_system=target_system,
            connector=_name_text(connector) if connector is not None else None,
            previous_name=previous_name,
        )
        self.diagnostics.info(
            "%s %s in %s (rule '%s')",
            outcome.value, record.connector or "-", target_system or "-", record.rule,
        )
        self.result.actions.append(record)

    def _met(self, tree: Conditions, connector: Optional[ConnectorObject]) -> bool:
        return condition_evaluator.evaluate(tree, self.subject, connector, self.diagnostics, self.now)

    # ── pass ──

    def run(self) -> DispatchResult:
        rules = self.rule_set.for_subject_type(self.subject.object_type)
        with self.diagnostics.scope("provision"):
            self.diagnostics.debug(
                "subject id: %s, type: %s, rules: %d",
                self.subject.unique_id(), self.subject.object_type, len(rules),
            )
            for rule in rules:
                if rule.target_system and rule.target_system.lower() in self.acted_upon:
                    self.diagnostics.debug(
                        "skipping rule '%s', %s was already acted upon", rule.display_name, rule.target_system
                    )
                    continue
                with self.diagnostics.scope(f"rule '{rule.display_name}'"):
                    _ACTIONS[rule.action](self, rule)
                if self.result.stopped:
                    self.diagnostics.debug("no further rules are processed for this subject")
                    break
        return self.result

    # ── actions ──

    def provision(self, rule: Rule) -> None:
        connection = self.subject.connections_for(rule.target_system)
        count = connection.connector_count()
        self.diagnostics.debug("connectors in %s: %d", rule.target_system, count)
        if count == 0:
            if self._met(rule.conditions, None):
                connector = self.create_connector(connection, rule)
                self._record(rule, Outcome.CREATED, rule.target_system, connector)
                self._mark(rule.target_system)
            return
        if rule.reprovision_enabled:
            self.reprovision(connection, rule)
        elif rule.conditional_rename is not None:
            self.rename(rule)

    def rename(self, rule: Rule) -> None:
        policy = rule.conditional_rename
        if policy is None:
            raise ConfigurationError(
                f"Rule '{rule.display_name}' renames connectors but has no conditional_rename policy"
            )
        connection = self.subject.connections_for(rule.target_system)
        if connection.connector_count() == 0:
            self.diagnostics.debug("no connectors in %s to rename", rule.target_system)
            return
        renamed = 0
        for connector in list(connection.connectors()):
            previous = _name_text(connector)
            if self.rename_connector(connection, connector, rule, policy):
                renamed += 1
                self._record(rule, Outcome.RENAMED, rule.target_system, connector, previous)
        if renamed:
            self._mark(rule.target_system)

    def reprovision(self, connection: TargetSystemConnection, rule: Rule) -> None:
        trigger = rule.reprovision.conditions if rule.reprovision else Conditions()
        reprovisioned = 0
        for connector in list(connection.connectors()):
            if not self._met(trigger, connector):
                continue
            previous = _name_text(connector)
            with self.diagnostics.scope("reprovision-connector"):
                connector.deprovision()
                replacement = self.create_connector(connection, rule)
            reprovisioned += 1
            self._record(rule, Outcome.REPROVISIONED, rule.target_system, replacement, previous)
        if reprovisioned:
            self._mark(rule.target_system)

    def deprovision(self, rule: Rule) -> None:
        connection = self.subject.connections_for(rule.target_system)
        if connection.connector_count() == 0:
            return
        removed = 0
        for connector in list(connection.connectors()):
            if not self._met(rule.conditions, connector):
                continue
            previous = _name_text(connector)
            connector.deprovision()
            removed += 1
            self._record(rule, Outcome.DEPROVISIONED, rule.target_system, previous_name=previous)
        if removed:
            self._mark(rule.target_system)

    def deprovision_all(self, rule: Rule) -> None:
        connection = self.subject.connections_for(rule.target_system)
        if connection.connector_count() == 0:
            return
        if not any(self._met(rule.conditions, c) for c in connection.connectors()):
            return
        with self.diagnostics.scope("deprovision-all"):
            for system in list(self.subject.connected_systems()):
                for connector in list(system.connectors()):
                    previous = _name_text(connector)
                    connector.deprovision()
                    self._record(rule, Outcome.DEPROVISIONED, system.target_system, previous_name=previous)
                self._mark(system.target_system)
        self._mark(rule.target_system)
        self.result.stopped = True

    def external(self, rule: Rule) -> None:
        handler = self.handlers.get(rule.external or "")
        if handler is None:
            raise ConfigurationError(
                f"Rule '{rule.display_name}' references unknown external handler '{rule.external}'",
                {"external": rule.external},
            )
        if not self._met(rule.conditions, None):
            return
        with self.diagnostics.scope(f"external-{rule.external}"):
            handler.provision(self.subject)
        self._record(rule, Outcome.EXTERNAL, rule.target_system)
        if rule.target_system:
            self._mark(rule.target_system)

    # ── connector procedures ──

    def additional_object_classes(self, rule: Rule) -> list[str]:
        """Extra object classes for a new connector.

        A subject attribute named by ``additional_object_classes_attribute``
        wins over the literal list when it holds a value.
        """
        if rule.additional_object_classes_attribute:
            value = self.subject.get_value(rule.additional_object_classes_attribute)
            if value.is_present:
                return value.text_values()
            self.diagnostics.debug(
                "additional object class attribute '%s' is not present",
                rule.additional_object_classes_attribute,
            )
        return list(rule.additional_object_classes)

    def create_connector(self, connection: TargetSystemConnection, rule: Rule) -> ConnectorObject:
        with self.diagnostics.scope("create-connector"):
            helpers = generate_helper_values(rule.helpers, self.diagnostics)
            classes = self.additional_object_classes(rule)
            self.diagnostics.debug(
                "new %s in %s, additional classes: %s",
                rule.target_object_type, rule.target_system, ", ".join(classes) or "-",
            )
            connector = connection.start_new_connector(rule.target_object_type, classes)
            for flow in rule.initial_flows:
                generate(flow, connection, connector, self.subject, rule, helpers, self.diagnostics)
            connector.commit()
            return connector

    def rename_connector(
        self,
        connection: TargetSystemConnection,
        connector: ConnectorObject,
        rule: Rule,
        policy: RenamePolicy,
    ) -> bool:
        """Rename ``connector`` when the policy conditions hold and the name changes."""
        if not self._met(policy.conditions, connector):
            return False
        with self.diagnostics.scope("rename-connector"):
            helpers = generate_helper_values(rule.helpers, self.diagnostics)
            new_text = resolve_constant(
                policy.new_name,
                self.subject,
                helpers,
                escaped_cn_template=policy.escaped_cn,
                escape=connection.escape_name_component,
                diagnostics=self.diagnostics,
            )
            new_name = connection.build_name(new_text)

            if is_name_target(policy.target):
                current = connector.name()
            else:
                value = connector.get_value(policy.target)
                if not value.is_present:
                    current = None
                elif value.data_type == AttributeType.REFERENCE or policy.strict_name_compare:
                    current = value.value
                else:
                    current = connection.build_name(value.as_text())

            self.diagnostics.debug("old name: '%s', new name: '%s'", current, new_name)
            if current is not None:
                if policy.strict_name_compare:
                    unchanged = str(current) == str(new_name)
                else:
                    unchanged = current == new_name
                if unchanged:
                    self.diagnostics.debug("names are equal, no rename required")
                    return False

            if is_name_target(policy.target):
                connector.set_name(new_name)
            else:
                target_type = connector.get_value(policy.target).data_type
                if target_type == AttributeType.REFERENCE:
                    connector.set_value(policy.target, TypedValue.reference(new_name))
                else:
                    connector.set_value(policy.target, TypedValue.string(str(new_name)))
            return True


_ACTIONS: dict[str, Callable[[_DispatchPass, Rule], None]] = {
    RuleAction.PROVISION: _DispatchPass.provision,
    RuleAction.RENAME: _DispatchPass.rename,
    RuleAction.DEPROVISION: _DispatchPass.deprovision,
    RuleAction.DEPROVISION_ALL: _DispatchPass.deprovision_all,
    RuleAction.EXTERNAL: _DispatchPass.external,
}


def dispatch_subject(
    subject: Subject,
    rule_set: RuleSet,
    handlers: Optional[Mapping[str, ExternalHandler]] = None,
    diagnostics: Optional[Diagnostics] = None,
    now: Optional[Callable[[], datetime]] = None,
) -> DispatchResult:
    """Run one provisioning pass for ``subject``.

    Args:
        subject: The canonical record being provisioned.
        rule_set: Loaded rules; only those for the subject's type are used.
        handlers: External handlers keyed by reference id.
        diagnostics: Sink for the pass's log output.
        now: Clock used by date conditions.

    Returns:
        DispatchResult listing every change made, in order.
    """
    return _DispatchPass(
        subject,
        rule_set,
        handlers or {},
        diagnostics or Diagnostics(),
        now,
    ).run()
