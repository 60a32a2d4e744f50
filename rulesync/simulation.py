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

"""Dry-run a provisioning pass against an in-memory host.

A scenario document describes one subject and the target systems it is
already connected to:

    subject:
      object_type: person
      attributes: {accountName: jdoe, employeeType: staff}
    target_systems:
      AD:
        attribute_types: {userAccountControl: integer}
        connectors:
          - name: CN=jdoe,OU=Users,DC=example,DC=com
            attributes: {sAMAccountName: jdoe}
    now: 2026-06-01T12:00:00

External handlers referenced by the rules are replaced by recorders.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

import yaml
from pydantic import BaseModel, Field, ValidationError

from rulesync.engine.diagnostics import Diagnostics
from rulesync.engine.dispatch import DispatchResult
from rulesync.engine.sync import ProvisioningEngine
from rulesync.errors import RuleSetLoadError
from rulesync.host.memory import MemorySubject
from rulesync.host.protocols import ConnectorObject, Subject
from rulesync.models.rules import RuleAction, RuleSet
from rulesync.models.values import AttributeType

logger = logging.getLogger(__name__)


class ConnectorScenario(BaseModel):
    name: Optional[str] = None
    object_type: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)


class TargetSystemScenario(BaseModel):
    attribute_types: dict[str, AttributeType] = Field(default_factory=dict)
    connectors: list[ConnectorScenario] = Field(default_factory=list)


class SubjectScenario(BaseModel):
    object_type: str
    id: Optional[UUID] = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class Scenario(BaseModel):
    subject: SubjectScenario
    target_systems: dict[str, TargetSystemScenario] = Field(default_factory=dict)
    now: Optional[datetime] = None


class RecordingHandler:
    """Stands in for an external handler and remembers every call."""

    def __init__(self, reference_id: str) -> None:
        self.reference_id = reference_id
        self.provisioned: list[UUID] = []

    def provision(self, subject: Subject) -> None:
        logger.info("external handler '%s' called for %s", self.reference_id, subject.unique_id())
        self.provisioned.append(subject.unique_id())

    def should_delete(self, connector: ConnectorObject, subject: Subject) -> bool:
        return False


class SimulationResult(BaseModel):
    dispatch: DispatchResult
    connectors: list[dict[str, Any]] = Field(default_factory=list)
    deprovisioned: list[dict[str, Any]] = Field(default_factory=list)
    log: list[str] = Field(default_factory=list)


def load_scenario(path: str | Path) -> Scenario:
    """Read a scenario YAML file.

    Raises:
        RuleSetLoadError: unreadable file, invalid YAML or invalid scenario.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return Scenario.model_validate(data)
    except OSError as e:
        raise RuleSetLoadError(f"Cannot read scenario {path}: {e}", {"source": str(path)}) from e
    except yaml.YAMLError as e:
        raise RuleSetLoadError(f"{path}: invalid YAML: {e}", {"source": str(path)}) from e
    except ValidationError as e:
        raise RuleSetLoadError(f"{path}: invalid scenario: {e}", {"source": str(path)}) from e


def build_subject(scenario: Scenario) -> MemorySubject:
    """Create the in-memory subject and seed its existing connectors."""
    subject = MemorySubject(
        scenario.subject.object_type,
        scenario.subject.attributes,
        unique_id=scenario.subject.id,
        schemas={name: system.attribute_types for name, system in scenario.target_systems.items()},
    )
    for name, system in scenario.target_systems.items():
        connection = subject.connections_for(name)
        for connector in system.connectors:
            connection.add_existing(connector.name, connector.attributes, connector.object_type)
    return subject


def simulate(rule_set: RuleSet, scenario: Scenario, record_level: int = logging.DEBUG) -> SimulationResult:
    """Run one pass for the scenario's subject and collect the outcome."""
    diagnostics = Diagnostics(record=True)
    now = (lambda: scenario.now) if scenario.now is not None else None
    engine = ProvisioningEngine(diagnostics=diagnostics, now=now)

    for rule in rule_set.rules:
        if rule.action == RuleAction.EXTERNAL and rule.external:
            engine.register_handler(rule.external, RecordingHandler(rule.external))

    subject = build_subject(scenario)
    engine.initialize(rule_set)
    try:
        dispatch = engine.process_subject(subject)
    finally:
        engine.terminate()

    return SimulationResult(
        dispatch=dispatch,
        connectors=[c.to_dict() for c in subject.all_connectors()],
        deprovisioned=[c.to_dict() for c in subject.deprovisioned_connectors()],
        log=[
            "  " * e.depth + e.message
            for e in diagnostics.events
            if e.level >= record_level
        ],
    )
