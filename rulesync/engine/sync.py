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

"""Host callback surface.

A hosting synchronization platform drives the engine through four
calls: ``initialize`` once, ``process_subject`` per subject per pass,
``should_delete`` (not supported) and ``terminate`` at shutdown.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from rulesync.config import EngineSettings, load_settings
from rulesync.engine.diagnostics import Diagnostics
from rulesync.engine.dispatch import DispatchResult, dispatch_subject
from rulesync.errors import ConfigurationError, EngineStateError, NotSupportedError
from rulesync.host.protocols import ConnectorObject, ExternalHandler, Subject
from rulesync.models.rules import RuleAction, RuleSet
from rulesync.policy.loader import load_rule_set

logger = logging.getLogger(__name__)


class ProvisioningEngine:
    """Rule-driven provisioning for one host process."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        diagnostics: Optional[Diagnostics] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings
        self.diagnostics = diagnostics or Diagnostics()
        self.now = now
        self.rule_set: Optional[RuleSet] = None
        self._handlers: dict[str, ExternalHandler] = {}

    @property
    def initialized(self) -> bool:
        return self.rule_set is not None

    def register_handler(self, reference_id: str, handler: ExternalHandler) -> None:
        """Make ``handler`` available to rules with ``external: <reference_id>``."""
        if not isinstance(handler, ExternalHandler):
            raise ConfigurationError(f"External handler '{reference_id}' does not implement provision/should_delete")
        self._handlers[reference_id] = handler

    def initialize(self, rule_set: Optional[RuleSet] = None) -> RuleSet:
        """Load the rule set (from settings unless one is given).

        The settings' log level is applied to the ``rulesync`` logger.

        Raises:
            RuleSetLoadError: the configured rule file is missing or invalid.
            ConfigurationError: no rule file is configured.
        """
        settings = self.settings if rule_set is not None else (self.settings or load_settings())
        if settings is not None:
            logging.getLogger("rulesync").setLevel(settings.log_level_number)
        with self.diagnostics.scope("initialize"):
            if rule_set is None:
                if settings.rules_file is None:
                    raise ConfigurationError("No rule file configured (set RULESYNC_RULES_FILE)")
                self.diagnostics.info("loading rules from %s", settings.rules_file)
                rule_set = load_rule_set(settings.rules_file)
                if settings.disable_all_rules and not rule_set.disable_all_rules:
                    rule_set = rule_set.model_copy(update={"disable_all_rules": True})
            self._check_external_references(rule_set)
            self.rule_set = rule_set
            self.diagnostics.info(
                "%d rules loaded for subject types: %s",
                len(rule_set), ", ".join(rule_set.subject_types) or "-",
            )
            return rule_set

    def _check_external_references(self, rule_set: RuleSet) -> None:
        for rule in rule_set.rules:
            if rule.action == RuleAction.EXTERNAL and rule.external not in self._handlers:
                self.diagnostics.warning(
                    "rule '%s' references external handler '%s' which is not registered yet",
                    rule.display_name, rule.external,
                )

    def process_subject(self, subject: Subject) -> DispatchResult:
        """Run the provisioning pass for one subject.

        Raises:
            EngineStateError: called before initialize().
        """
        if self.rule_set is None:
            raise EngineStateError("process_subject() called before initialize()")
        if self.rule_set.disable_all_rules:
            self.diagnostics.info("provisioning is disabled")
            return DispatchResult(subject_type=subject.object_type)
        return dispatch_subject(
            subject,
            self.rule_set,
            handlers=self._handlers,
            diagnostics=self.diagnostics,
            now=self.now,
        )

    def should_delete(self, connector: ConnectorObject, subject: Subject) -> bool:
        raise NotSupportedError("should_delete is not implemented by this engine")

    def terminate(self) -> None:
        with self.diagnostics.scope("terminate"):
            self.rule_set = None
