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

"""Load a rule set from YAML.

The document holds a ``disable_all_rules`` flag and a ``rules`` list.
Older rule files are accepted: action keywords in any case
(``Provision``, ``DeprovisionAll``), the obsolete condition kinds
``attribute_is_present`` / ``attribute_is_not_present`` and the retired
``rename_dn_flow`` block. Each is rewritten (or dropped) with a warning.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from rulesync.errors import RuleSetLoadError
from rulesync.models.rules import Rule, RuleAction, RuleSet

logger = logging.getLogger(__name__)

_ACTION_KEYWORDS = {a.value.replace("_", ""): a.value for a in RuleAction}

_OBSOLETE_CONDITION_KINDS = {
    "attribute_is_present": "is_present",
    "attribute_is_not_present": "is_not_present",
}


def _normalize_action(rule_data: dict[str, Any], label: str) -> None:
    action = rule_data.get("action")
    if not isinstance(action, str):
        return
    key = action.strip().lower().replace("_", "").replace("-", "")
    canonical = _ACTION_KEYWORDS.get(key)
    if canonical is not None and canonical != action:
        logger.warning("%s: action '%s' is a legacy spelling, use '%s'", label, action, canonical)
        rule_data["action"] = canonical


def _normalize_conditions(tree: Any, label: str) -> Any:
    if tree is None:
        return None
    if isinstance(tree, list):
        tree = {"operator": "and", "children": tree}
    if not isinstance(tree, dict):
        return tree
    tree = dict(tree)
    if isinstance(tree.get("operator"), str):
        tree["operator"] = tree["operator"].strip().lower()
    kind = tree.get("kind")
    if isinstance(kind, str) and kind in _OBSOLETE_CONDITION_KINDS:
        replacement = _OBSOLETE_CONDITION_KINDS[kind]
        logger.warning("%s: condition kind '%s' is obsolete, use '%s'", label, kind, replacement)
        tree["kind"] = replacement
    if isinstance(tree.get("children"), list):
        tree["children"] = [_normalize_conditions(child, label) for child in tree["children"]]
    return tree


def _normalize_rule(rule_data: Any, position: int) -> Any:
    if not isinstance(rule_data, dict):
        return rule_data
    rule_data = dict(rule_data)
    label = f"rule '{rule_data.get('name') or rule_data.get('rule_id') or position}'"

    _normalize_action(rule_data, label)
    if "rename_dn_flow" in rule_data:
        logger.warning("%s: rename_dn_flow is no longer supported and is ignored, use conditional_rename", label)
        del rule_data["rename_dn_flow"]

    if "conditions" in rule_data:
        rule_data["conditions"] = _normalize_conditions(rule_data["conditions"], label)
    for policy_key in ("conditional_rename", "reprovision"):
        policy = rule_data.get(policy_key)
        if isinstance(policy, dict) and "conditions" in policy:
            rule_data[policy_key] = {
                **policy,
                "conditions": _normalize_conditions(policy["conditions"], label) or {},
            }
    return rule_data


def parse_rule_set(data: Any, source: str = "<memory>") -> RuleSet:
    """Validate an already-parsed rule document.

    Raises:
        RuleSetLoadError: the document is not a mapping or a rule is invalid.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RuleSetLoadError(f"{source}: rule document must be a mapping", {"source": source})

    raw_rules = data.get("rules") or []
    if not isinstance(raw_rules, list):
        raise RuleSetLoadError(f"{source}: 'rules' must be a list", {"source": source})

    rules: list[Rule] = []
    for position, rule_data in enumerate(raw_rules, start=1):
        try:
            rules.append(Rule.model_validate(_normalize_rule(rule_data, position)))
        except ValidationError as e:
            raise RuleSetLoadError(
                f"{source}: rule #{position} is invalid: {e}",
                {"source": source, "rule": position, "errors": e.errors(include_url=False)},
            ) from e

    disabled = [r.display_name for r in rules if not r.enabled]
    for name in disabled:
        logger.info("rule '%s' is disabled and will not be loaded", name)

    rule_set = RuleSet.from_rules(rules, disable_all_rules=bool(data.get("disable_all_rules", False)))
    logger.debug("loaded %d rules from %s", len(rule_set), source)
    return rule_set


def load_rule_set(path: str | Path) -> RuleSet:
    """Load and validate a rule set from a YAML file.

    Raises:
        RuleSetLoadError: the file cannot be read, is not valid YAML, or
            fails validation.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise RuleSetLoadError(f"Cannot read rule file {path}: {e}", {"source": str(path)}) from e
    except yaml.YAMLError as e:
        raise RuleSetLoadError(f"{path}: invalid YAML: {e}", {"source": str(path)}) from e
    return parse_rule_set(data, source=str(path))
