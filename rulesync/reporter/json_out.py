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

"""Canonical JSON output for rule sets and pass results.

Produces deterministic JSON output:
- Sorted keys
- 2-space indentation
- LF line endings
- Trailing newline
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rulesync.models.rules import RuleSet

logger = logging.getLogger(__name__)


def to_canonical_json(data: dict[str, Any] | Any) -> str:
    """Convert data (or a pydantic model) to a canonical JSON string."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")

    result = json.dumps(data, sort_keys=True, indent=2, ensure_ascii=False, default=str)
    result = result.replace("\r\n", "\n").replace("\r", "\n")
    if not result.endswith("\n"):
        result += "\n"
    return result


def rule_set_summary(rule_set: RuleSet, source: str) -> dict[str, Any]:
    return {
        "source": source,
        "disable_all_rules": rule_set.disable_all_rules,
        "subject_types": rule_set.subject_types,
        "rules": [
            {
                "name": rule.display_name,
                "action": rule.action.value,
                "subject_type": rule.subject_type,
                "target_system": rule.target_system,
                "initial_flows": len(rule.initial_flows),
            }
            for rule in rule_set.rules
        ],
    }


def write_json(data: dict[str, Any] | Any, output_path: Path) -> None:
    """Write canonical JSON to a file."""
    content = to_canonical_json(data)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8", newline="\n")
    logger.info("Wrote %s", output_path)
