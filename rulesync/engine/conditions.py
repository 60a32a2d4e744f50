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

"""Condition evaluator.

Evaluates a condition tree against a subject and (optionally) one of its
connectors. Groups are evaluated left to right: AND stops at the first
false child, OR at the first true child, and the result is the result of
the last child evaluated. A group without children is always true.

Leaf predicates never raise for missing or malformed data; they report
the reason through diagnostics and return False.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Union

from rulesync.engine.diagnostics import Diagnostics
from rulesync.errors import ConfigurationError
from rulesync.host.protocols import ConnectorObject, Subject
from rulesync.models.conditions import (
    After,
    AreEqual,
    AreNotEqual,
    Before,
    Between,
    BitIsSet,
    Condition,
    ConditionKind,
    ConditionOperator,
    Conditions,
    ConnectedTo,
    Contains,
    IsDnEqual,
    IsDnNotEqual,
    IsFalse,
    IsNotPresent,
    IsNotTrue,
    IsPresent,
    IsTrue,
    Match,
    NotConnectedTo,
    NotContains,
    NotMatch,
    SubCondition,
)
from rulesync.models.flows import is_name_target
from rulesync.models.values import AttributeType

# Tried in order after ISO-8601
DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y",
    "%Y%m%d%H%M%S.0Z",
    "%Y%m%d",
)


@dataclass
class EvaluationContext:
    """Everything a predicate may look at."""

    subject: Subject
    connector: Optional[ConnectorObject] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    now: Callable[[], datetime] = datetime.now


def evaluate(
    tree: Union[Conditions, SubCondition, None],
    subject: Subject,
    connector: Optional[ConnectorObject] = None,
    diagnostics: Optional[Diagnostics] = None,
    now: Optional[Callable[[], datetime]] = None,
) -> bool:
    """Evaluate a condition tree. ``None`` counts as an empty AND."""
    context = EvaluationContext(
        subject=subject,
        connector=connector,
        diagnostics=diagnostics or Diagnostics(),
        now=now or datetime.now,
    )
    if tree is None:
        return True
    with context.diagnostics.scope("conditions-met"):
        return _evaluate_group(tree.operator, tree.children, context)


def evaluate_condition(condition: Condition, context: EvaluationContext) -> bool:
    """Evaluate a single node (leaf or sub-condition)."""
    handler = _HANDLERS.get(condition.kind)
    if handler is None:
        raise ConfigurationError(f"Unknown condition kind '{condition.kind}'")
    return handler(condition, context)


def _evaluate_group(
    operator: ConditionOperator,
    children: tuple[Condition, ...],
    context: EvaluationContext,
) -> bool:
    if not children:
        return True

    diagnostics = context.diagnostics
    is_and = operator == ConditionOperator.AND
    met = is_and
    for child in children:
        met = evaluate_condition(child, context)
        diagnostics.debug(
            "'%s' condition '%s'/%s returned: %s",
            "And" if is_and else "Or", child.kind, child.description, met,
        )
        if is_and and not met:
            break
        if not is_and and met:
            break

    if is_and:
        diagnostics.debug("All 'And' conditions %s met", "were" if met else "were not")
    else:
        diagnostics.debug("One or more 'Or' conditions %s met", "were" if met else "were not")
    return met


def _fail(context: EvaluationContext, reason: str, description: str) -> bool:
    context.diagnostics.debug("Condition failed (Reason: %s) %s", reason, description)
    return False


# ── Presence ──


def _is_present(condition: IsPresent, context: EvaluationContext) -> bool:
    if context.subject.get_value(condition.attribute).is_present:
        return True
    return _fail(context, f"attribute '{condition.attribute}' is not present", condition.description)


def _is_not_present(condition: IsNotPresent, context: EvaluationContext) -> bool:
    if not context.subject.get_value(condition.attribute).is_present:
        return True
    return _fail(context, f"attribute '{condition.attribute}' is present", condition.description)


# ── Regex ──


def _regex_search(pattern: str, value: str) -> bool:
    try:
        return re.search(pattern, value, re.IGNORECASE) is not None
    except re.error as e:
        raise ConfigurationError(f"Invalid regular expression '{pattern}': {e}") from e


def _match(condition: Match, context: EvaluationContext) -> bool:
    value = context.subject.get_value(condition.attribute)
    if not value.is_present:
        return _fail(context, "no subject value is present", condition.description)
    if not _regex_search(condition.pattern, value.as_text()):
        return _fail(context, "regex doesn't match", condition.description)
    return True


def _not_match(condition: NotMatch, context: EvaluationContext) -> bool:
    value = context.subject.get_value(condition.attribute)
    if value.is_present and _regex_search(condition.pattern, value.as_text()):
        return _fail(context, "regex match", condition.description)
    # an absent value cannot match
    return True


# ── Booleans and bits ──


def _is_true(condition: IsTrue, context: EvaluationContext) -> bool:
    value = context.subject.get_value(condition.attribute)
    if not value.is_present:
        return _fail(context, "no subject value is present", condition.description)
    if not value.as_boolean():
        return _fail(context, "boolean value is false", condition.description)
    return True


def _is_false(condition: IsFalse, context: EvaluationContext) -> bool:
    value = context.subject.get_value(condition.attribute)
    if not value.is_present:
        return _fail(context, "no subject value is present", condition.description)
    if value.as_boolean():
        return _fail(context, "boolean value is true", condition.description)
    return True


def _is_not_true(condition: IsNotTrue, context: EvaluationContext) -> bool:
    value = context.subject.get_value(condition.attribute)
    if value.is_present and value.as_boolean():
        return _fail(context, "boolean value is true", condition.description)
    return True


def _bit_is_set(condition: BitIsSet, context: EvaluationContext) -> bool:
    value = context.subject.get_value(condition.attribute)
    if not value.is_present:
        return _fail(context, f"no subject value is present for {condition.attribute}", condition.description)
    try:
        number = value.as_integer()
    except ValueError:
        context.diagnostics.warning("unable-to-parse-value-to-integer %s", value.as_text())
        return False
    if not number & (1 << condition.bit_position):
        return _fail(
            context,
            f"bit {condition.bit_position} in attribute {condition.attribute} is not set",
            condition.description,
        )
    return True


# ── Subject vs connector ──


def _connector_text(context: EvaluationContext, attribute: str) -> Optional[str]:
    if context.connector is None:
        return None
    value = context.connector.get_value(attribute)
    return value.as_text() if value.is_present else None


def _subject_text(context: EvaluationContext, attribute: str) -> Optional[str]:
    value = context.subject.get_value(attribute)
    return value.as_text() if value.is_present else None


def _are_equal(condition: AreEqual, context: EvaluationContext) -> bool:
    if _connector_text(context, condition.connector_attribute) != _subject_text(context, condition.attribute):
        return _fail(context, "values are not equal", condition.description)
    return True


def _are_not_equal(condition: AreNotEqual, context: EvaluationContext) -> bool:
    if _connector_text(context, condition.connector_attribute) == _subject_text(context, condition.attribute):
        return _fail(context, "values are equal", condition.description)
    return True


def _names_equal(subject_attribute: str, connector_attribute: str, context: EvaluationContext) -> bool:
    diagnostics = context.diagnostics
    subject_value = context.subject.get_value(subject_attribute)
    connector = context.connector

    if connector is None:
        diagnostics.debug("no connector to compare names against")
        return not subject_value.is_present

    connection = context.subject.connections_for(connector.target_system)
    connector_name: Any
    if is_name_target(connector_attribute):
        connector_name = connector.name()
        if connector_name is None or not subject_value.is_present:
            return connector_name is None and not subject_value.is_present
    else:
        connector_value = connector.get_value(connector_attribute)
        if not connector_value.is_present and not subject_value.is_present:
            return True
        if connector_value.is_present != subject_value.is_present:
            return False
        if connector_value.data_type == AttributeType.REFERENCE:
            connector_name = connector_value.value
        elif connector_value.data_type == AttributeType.STRING:
            connector_name = connection.build_name(connector_value.as_text())
        else:
            diagnostics.error("Can only compare string values as names")
            return False

    if subject_value.data_type == AttributeType.REFERENCE:
        subject_name = subject_value.value
    elif subject_value.data_type in (AttributeType.STRING, AttributeType.UNDEFINED):
        subject_name = connection.build_name(subject_value.as_text())
    else:
        diagnostics.error("Can only compare string values as names")
        return False
    return subject_name == connector_name


def _is_dn_equal(condition: IsDnEqual, context: EvaluationContext) -> bool:
    if not _names_equal(condition.attribute, condition.connector_attribute, context):
        return _fail(context, "names are not equal", condition.description)
    return True


def _is_dn_not_equal(condition: IsDnNotEqual, context: EvaluationContext) -> bool:
    if _names_equal(condition.attribute, condition.connector_attribute, context):
        return _fail(context, "names are equal", condition.description)
    return True


# ── Dates ──


def parse_date(text: str) -> Optional[datetime]:
    """Parse a date the way rule authors write them; None when unparseable."""
    text = text.strip()
    if not text:
        return None
    iso = text[:-1] + "+00:00" if text.endswith("Z") and "T" in text else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _current_time_like(value: datetime, context: EvaluationContext) -> datetime:
    now = context.now()
    if value.tzinfo is not None:
        return now.astimezone(value.tzinfo)
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


def _date_value(attribute: str, context: EvaluationContext, description: str) -> Optional[datetime]:
    value = context.subject.get_value(attribute)
    if not value.is_present:
        _fail(context, f"attribute '{attribute}' value is not present", description)
        return None
    parsed = parse_date(value.as_text())
    if parsed is None:
        context.diagnostics.warning("unable-to-parse-value-to-datetime %s", value.as_text())
    return parsed


def _after(condition: After, context: EvaluationContext) -> bool:
    value = _date_value(condition.attribute, context, condition.description)
    if value is None:
        return False
    now = _current_time_like(value, context)
    result = now > value
    context.diagnostics.debug("compare-dates now: %s, value: %s, is-after: %s", now, value, result)
    return result


def _before(condition: Before, context: EvaluationContext) -> bool:
    value = _date_value(condition.attribute, context, condition.description)
    if value is None:
        return False
    now = _current_time_like(value, context)
    result = now < value
    context.diagnostics.debug("compare-dates now: %s, value: %s, is-before: %s", now, value, result)
    return result


def _between(condition: Between, context: EvaluationContext) -> bool:
    start = _date_value(condition.start_attribute, context, condition.description)
    if start is None:
        return False
    end = _date_value(condition.end_attribute, context, condition.description)
    if end is None:
        return False
    try:
        now = _current_time_like(start, context)
        result = start < now < end
    except TypeError:
        context.diagnostics.warning("cannot compare naive and timezone-aware dates %s, %s", start, end)
        return False
    context.diagnostics.debug("compare-dates now: %s, start: %s, end: %s, is-between: %s", now, start, end, result)
    return result


# ── Connectivity ──


def _connected_to(condition: ConnectedTo, context: EvaluationContext) -> bool:
    if context.subject.connections_for(condition.target_system).connector_count() == 0:
        return _fail(context, f"not connected to {condition.target_system}", condition.description)
    return True


def _not_connected_to(condition: NotConnectedTo, context: EvaluationContext) -> bool:
    if context.subject.connections_for(condition.target_system).connector_count() > 0:
        return _fail(context, f"still connected to {condition.target_system}", condition.description)
    return True


# ── Multivalue membership ──


def _contains_value(attribute: str, expected: str, case_sensitive: bool, context: EvaluationContext) -> bool:
    value = context.subject.get_value(attribute)
    if not value.is_present:
        context.diagnostics.debug("no subject value is present for %s", attribute)
        return False
    entries = value.text_values()
    if case_sensitive:
        return expected in entries
    folded = expected.casefold()
    return any(entry.casefold() == folded for entry in entries)


def _contains(condition: Contains, context: EvaluationContext) -> bool:
    if not _contains_value(condition.attribute, condition.value, condition.case_sensitive, context):
        return _fail(context, f"'{condition.value}' not found in {condition.attribute}", condition.description)
    return True


def _not_contains(condition: NotContains, context: EvaluationContext) -> bool:
    if _contains_value(condition.attribute, condition.value, condition.case_sensitive, context):
        return _fail(context, f"'{condition.value}' found in {condition.attribute}", condition.description)
    return True


# ── Nesting ──


def _sub_condition(condition: SubCondition, context: EvaluationContext) -> bool:
    with context.diagnostics.scope("subconditions-met"):
        return _evaluate_group(condition.operator, condition.children, context)


_HANDLERS: dict[str, Callable[[Any, EvaluationContext], bool]] = {
    ConditionKind.IS_PRESENT: _is_present,
    ConditionKind.IS_NOT_PRESENT: _is_not_present,
    ConditionKind.MATCH: _match,
    ConditionKind.NOT_MATCH: _not_match,
    ConditionKind.IS_TRUE: _is_true,
    ConditionKind.IS_FALSE: _is_false,
    ConditionKind.IS_NOT_TRUE: _is_not_true,
    ConditionKind.BIT_IS_SET: _bit_is_set,
    ConditionKind.ARE_EQUAL: _are_equal,
    ConditionKind.ARE_NOT_EQUAL: _are_not_equal,
    ConditionKind.IS_DN_EQUAL: _is_dn_equal,
    ConditionKind.IS_DN_NOT_EQUAL: _is_dn_not_equal,
    ConditionKind.AFTER: _after,
    ConditionKind.BEFORE: _before,
    ConditionKind.BETWEEN: _between,
    ConditionKind.CONNECTED_TO: _connected_to,
    ConditionKind.NOT_CONNECTED_TO: _not_connected_to,
    ConditionKind.CONTAINS: _contains,
    ConditionKind.NOT_CONTAINS: _not_contains,
    ConditionKind.SUB_CONDITION: _sub_condition,
}
