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

"""Attribute flow generator.

Computes the value of one attribute flow and writes it to a connector
through the host. A ``[DN]`` target (any case) sets the connector name
via ``connection.build_name``; every other target is an attribute.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional
from uuid import UUID

from rulesync.engine import coercion
from rulesync.engine.diagnostics import Diagnostics
from rulesync.engine.helper_values import HelperValues
from rulesync.engine.macros import resolve_constant
from rulesync.errors import ConfigurationError, ConversionError
from rulesync.host.protocols import ConnectorObject, Subject, TargetSystemConnection
from rulesync.models.flows import (
    AttributeFlow,
    AttributeSource,
    ConcatenateFlow,
    ConstantFlow,
    ConstantSource,
    CopyAttributeFlow,
    FlowKind,
    IdentifierFlow,
    MultivaluedConstantFlow,
    RegexReplaceSource,
    SourceExpression,
    SourceExpressionKind,
    is_name_target,
)
from rulesync.models.rules import Rule
from rulesync.models.values import AttributeType, TypedValue

_DOTNET_GROUP_REFERENCE = re.compile(r"\$(?:(\d+)|\{(\w+)\}|(\$))")

_SUBJECT_ID_FORMATS: dict[str, Callable[[UUID], str]] = {
    "N": lambda u: u.hex,
    "D": str,
    "B": lambda u: "{%s}" % u,
    "P": lambda u: "(%s)" % u,
}


@dataclass
class FlowContext:
    connection: TargetSystemConnection
    connector: ConnectorObject
    subject: Subject
    rule: Rule
    helpers: HelperValues
    diagnostics: Diagnostics

    def target_type(self, target: str) -> AttributeType:
        if is_name_target(target):
            return AttributeType.STRING
        return self.connector.get_value(target).data_type

    def write_name(self, text: str) -> None:
        self.connector.set_name(self.connection.build_name(text))

    def write(self, target: str, value: TypedValue) -> None:
        if is_name_target(target):
            self.write_name(value.as_text())
        else:
            self.connector.set_value(target, value)


def generate(
    flow: AttributeFlow,
    connection: TargetSystemConnection,
    connector: ConnectorObject,
    subject: Subject,
    rule: Rule,
    helpers: Optional[HelperValues] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> None:
    """Apply one attribute flow to ``connector``."""
    context = FlowContext(
        connection=connection,
        connector=connector,
        subject=subject,
        rule=rule,
        helpers=helpers if helpers is not None else HelperValues(),
        diagnostics=diagnostics or Diagnostics(),
    )
    handler = _HANDLERS.get(flow.kind)
    if handler is None:
        raise ConfigurationError(f"Unknown attribute flow kind '{flow.kind}'")
    with context.diagnostics.scope(f"attributeflow-{flow.kind}"):
        if flow.description:
            context.diagnostics.debug("flow-description '%s'", flow.description)
        handler(flow, context)


# ── identifier ──


def _identifier(flow: IdentifierFlow, context: FlowContext) -> None:
    new_id = uuid.uuid4()
    context.diagnostics.debug("new-guid '%s' to '%s'", new_id, flow.target)
    if context.target_type(flow.target) == AttributeType.BINARY:
        context.write(flow.target, TypedValue.binary(new_id.bytes_le))
    else:
        context.write(flow.target, TypedValue.string(str(new_id)))


# ── copy_attribute ──


def format_subject_id(value: UUID, fmt: Optional[str] = None) -> str:
    """Render a subject id as N (32 hex), D (hyphens), B (braces) or P (parentheses)."""
    if not fmt:
        return str(value)
    formatter = _SUBJECT_ID_FORMATS.get(fmt.upper())
    if formatter is None:
        raise ConfigurationError(f"Unknown identifier format '{fmt}' (expected N, D, B or P)")
    return formatter(value)


def _copy_subject_id(flow: CopyAttributeFlow, context: FlowContext, target_type: AttributeType) -> None:
    subject_id = context.subject.unique_id()
    context.diagnostics.debug("flow-source: subject-id, '%s'", subject_id)
    if target_type == AttributeType.STRING:
        context.write(flow.target, TypedValue.string(format_subject_id(subject_id, flow.format)))
    elif target_type == AttributeType.BINARY and not is_name_target(flow.target):
        context.write(flow.target, TypedValue.binary(subject_id.bytes_le))
    else:
        raise ConversionError("subject identifier", target_type, str(subject_id))


def _copy_attribute(flow: CopyAttributeFlow, context: FlowContext) -> None:
    target_type = context.target_type(flow.target)
    if flow.source_is_subject_id:
        _copy_subject_id(flow, context, target_type)
        return

    source = context.subject.get_value(flow.source)
    if not source.is_present:
        context.diagnostics.debug("source '%s' is not present, nothing to flow", flow.source)
        return
    context.diagnostics.debug("flow-source-value: '%s'", source.as_text())

    to_name = is_name_target(flow.target)
    converted = coercion.convert(
        source.value,
        source.data_type,
        target_type,
        coercion.StringOptions.from_flow(flow),
        to_name=to_name,
    )
    if to_name:
        context.write_name(str(converted))
    else:
        context.write(flow.target, TypedValue.of(target_type, converted))
    context.diagnostics.debug("target-value: '%s'", converted)


# ── constant / multivalued_constant ──


def _resolve(literal: str, escaped_cn: Optional[str], context: FlowContext) -> str:
    return resolve_constant(
        literal,
        context.subject,
        context.helpers,
        escaped_cn_template=escaped_cn,
        escape=context.connection.escape_name_component,
        diagnostics=context.diagnostics,
    )


def _constant(flow: ConstantFlow, context: FlowContext) -> None:
    value = _resolve(flow.constant, flow.escaped_cn, context)
    context.diagnostics.debug("flow-constant '%s' to '%s'", value, flow.target)
    context.write(flow.target, TypedValue.string(value))


def _multivalued_constant(flow: MultivaluedConstantFlow, context: FlowContext) -> None:
    if is_name_target(flow.target):
        raise ConfigurationError("A multivalued constant flow cannot target the connector name")
    if not flow.constants:
        raise ConfigurationError(
            f"Multivalued constant flow to '{flow.target}' needs one or more constants"
        )
    for literal in flow.constants:
        value = _resolve(literal, flow.escaped_cn, context)
        context.diagnostics.debug("flow-mv-constant '%s' to '%s'", value, flow.target)
        context.connector.append_value(flow.target, TypedValue.string(value))


# ── concatenate ──


def translate_replacement(replacement: str) -> str:
    """Turn ``$1``, ``${name}`` and ``$$`` references into ``re.sub`` syntax."""
    parts: list[str] = []
    position = 0
    for match in _DOTNET_GROUP_REFERENCE.finditer(replacement):
        parts.append(replacement[position:match.start()].replace("\\", "\\\\"))
        if match.group(3):
            parts.append("$")
        else:
            parts.append("\\g<%s>" % (match.group(1) or match.group(2)))
        position = match.end()
    parts.append(replacement[position:].replace("\\", "\\\\"))
    return "".join(parts)


def _attribute_part(expression: AttributeSource, context: FlowContext) -> Optional[str]:
    value = context.subject.get_value(expression.source)
    if not value.is_present:
        context.diagnostics.error("attribute '%s' is not present on the subject", expression.source)
        return None
    context.diagnostics.debug("adding-value '%s' from '%s'", value.as_text(), expression.source)
    return value.as_text()


def _constant_part(expression: ConstantSource, context: FlowContext) -> Optional[str]:
    value = _resolve(expression.source, None, context)
    context.diagnostics.debug("adding-constant '%s'", value)
    return value


def _regex_part(expression: RegexReplaceSource, context: FlowContext) -> Optional[str]:
    value = context.subject.get_value(expression.source)
    if not value.is_present:
        context.diagnostics.error("attribute '%s' is not present on the subject", expression.source)
        return None
    try:
        replaced = re.sub(expression.pattern, translate_replacement(expression.replacement), value.as_text())
    except re.error as e:
        raise ConfigurationError(f"Invalid regular expression '{expression.pattern}': {e}") from e
    context.diagnostics.debug("adding-regex-replacement '%s'", replaced)
    return replaced


_SOURCE_EXPRESSIONS: dict[str, Callable[[Any, FlowContext], Optional[str]]] = {
    SourceExpressionKind.ATTRIBUTE: _attribute_part,
    SourceExpressionKind.CONSTANT: _constant_part,
    SourceExpressionKind.REGEX_REPLACE: _regex_part,
}


def concatenate(expressions: tuple[SourceExpression, ...], context: FlowContext) -> Optional[str]:
    """Join the source expressions in order; None when nothing contributed."""
    parts = [_SOURCE_EXPRESSIONS[e.kind](e, context) for e in expressions]
    contributed = [p for p in parts if p is not None]
    return "".join(contributed) if contributed else None


def _concatenate(flow: ConcatenateFlow, context: FlowContext) -> None:
    value = concatenate(flow.source_expressions, context)
    if value is None:
        context.diagnostics.warning("no source expression produced a value for '%s'", flow.target)
        return
    context.diagnostics.debug("flow-concatenated-value '%s' to '%s'", value, flow.target)
    context.write(flow.target, TypedValue.string(value))


_HANDLERS: dict[str, Callable[[Any, FlowContext], None]] = {
    FlowKind.IDENTIFIER: _identifier,
    FlowKind.COPY_ATTRIBUTE: _copy_attribute,
    FlowKind.CONSTANT: _constant,
    FlowKind.MULTIVALUED_CONSTANT: _multivalued_constant,
    FlowKind.CONCATENATE: _concatenate,
}
