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

"""Macro expansion for constants, rename templates and concatenations.

Placeholders:

- ``#helper:Name#``     per-invocation helper value (case-insensitive name)
- ``#mv:Attribute#``    subject attribute value, blank when absent
- ``#param:EscapedCN#``  escaped name component supplied by the caller

A constant flows through three steps: helper expansion, computation of
the escaped component (when the flow has an escaping template), then
subject/param expansion of the helper-expanded literal.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Optional

from rulesync.engine.diagnostics import Diagnostics
from rulesync.engine.helper_values import HelperValues
from rulesync.host.protocols import Subject

HELPER_PLACEHOLDER = re.compile(r"#helper:(\w+)#", re.IGNORECASE)
SUBJECT_PLACEHOLDER = re.compile(r"#mv:(\w+)#", re.IGNORECASE)
ESCAPED_CN_PLACEHOLDER = re.compile(r"#param:EscapedCN#", re.IGNORECASE)


def expand_helpers(
    text: str,
    helpers: Optional[HelperValues],
    diagnostics: Optional[Diagnostics] = None,
) -> str:
    """Replace ``#helper:Name#`` placeholders.

    Raises:
        ConfigurationError: a placeholder names a helper the rule does not declare.
    """
    helpers = helpers if helpers is not None else HelperValues()

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        value = helpers.resolve(name)
        if diagnostics:
            diagnostics.debug("replaced-helper-value '%s' with '%s'", name, value)
        return value

    return HELPER_PLACEHOLDER.sub(_replace, text)


def expand_subject_values(
    text: str,
    subject: Subject,
    escaped_cn: Optional[str] = "",
    diagnostics: Optional[Diagnostics] = None,
) -> str:
    """Replace ``#param:EscapedCN#`` and ``#mv:Attribute#`` placeholders."""
    escaped = escaped_cn or ""
    text = ESCAPED_CN_PLACEHOLDER.sub(lambda _m: escaped, text)

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        attr = subject.get_value(name)
        value = attr.as_text() if attr.is_present else ""
        if diagnostics:
            diagnostics.debug("replaced '%s' with '%s'", name, value)
        return value

    return SUBJECT_PLACEHOLDER.sub(_replace, text)


def resolve_constant(
    literal: str,
    subject: Subject,
    helpers: Optional[HelperValues],
    escaped_cn_template: Optional[str] = None,
    escape: Optional[Callable[[str], Any]] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> str:
    """Run the full constant pipeline on ``literal``.

    ``escape`` is the host's name-component escaping function; it is only
    called when ``escaped_cn_template`` is set.
    """
    value = expand_helpers(literal, helpers, diagnostics)
    escaped_cn = ""
    if escaped_cn_template:
        component = expand_helpers(escaped_cn_template, helpers, diagnostics)
        component = expand_subject_values(component, subject, "", diagnostics)
        escaped_cn = str(escape(component)) if escape is not None else component
        if diagnostics:
            diagnostics.debug("escaped-cn '%s'", escaped_cn)
    elif diagnostics:
        diagnostics.debug("no-CN-to-escape")
    return expand_subject_values(value, subject, escaped_cn, diagnostics)
