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

"""Helper value provider.

Helper values are computed once at the start of a create / rename call
and thrown away when the call returns. Every ``#helper:Name#`` inside
that call sees the same value, so a scoped identifier can be used in
both the name and an attribute of the connector it creates.
"""

from __future__ import annotations

import secrets
import string
import uuid
from collections.abc import Iterable, Iterator, Mapping
from typing import Optional

from rulesync.engine.diagnostics import Diagnostics
from rulesync.errors import ConfigurationError
from rulesync.models.helpers import (
    ConstantHelper,
    HelperKind,
    HelperValue,
    RandomSecretHelper,
    ScopedIdentifierHelper,
)

# '#' is left out so a generated secret can never open a placeholder
SECRET_ALPHABET = string.ascii_letters + string.digits + "!$%&*+-=?@_"


class HelperValues(Mapping[str, str]):
    """Read-only, case-insensitive mapping of helper name to value."""

    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        self._values = {name.lower(): value for name, value in (values or {}).items()}
        self._names = {name.lower(): name for name in (values or {})}

    def __getitem__(self, name: str) -> str:
        return self._values[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._names.values())

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def resolve(self, name: str) -> str:
        """Return the named value or raise ConfigurationError."""
        try:
            return self[name]
        except KeyError:
            raise ConfigurationError(
                f"Helper value '{name}' is referenced but not declared on the rule",
                {"helper": name},
            ) from None


def _constant(helper: ConstantHelper) -> str:
    return helper.value


def _scoped_identifier(helper: ScopedIdentifierHelper) -> str:
    return str(uuid.uuid4())


def _random_secret(helper: RandomSecretHelper) -> str:
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(helper.length))


_GENERATORS = {
    HelperKind.CONSTANT: _constant,
    HelperKind.SCOPED_IDENTIFIER: _scoped_identifier,
    HelperKind.RANDOM_SECRET: _random_secret,
}


def generate_helper_values(
    declarations: Iterable[HelperValue],
    diagnostics: Optional[Diagnostics] = None,
) -> HelperValues:
    """Compute a fresh set of helper values for one rule invocation."""
    diagnostics = diagnostics or Diagnostics()
    values: dict[str, str] = {}
    for helper in declarations:
        value = _GENERATORS[helper.kind](helper)
        values[helper.name] = value
        if helper.kind == HelperKind.RANDOM_SECRET:
            diagnostics.debug("helper-value name: %s, value: <%d random characters>", helper.name, len(value))
        else:
            diagnostics.debug("helper-value name: %s, value: %s", helper.name, value)
    return HelperValues(values)
