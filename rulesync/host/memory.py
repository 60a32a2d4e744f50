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

"""In-memory reference host.

Implements the collaborator protocols with plain Python objects so the
engine can run without a synchronization platform: in tests, and in
``rulesync simulate``. Names are LDAP-style distinguished names with
RFC 4514 escaping and case-insensitive comparison.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Iterable, Iterator, Mapping, Optional
from uuid import UUID

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import escape_rdn, parse_dn

from rulesync.models.values import AttributeType, TypedValue

logger = logging.getLogger(__name__)

_ESCAPED = re.compile(r"\\([0-9A-Fa-f]{2}|.)")


# ── Names ──


def escape_dn_component(text: str) -> str:
    """Escape a value for use inside one RDN (RFC 4514, section 2.4)."""
    return escape_rdn(text) if text else text


def _unescape(value: str) -> str:
    return _ESCAPED.sub(lambda m: chr(int(m.group(1), 16)) if len(m.group(1)) == 2 else m.group(1), value)


def _parse(text: str) -> list[tuple[str, str, str]]:
    """(attribute type, unescaped value, separator) per component.

    Text that is not a valid DN is kept whole as one untyped component,
    so opaque names (a bare identifier, for example) still round-trip.
    """
    try:
        return [(t, _unescape(v), sep) for t, v, sep in parse_dn(text, strip=True)]
    except LDAPInvalidDnError:
        return [("", text, "")]


def split_dn(text: str) -> list[tuple[str, str]]:
    """Split a DN into (attribute type, unescaped value) pairs."""
    return [(t, v) for t, v, _ in _parse(text)]


class DistinguishedName:
    """A parsed name; equal when every component matches ignoring case."""

    def __init__(self, text: str) -> None:
        self.text = text.strip()
        self._parsed = _parse(self.text)
        self.components = [(t, v) for t, v, _ in self._parsed]

    def _key(self) -> tuple[tuple[str, str], ...]:
        return tuple((t.lower(), v.lower()) for t, v in self.components)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DistinguishedName):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"DistinguishedName({self.text!r})"

    @property
    def rdn(self) -> str:
        """Value of the leftmost component."""
        return self.components[0][1] if self.components else ""

    @property
    def parent(self) -> Optional["DistinguishedName"]:
        # the first RDN ends at the first ',' (multi-valued RDNs join with '+')
        for i, (_, _, sep) in enumerate(self._parsed):
            if sep == ",":
                rest = self._parsed[i + 1:]
                return DistinguishedName("".join(f"{t}={escape_dn_component(v)}{s}" for t, v, s in rest))
        return None


def typed(value: Any, data_type: Optional[AttributeType] = None) -> TypedValue:
    """Wrap a plain Python value (or list of values) as a TypedValue."""
    if isinstance(value, TypedValue):
        return value
    values = list(value) if isinstance(value, (list, tuple)) else [value]
    values = [v for v in values if v is not None]
    if data_type is None:
        data_type = _infer_type(values[0]) if values else AttributeType.UNDEFINED
    return TypedValue.of(data_type, *values)


def _infer_type(value: Any) -> AttributeType:
    if isinstance(value, bool):
        return AttributeType.BOOLEAN
    if isinstance(value, int):
        return AttributeType.INTEGER
    if isinstance(value, (bytes, bytearray)):
        return AttributeType.BINARY
    if isinstance(value, DistinguishedName):
        return AttributeType.REFERENCE
    return AttributeType.STRING


# ── Connectors ──


class MemoryConnector:
    """A connector object held in memory.

    New connectors are pending until ``commit()``; only committed
    connectors count towards their connection.
    """

    def __init__(
        self,
        connection: "MemoryConnection",
        object_type: str = "",
        extra_classes: Optional[list[str]] = None,
        name: Optional[DistinguishedName] = None,
    ) -> None:
        self.connection = connection
        self.object_type = object_type
        self.extra_classes = list(extra_classes or [])
        self.attributes: dict[str, TypedValue] = {}
        self._name = name
        self.state = "pending"

    @property
    def target_system(self) -> str:
        return self.connection.target_system

    def _key(self, attribute: str) -> str:
        for existing in self.attributes:
            if existing.lower() == attribute.lower():
                return existing
        return attribute

    def get_value(self, name: str) -> TypedValue:
        value = self.attributes.get(self._key(name))
        if value is not None:
            return value
        return TypedValue.absent(self.connection.attribute_type(name))

    def set_value(self, name: str, value: TypedValue) -> None:
        declared = self.connection.attribute_type(name)
        self.attributes[self._key(name)] = TypedValue(data_type=declared, values=value.values)

    def append_value(self, name: str, value: TypedValue) -> None:
        current = self.get_value(name)
        self.set_value(name, TypedValue(data_type=current.data_type, values=current.values + value.values))

    def name(self) -> Optional[DistinguishedName]:
        return self._name

    def set_name(self, name: DistinguishedName) -> None:
        if self._name is not None and self.state == "committed":
            logger.debug("renaming %s to %s", self._name, name)
        self._name = name

    def deprovision(self) -> None:
        self.state = "deprovisioned"
        self.connection._remove(self)

    def commit(self) -> None:
        if self.state != "pending":
            raise RuntimeError(f"connector {self._name} is already {self.state}")
        self.state = "committed"
        self.connection._add(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_system": self.target_system,
            "object_type": self.object_type,
            "name": str(self._name) if self._name is not None else None,
            "extra_classes": list(self.extra_classes),
            "state": self.state,
            "attributes": {k: v.text_values() for k, v in sorted(self.attributes.items())},
        }

    def __repr__(self) -> str:
        return f"MemoryConnector({self.target_system!r}, {str(self._name)!r}, {self.state})"


class MemoryConnection:
    """One subject's connectors in one target system."""

    def __init__(self, target_system: str, schema: Optional[Mapping[str, AttributeType]] = None) -> None:
        self._target_system = target_system
        self.schema = {k.lower(): AttributeType(v) for k, v in (schema or {}).items()}
        self._connectors: list[MemoryConnector] = []
        self.deprovisioned: list[MemoryConnector] = []

    @property
    def target_system(self) -> str:
        return self._target_system

    def attribute_type(self, name: str) -> AttributeType:
        """Declared type of a connector attribute; undeclared ones are strings."""
        return self.schema.get(name.lower(), AttributeType.STRING)

    def connector_count(self) -> int:
        return len(self._connectors)

    def connectors(self) -> Iterator[MemoryConnector]:
        return iter(list(self._connectors))

    def start_new_connector(self, object_type: str, extra_classes: list[str]) -> MemoryConnector:
        return MemoryConnector(self, object_type, extra_classes)

    def build_name(self, text: str) -> DistinguishedName:
        return DistinguishedName(text)

    def escape_name_component(self, text: str) -> str:
        return escape_dn_component(text)

    def add_existing(
        self,
        name: Optional[str] = None,
        attributes: Optional[Mapping[str, Any]] = None,
        object_type: str = "",
    ) -> MemoryConnector:
        """Seed an already-committed connector."""
        connector = MemoryConnector(
            self,
            object_type,
            name=DistinguishedName(name) if name is not None else None,
        )
        for attribute, value in (attributes or {}).items():
            connector.set_value(attribute, typed(value, self.schema.get(attribute.lower())))
        connector.commit()
        return connector

    def _add(self, connector: MemoryConnector) -> None:
        self._connectors.append(connector)

    def _remove(self, connector: MemoryConnector) -> None:
        if connector in self._connectors:
            self._connectors.remove(connector)
            self.deprovisioned.append(connector)


# ── Subjects ──


class MemorySubject:
    """A subject record with its connections, keyed by target system (any case)."""

    def __init__(
        self,
        object_type: str,
        attributes: Optional[Mapping[str, Any]] = None,
        unique_id: Optional[UUID] = None,
        schemas: Optional[Mapping[str, Mapping[str, AttributeType]]] = None,
    ) -> None:
        self._object_type = object_type
        self._id = unique_id or uuid.uuid4()
        self.attributes: dict[str, TypedValue] = {}
        self.schemas = {k.lower(): v for k, v in (schemas or {}).items()}
        self._connections: dict[str, MemoryConnection] = {}
        for name, value in (attributes or {}).items():
            self.set(name, value)

    @property
    def object_type(self) -> str:
        return self._object_type

    def set(self, name: str, value: Any) -> None:
        self.attributes[name.lower()] = typed(value)

    def has_attribute(self, name: str) -> bool:
        return name.lower() in self.attributes

    def get_value(self, name: str) -> TypedValue:
        return self.attributes.get(name.lower()) or TypedValue.absent()

    def unique_id(self) -> UUID:
        return self._id

    def connections_for(self, target_system: str) -> MemoryConnection:
        key = target_system.lower()
        connection = self._connections.get(key)
        if connection is None:
            connection = MemoryConnection(target_system, self.schemas.get(key))
            self._connections[key] = connection
        return connection

    def connected_systems(self) -> Iterable[MemoryConnection]:
        return [c for c in self._connections.values() if c.connector_count() > 0]

    def all_connectors(self) -> list[MemoryConnector]:
        return [connector for c in self._connections.values() for connector in c.connectors()]

    def deprovisioned_connectors(self) -> list[MemoryConnector]:
        return [connector for c in self._connections.values() for connector in c.deprovisioned]
