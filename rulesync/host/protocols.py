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

"""Collaborator contracts the engine requires from the hosting platform.

The engine never stores, escapes or compares directory names itself.
Names are opaque objects produced by a TargetSystemConnection; the only
operations the engine performs on them are ``==`` and ``str()``.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Optional, Protocol, runtime_checkable
from uuid import UUID

from rulesync.models.values import TypedValue

Name = Any


@runtime_checkable
class ConnectorObject(Protocol):
    """The representation of a subject inside one target system."""

    @property
    def target_system(self) -> str: ...

    def get_value(self, name: str) -> TypedValue: ...

    def set_value(self, name: str, value: TypedValue) -> None: ...

    def append_value(self, name: str, value: TypedValue) -> None: ...

    def name(self) -> Optional[Name]: ...

    def set_name(self, name: Name) -> None: ...

    def deprovision(self) -> None: ...

    def commit(self) -> None: ...


@runtime_checkable
class TargetSystemConnection(Protocol):
    """The connectors a subject has in one target system."""

    @property
    def target_system(self) -> str: ...

    def connector_count(self) -> int: ...

    def connectors(self) -> Iterator[ConnectorObject]: ...

    def start_new_connector(self, object_type: str, extra_classes: list[str]) -> ConnectorObject: ...

    def build_name(self, text: str) -> Name: ...

    def escape_name_component(self, text: str) -> Name: ...


@runtime_checkable
class Subject(Protocol):
    """The canonical identity record a rule pass is evaluated against."""

    @property
    def object_type(self) -> str: ...

    def has_attribute(self, name: str) -> bool: ...

    def get_value(self, name: str) -> TypedValue: ...

    def unique_id(self) -> UUID: ...

    def connections_for(self, target_system: str) -> TargetSystemConnection: ...

    def connected_systems(self) -> Iterable[TargetSystemConnection]: ...


@runtime_checkable
class ExternalHandler(Protocol):
    """A rule action delegated to code outside the engine."""

    def provision(self, subject: Subject) -> None: ...

    def should_delete(self, connector: ConnectorObject, subject: Subject) -> bool: ...
