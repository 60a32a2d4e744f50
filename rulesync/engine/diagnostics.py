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

"""Diagnostics sink handed to every engine call.

The engine core never reaches for a process-wide logger on its own: the
caller passes a Diagnostics instance (or gets a default one bound to the
``rulesync`` logger). ``scope()`` mirrors the enter/exit nesting of a
dispatch pass in the log output; ``record=True`` keeps events in memory
so tests and the simulator can inspect what happened.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

_INDENT = "  "


@dataclass(frozen=True)
class DiagnosticEvent:
    level: int
    message: str
    depth: int = 0


class Diagnostics:
    """Logging-backed diagnostics with optional in-memory recording."""

    def __init__(self, logger: Optional[logging.Logger] = None, record: bool = False) -> None:
        self.logger = logger or logging.getLogger("rulesync")
        self.record = record
        self.events: list[DiagnosticEvent] = []
        self._depth = 0

    def debug(self, message: str, *args: Any) -> None:
        self._emit(logging.DEBUG, message, args)

    def info(self, message: str, *args: Any) -> None:
        self._emit(logging.INFO, message, args)

    def warning(self, message: str, *args: Any) -> None:
        self._emit(logging.WARNING, message, args)

    def error(self, message: str, *args: Any) -> None:
        self._emit(logging.ERROR, message, args)

    @contextmanager
    def scope(self, name: str) -> Iterator[None]:
        """Log ``enter-<name>``/``exit-<name>`` and indent everything between."""
        self.debug("enter-%s", name)
        self._depth += 1
        try:
            yield
        except Exception as e:
            self.error("error in %s: %s", name, e)
            raise
        finally:
            self._depth -= 1
            self.debug("exit-%s", name)

    def messages(self, min_level: int = logging.NOTSET) -> list[str]:
        """Recorded messages at or above ``min_level``."""
        return [e.message for e in self.events if e.level >= min_level]

    def _emit(self, level: int, message: str, args: tuple[Any, ...]) -> None:
        enabled = self.logger.isEnabledFor(level)
        if not enabled and not self.record:
            return
        text = message % args if args else message
        if enabled:
            self.logger.log(level, "%s%s", _INDENT * self._depth, text)
        if self.record:
            self.events.append(DiagnosticEvent(level=level, message=text, depth=self._depth))
