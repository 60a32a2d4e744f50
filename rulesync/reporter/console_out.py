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

"""Rich terminal output for rule sets and simulated passes."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rulesync.engine.dispatch import DispatchResult, Outcome
from rulesync.models.rules import RuleSet


def _make_console() -> Console:
    return Console(soft_wrap=True)


console = _make_console()

ICON_OK = "[bold green][OK][/bold green]"
ICON_WARN = "[bold yellow][WARN][/bold yellow]"
ICON_FAIL = "[bold red][FAIL][/bold red]"

OUTCOME_STYLES = {
    Outcome.CREATED: "green",
    Outcome.RENAMED: "cyan",
    Outcome.REPROVISIONED: "yellow",
    Outcome.DEPROVISIONED: "red",
    Outcome.EXTERNAL: "magenta",
}


def _panel(body: Any, title: str, border: str) -> Panel:
    return Panel(
        body,
        border_style=border,
        title=f"[bold {border}]{title}[/bold {border}]",
        title_align="left",
        expand=True,
        safe_box=True,
    )


def print_rule_set_summary(rule_set: RuleSet, source: str) -> None:
    """Header panel plus one row per enabled rule."""
    header = Text()
    header.append("RULESYNC RULE SET\n", style="bold cyan")
    header.append(f"  Source: {source}\n", style="white")
    header.append(f"  Rules:  {len(rule_set)} enabled\n", style="white")
    if rule_set.disable_all_rules:
        header.append("  Provisioning is disabled for every rule", style="bold yellow")
    else:
        header.append(f"  Subject types: {', '.join(rule_set.subject_types) or '-'}", style="dim")
    console.print(_panel(header, "Rule Set", "white"))

    if not len(rule_set):
        return

    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Rule")
    table.add_column("Action")
    table.add_column("Subject")
    table.add_column("Target system")
    table.add_column("Flows", justify="right")
    for position, rule in enumerate(rule_set.rules, start=1):
        table.add_row(
            str(position),
            rule.display_name,
            rule.action.value,
            rule.subject_type,
            rule.target_system or (f"external:{rule.external}" if rule.external else "-"),
            str(len(rule.initial_flows)),
        )
    console.print(table)


def print_dispatch_result(result: DispatchResult) -> None:
    """One row per action taken during the pass."""
    if not result.actions:
        console.print(_panel(f"  {ICON_OK}  No changes for this {result.subject_type}.", "Actions", "green"))
        return

    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("Outcome")
    table.add_column("Target system")
    table.add_column("Connector")
    table.add_column("Previous name", style="dim")
    table.add_column("Rule", style="dim")
    for action in result.actions:
        style = OUTCOME_STYLES.get(action.outcome, "white")
        table.add_row(
            f"[{style}]{action.outcome.value}[/{style}]",
            action.target_system or "-",
            action.connector or "-",
            action.previous_name or "",
            action.rule,
        )
    console.print(_panel(table, "Actions", "cyan"))
    if result.stopped:
        console.print(f"  {ICON_WARN}  Rule processing stopped after deprovisioning every connector.")


def print_connectors(connectors: list[dict[str, Any]], title: str = "Connectors") -> None:
    """Name, classes and attribute values of each connector."""
    if not connectors:
        return
    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("Target system")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Attributes")
    for connector in connectors:
        object_type = connector.get("object_type") or "-"
        if connector.get("extra_classes"):
            object_type += " +" + ",".join(connector["extra_classes"])
        attributes = "\n".join(
            f"{name}: {'; '.join(values)}" for name, values in connector.get("attributes", {}).items()
        )
        table.add_row(
            connector.get("target_system", "-"),
            connector.get("name") or "-",
            object_type,
            attributes or "-",
        )
    console.print(_panel(table, title, "white"))


def print_log(lines: list[str]) -> None:
    if not lines:
        return
    console.print(_panel("\n".join(lines), "Trace", "dim"))


def print_error(message: str) -> None:
    console.print(_panel(f"  {ICON_FAIL}  {message}", "Error", "red"))
