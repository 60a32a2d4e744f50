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

"""Rulesync CLI: Typer entry point.

Commands:
- rulesync validate <rules>              Load a rule set and summarize it
- rulesync simulate <rules> <scenario>   Run one pass against an in-memory host
- rulesync version
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from rulesync import __version__
from rulesync.errors import RulesyncError, RuleSetLoadError
from rulesync.policy.loader import load_rule_set
from rulesync.reporter.console_out import (
    console,
    print_connectors,
    print_dispatch_result,
    print_error,
    print_log,
    print_rule_set_summary,
)
from rulesync.reporter.json_out import rule_set_summary, to_canonical_json, write_json
from rulesync.simulation import load_scenario, simulate as run_simulation

app = typer.Typer(
    name="rulesync",
    help=(
        "Rulesync: rule-driven identity provisioning. "
        "Run 'rulesync <command> --help' for flags."
    ),
    add_completion=False,
)

logger = logging.getLogger("rulesync")


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@app.command()
def validate(
    rules: Path = typer.Argument(..., help="Rule set YAML file"),
    output_json: bool = typer.Option(False, "--json", help="Output the summary as JSON"),
) -> None:
    """Load and validate a rule set, then print its rules."""
    _configure_logging(verbose=False, quiet=output_json)
    try:
        rule_set = load_rule_set(rules)
    except RuleSetLoadError as e:
        if output_json:
            print(to_canonical_json({"error": e.code, "message": e.message}), end="")
        else:
            print_error(e.message)
        raise typer.Exit(code=1)

    if output_json:
        print(to_canonical_json(rule_set_summary(rule_set, str(rules))), end="")
        return
    print_rule_set_summary(rule_set, str(rules))


@app.command()
def simulate(
    rules: Path = typer.Argument(..., help="Rule set YAML file"),
    scenario: Path = typer.Argument(..., help="Scenario YAML file (subject + existing connectors)"),
    output_json: bool = typer.Option(False, "--json", help="Output raw JSON to stdout"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show the decision trace"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress all output except errors"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write the result JSON to this file"),
) -> None:
    """Run one provisioning pass for the scenario's subject.

    Nothing leaves the process: the target systems are simulated in
    memory and external handlers only record that they were called.
    """
    _configure_logging(verbose=verbose, quiet=quiet or output_json)
    try:
        rule_set = load_rule_set(rules)
        loaded = load_scenario(scenario)
        result = run_simulation(rule_set, loaded, record_level=logging.DEBUG if verbose else logging.INFO)
    except RulesyncError as e:
        logger.debug("simulation failed", exc_info=True)
        if output_json:
            print(to_canonical_json({"error": e.code, "message": e.message}), end="")
        else:
            print_error(e.message)
        raise typer.Exit(code=1)

    if output:
        out_path = output.resolve()
        write_json(result, out_path)
        if not (quiet or output_json):
            console.print(f"[green]Result written to {out_path}[/green]")

    if output_json:
        print(to_canonical_json(result), end="")
        return
    if quiet:
        return

    print_dispatch_result(result.dispatch)
    print_connectors(result.connectors)
    print_connectors(result.deprovisioned, title="Deprovisioned")
    if verbose:
        print_log(result.log)


@app.command()
def version() -> None:
    """Show the Rulesync version."""
    console.print(f"Rulesync v{__version__}")


if __name__ == "__main__":
    app()
