"""Tests for the Typer command line."""

import json
from pathlib import Path

from typer.testing import CliRunner

from rulesync import __version__
from rulesync.cli import app

FIXTURES = Path(__file__).parent / "fixtures"
runner = CliRunner()


class TestValidate:
    def test_valid_rules(self):
        result = runner.invoke(app, ["validate", str(FIXTURES / "rules.yaml")])
        assert result.exit_code == 0
        assert "ad-user" in result.output

    def test_json_summary(self):
        result = runner.invoke(app, ["validate", str(FIXTURES / "rules.yaml"), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [r["name"] for r in data["rules"]] == ["ad-user", "ad-leaver", "badge"]
        assert data["subject_types"] == ["person"]

    def test_invalid_rules(self):
        result = runner.invoke(app, ["validate", str(FIXTURES / "invalid_rules.yaml"), "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "RULE_SET_LOAD_ERROR"

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1


class TestSimulate:
    def test_new_hire_json(self):
        result = runner.invoke(
            app,
            ["simulate", str(FIXTURES / "rules.yaml"), str(FIXTURES / "new_hire.yaml"), "--json"],
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [a["outcome"] for a in data["dispatch"]["actions"]] == ["created", "external"]
        assert data["dispatch"]["acted_upon"] == ["AD"]

    def test_leaver_json(self):
        result = runner.invoke(
            app,
            ["simulate", str(FIXTURES / "rules.yaml"), str(FIXTURES / "leaver.yaml"), "--json"],
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [a["outcome"] for a in data["dispatch"]["actions"]] == ["deprovisioned"]
        assert len(data["deprovisioned"]) == 1

    def test_table_output(self):
        result = runner.invoke(
            app,
            ["simulate", str(FIXTURES / "rules.yaml"), str(FIXTURES / "new_hire.yaml")],
        )
        assert result.exit_code == 0
        assert "created" in result.output

    def test_output_file(self, tmp_path):
        out = tmp_path / "reports" / "leaver.json"
        result = runner.invoke(
            app,
            ["simulate", str(FIXTURES / "rules.yaml"), str(FIXTURES / "leaver.yaml"), "-q", "--output", str(out)],
        )
        assert result.exit_code == 0
        content = out.read_text(encoding="utf-8")
        assert content.endswith("\n")
        data = json.loads(content)
        assert [a["outcome"] for a in data["dispatch"]["actions"]] == ["deprovisioned"]

    def test_bad_scenario(self, tmp_path):
        scenario = tmp_path / "scenario.yaml"
        scenario.write_text("subject: [\n")
        result = runner.invoke(app, ["simulate", str(FIXTURES / "rules.yaml"), str(scenario), "--json"])
        assert result.exit_code == 1
        assert "invalid YAML" in json.loads(result.stdout)["message"]


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output
