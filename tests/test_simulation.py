"""Tests for scenario loading and simulated passes."""

from pathlib import Path

import pytest

from rulesync.errors import RuleSetLoadError
from rulesync.models.values import AttributeType
from rulesync.policy.loader import load_rule_set
from rulesync.simulation import build_subject, load_scenario, simulate

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def rule_set():
    return load_rule_set(FIXTURES / "rules.yaml")


class TestScenario:
    def test_load(self):
        scenario = load_scenario(FIXTURES / "leaver.yaml")
        assert scenario.subject.object_type == "person"
        assert len(scenario.target_systems["AD"].connectors) == 1

    def test_invalid_scenario(self, tmp_path):
        path = tmp_path / "scenario.yaml"
        path.write_text("target_systems: {}\n")
        with pytest.raises(RuleSetLoadError, match="invalid scenario"):
            load_scenario(path)

    def test_build_subject_seeds_connectors(self):
        subject = build_subject(load_scenario(FIXTURES / "leaver.yaml"))
        connectors = subject.all_connectors()
        assert len(connectors) == 1
        assert connectors[0].get_value("sAMAccountName").value == "jdoe"

    def test_build_subject_applies_schema(self):
        subject = build_subject(load_scenario(FIXTURES / "new_hire.yaml"))
        assert subject.connections_for("AD").attribute_type("employeeGUID") == AttributeType.STRING


class TestSimulate:
    def test_new_hire(self, rule_set):
        result = simulate(rule_set, load_scenario(FIXTURES / "new_hire.yaml"))

        assert [a.outcome.value for a in result.dispatch.actions] == ["created", "external"]
        (connector,) = result.connectors
        assert connector["name"] == "CN=Doe\\, John,OU=Users,DC=example,DC=com"
        assert connector["extra_classes"] == ["mailRecipient"]
        attributes = connector["attributes"]
        assert attributes["sAMAccountName"] == ["jdoe"]
        assert attributes["userPrincipalName"] == ["JDoe@example.com"]
        assert attributes["description"] == ["John Doe"]
        assert attributes["employeeGUID"] == ["6f1c2a3b4d5e4f60817293a4b5c6d7e8"]
        assert len(attributes["unicodePwd"][0]) == 20

    def test_leaver(self, rule_set):
        result = simulate(rule_set, load_scenario(FIXTURES / "leaver.yaml"))

        assert [a.outcome.value for a in result.dispatch.actions] == ["deprovisioned"]
        assert result.connectors == []
        assert result.deprovisioned[0]["name"] == "CN=Doe\\, John,OU=Users,DC=example,DC=com"

    def test_log_is_indented_trace(self, rule_set):
        result = simulate(rule_set, load_scenario(FIXTURES / "leaver.yaml"))
        assert "enter-provision" in result.log
        assert any(line.startswith("  ") for line in result.log)
