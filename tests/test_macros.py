"""Tests for placeholder expansion."""

import pytest

from rulesync.engine.helper_values import HelperValues
from rulesync.engine.macros import expand_helpers, expand_subject_values, resolve_constant
from rulesync.errors import ConfigurationError
from rulesync.host.memory import MemorySubject, escape_dn_component


class TestResolveConstant:
    """Helper, subject and escaped-name placeholders in one literal."""

    def test_subject_and_helper_values(self):
        subject = MemorySubject("person", {"foo": "X"})
        assert resolve_constant("#mv:foo#-#helper:bar#", subject, HelperValues({"bar": "Y"})) == "X-Y"

    def test_absent_subject_value_is_blank(self):
        subject = MemorySubject("person")
        assert resolve_constant("#mv:foo#-#helper:bar#", subject, HelperValues({"bar": "Y"})) == "-Y"

    def test_placeholders_ignore_case(self):
        subject = MemorySubject("person", {"foo": "X"})
        assert resolve_constant("#MV:Foo#/#Helper:BAR#", subject, HelperValues({"bar": "Y"})) == "X/Y"

    def test_unknown_helper_raises(self, person: MemorySubject):
        with pytest.raises(ConfigurationError, match="missing"):
            resolve_constant("#helper:missing#", person, HelperValues())

    def test_escaped_component(self, person: MemorySubject):
        value = resolve_constant(
            "CN=#param:EscapedCN#,OU=Users",
            person,
            HelperValues(),
            escaped_cn_template="#mv:displayName#",
            escape=escape_dn_component,
        )
        assert value == "CN=Doe\\, John,OU=Users"

    def test_escaped_component_template_sees_helpers(self, person: MemorySubject):
        value = resolve_constant(
            "CN=#param:EscapedCN#",
            person,
            HelperValues({"suffix": "a+b"}),
            escaped_cn_template="#mv:accountName#-#helper:suffix#",
            escape=escape_dn_component,
        )
        assert value == "CN=jdoe-a\\+b"

    def test_escaped_component_is_blank_without_template(self, person: MemorySubject):
        assert resolve_constant("CN=#param:EscapedCN#", person, HelperValues()) == "CN="

    def test_literal_without_placeholders_is_unchanged(self, person: MemorySubject):
        assert resolve_constant("OU=Users,DC=example", person, None) == "OU=Users,DC=example"


class TestExpansionSteps:
    def test_helpers_only(self, person: MemorySubject):
        assert expand_helpers("#helper:a#:#mv:accountName#", HelperValues({"A": "1"})) == "1:#mv:accountName#"

    def test_subject_values_use_text_form(self):
        subject = MemorySubject("person", {"enabled": True, "count": 7})
        assert expand_subject_values("#mv:enabled#/#mv:count#", subject) == "True/7"

    def test_diagnostics_record_replacements(self, person: MemorySubject, diagnostics):
        expand_subject_values("#mv:accountName#", person, diagnostics=diagnostics)
        assert any("jdoe" in m for m in diagnostics.messages())
