"""Tests for attribute flow generation."""

import uuid

import pytest

from rulesync.engine.flows import format_subject_id, generate, translate_replacement
from rulesync.engine.helper_values import HelperValues
from rulesync.errors import ConfigurationError, ConversionError
from rulesync.host.memory import MemorySubject
from rulesync.models.flows import (
    AttributeSource,
    ConcatenateFlow,
    ConstantFlow,
    ConstantSource,
    CopyAttributeFlow,
    IdentifierFlow,
    MultivaluedConstantFlow,
    RegexReplaceSource,
)
from rulesync.models.rules import Rule
from rulesync.models.values import AttributeType

SCHEMA = {
    "AD": {
        "objectGUID": AttributeType.BINARY,
        "employeeNumber": AttributeType.INTEGER,
        "enabled": AttributeType.BOOLEAN,
    }
}


@pytest.fixture
def subject():
    return MemorySubject(
        "person",
        {
            "accountName": "jdoe",
            "displayName": "Doe, John",
            "givenName": "John",
            "sn": "Doe",
            "employeeID": "00042",
            "active": True,
            "count": 42,
        },
        unique_id=uuid.UUID("6f1c2a3b-4d5e-4f60-8172-93a4b5c6d7e8"),
        schemas=SCHEMA,
    )


@pytest.fixture
def rule():
    return Rule(action="provision", subject_type="person", target_system="AD", target_object_type="user")


@pytest.fixture
def connection(subject):
    return subject.connections_for("AD")


@pytest.fixture
def connector(connection):
    return connection.start_new_connector("user", [])


def run(flow, connection, connector, subject, rule, helpers=None, diagnostics=None):
    generate(flow, connection, connector, subject, rule, helpers, diagnostics)
    return connector


class TestIdentifierFlow:
    def test_string_target(self, connection, connector, subject, rule):
        run(IdentifierFlow(target="uid"), connection, connector, subject, rule)
        value = connector.get_value("uid").value
        assert str(uuid.UUID(value)) == value

    def test_binary_target(self, connection, connector, subject, rule):
        run(IdentifierFlow(target="objectGUID"), connection, connector, subject, rule)
        assert len(connector.get_value("objectGUID").value) == 16

    def test_name_target(self, connection, connector, subject, rule):
        run(IdentifierFlow(target="[dn]"), connection, connector, subject, rule)
        assert uuid.UUID(str(connector.name()))


class TestCopyAttributeFlow:
    def test_plain_copy(self, connection, connector, subject, rule):
        run(CopyAttributeFlow(source="accountName", target="sAMAccountName"), connection, connector, subject, rule)
        assert connector.get_value("sAMAccountName").value == "jdoe"

    def test_normalizations(self, connection, connector, subject, rule):
        flow = CopyAttributeFlow(source="accountName", target="uid", uppercase=True, prefix="x_")
        run(flow, connection, connector, subject, rule)
        assert connector.get_value("uid").value == "x_JDOE"

    def test_string_to_integer_target(self, connection, connector, subject, rule):
        run(CopyAttributeFlow(source="employeeID", target="employeeNumber"), connection, connector, subject, rule)
        value = connector.get_value("employeeNumber")
        assert value.data_type == AttributeType.INTEGER
        assert value.value == 42

    def test_integer_to_string_target(self, connection, connector, subject, rule):
        run(CopyAttributeFlow(source="count", target="description"), connection, connector, subject, rule)
        assert connector.get_value("description").value == "42"

    def test_missing_source_is_a_no_op(self, connection, connector, subject, rule):
        run(CopyAttributeFlow(source="mail", target="mail"), connection, connector, subject, rule)
        assert not connector.get_value("mail").is_present

    def test_copy_to_name(self, connection, connector, subject, rule):
        run(CopyAttributeFlow(source="accountName", target="[DN]", prefix="CN="), connection, connector, subject, rule)
        assert str(connector.name()) == "CN=jdoe"

    def test_boolean_cannot_become_name(self, connection, connector, subject, rule):
        with pytest.raises(ConversionError):
            run(CopyAttributeFlow(source="active", target="[DN]"), connection, connector, subject, rule)

    def test_boolean_to_boolean(self, connection, connector, subject, rule):
        run(CopyAttributeFlow(source="active", target="enabled"), connection, connector, subject, rule)
        assert connector.get_value("enabled").value is True

    def test_subject_id_default_format(self, connection, connector, subject, rule):
        run(CopyAttributeFlow(source="[MVObjectID]", target="uid"), connection, connector, subject, rule)
        assert connector.get_value("uid").value == "6f1c2a3b-4d5e-4f60-8172-93a4b5c6d7e8"

    def test_subject_id_format_n(self, connection, connector, subject, rule):
        flow = CopyAttributeFlow(source="[mvobjectid]", target="uid", format="N")
        run(flow, connection, connector, subject, rule)
        assert connector.get_value("uid").value == "6f1c2a3b4d5e4f60817293a4b5c6d7e8"

    def test_subject_id_to_binary(self, connection, connector, subject, rule):
        run(CopyAttributeFlow(source="[MVObjectID]", target="objectGUID"), connection, connector, subject, rule)
        assert connector.get_value("objectGUID").value == subject.unique_id().bytes_le

    def test_subject_id_to_integer_fails(self, connection, connector, subject, rule):
        with pytest.raises(ConversionError):
            run(CopyAttributeFlow(source="[MVObjectID]", target="employeeNumber"), connection, connector, subject, rule)

    def test_format_subject_id(self):
        value = uuid.UUID("6f1c2a3b-4d5e-4f60-8172-93a4b5c6d7e8")
        assert format_subject_id(value, "B") == "{6f1c2a3b-4d5e-4f60-8172-93a4b5c6d7e8}"
        assert format_subject_id(value, "p") == "(6f1c2a3b-4d5e-4f60-8172-93a4b5c6d7e8)"
        with pytest.raises(ConfigurationError):
            format_subject_id(value, "Q")


class TestConstantFlows:
    def test_constant_with_escaped_name(self, connection, connector, subject, rule):
        flow = ConstantFlow(
            target="[DN]",
            constant="CN=#param:EscapedCN#,OU=Users,DC=example,DC=com",
            escaped_cn="#mv:displayName#",
        )
        run(flow, connection, connector, subject, rule)
        assert str(connector.name()) == "CN=Doe\\, John,OU=Users,DC=example,DC=com"

    def test_constant_with_helper(self, connection, connector, subject, rule):
        flow = ConstantFlow(target="info", constant="#mv:givenName#:#helper:tag#")
        run(flow, connection, connector, subject, rule, HelperValues({"tag": "new"}))
        assert connector.get_value("info").value == "John:new"

    def test_multivalued_constant_appends_in_order(self, connection, connector, subject, rule):
        flow = MultivaluedConstantFlow(target="proxyAddresses", constants=("SMTP:#mv:accountName#@example.com", "smtp:#mv:sn#@example.com"))
        run(flow, connection, connector, subject, rule)
        assert connector.get_value("proxyAddresses").values == ("SMTP:jdoe@example.com", "smtp:Doe@example.com")

    def test_multivalued_constant_on_name_fails(self, connection, connector, subject, rule):
        with pytest.raises(ConfigurationError):
            run(MultivaluedConstantFlow(target="[DN]", constants=("a",)), connection, connector, subject, rule)

    def test_multivalued_constant_without_constants_fails(self, connection, connector, subject, rule):
        with pytest.raises(ConfigurationError):
            run(MultivaluedConstantFlow(target="proxyAddresses"), connection, connector, subject, rule)


class TestConcatenateFlow:
    def test_parts_in_order(self, connection, connector, subject, rule):
        flow = ConcatenateFlow(
            target="displayName",
            source_expressions=(
                AttributeSource(source="givenName"),
                ConstantSource(source=" "),
                AttributeSource(source="sn"),
            ),
        )
        run(flow, connection, connector, subject, rule)
        assert connector.get_value("displayName").value == "John Doe"

    def test_missing_attribute_contributes_nothing(self, connection, connector, subject, rule, diagnostics):
        flow = ConcatenateFlow(
            target="cn",
            source_expressions=(AttributeSource(source="middleName"), AttributeSource(source="sn")),
        )
        run(flow, connection, connector, subject, rule, diagnostics=diagnostics)
        assert connector.get_value("cn").value == "Doe"
        assert any("middleName" in m for m in diagnostics.messages())

    def test_regex_replace_group_references(self, connection, connector, subject, rule):
        flow = ConcatenateFlow(
            target="sortName",
            source_expressions=(
                RegexReplaceSource(source="displayName", pattern=r"^(\w+), (?P<first>\w+)$", replacement="${first} $1"),
            ),
        )
        run(flow, connection, connector, subject, rule)
        assert connector.get_value("sortName").value == "John Doe"

    def test_nothing_produced_writes_nothing(self, connection, connector, subject, rule):
        flow = ConcatenateFlow(target="cn", source_expressions=(AttributeSource(source="middleName"),))
        run(flow, connection, connector, subject, rule)
        assert not connector.get_value("cn").is_present

    def test_translate_replacement(self):
        assert translate_replacement("$2, $1") == "\\g<2>, \\g<1>"
        assert translate_replacement("${name}-$$") == "\\g<name>-$"
        assert translate_replacement("a\\b") == "a\\\\b"
