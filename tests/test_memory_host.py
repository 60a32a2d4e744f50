"""Tests for the in-memory reference host."""

import pytest

from rulesync.host.memory import (
    DistinguishedName,
    MemorySubject,
    escape_dn_component,
    split_dn,
    typed,
)
from rulesync.host.protocols import ConnectorObject, Subject, TargetSystemConnection
from rulesync.models.values import AttributeType, TypedValue


class TestDistinguishedName:
    def test_escape_special_characters(self):
        assert escape_dn_component("Doe, John") == "Doe\\, John"
        assert escape_dn_component("a+b=c") == "a\\+b\\=c"
        assert escape_dn_component(" lead") == "\\ lead"
        assert escape_dn_component("#hash") == "\\#hash"

    def test_split_honours_escapes(self):
        assert split_dn("CN=Doe\\, John,OU=Users") == [("CN", "Doe, John"), ("OU", "Users")]

    def test_split_hex_escape(self):
        assert split_dn("CN=a\\2Cb") == [("CN", "a,b")]

    def test_equality_ignores_case_and_spacing(self):
        assert DistinguishedName("CN=JDoe, OU=Users") == DistinguishedName("cn=jdoe,ou=users")
        assert DistinguishedName("CN=jdoe,OU=Users") != DistinguishedName("CN=jdoe,OU=Staff")

    def test_hash_matches_equality(self):
        assert len({DistinguishedName("CN=a,DC=x"), DistinguishedName("cn=A,dc=X")}) == 1

    def test_rdn_and_parent(self):
        name = DistinguishedName("CN=Doe\\, John,OU=Users,DC=example")
        assert name.rdn == "Doe, John"
        assert name.parent == DistinguishedName("OU=Users,DC=example")
        assert DistinguishedName("CN=top").parent is None

    def test_opaque_name(self):
        assert str(DistinguishedName("4711")) == "4711"
        assert DistinguishedName("4711").rdn == "4711"

    def test_multi_valued_rdn_parent(self):
        name = DistinguishedName("CN=jdoe+UID=42,OU=Users,DC=example")
        assert name.rdn == "jdoe"
        assert name.parent == DistinguishedName("OU=Users,DC=example")

    def test_text_that_is_not_a_dn_is_opaque(self):
        assert split_dn("not a dn") == [("", "not a dn")]
        assert DistinguishedName("Not A DN") == DistinguishedName("not a dn")

    def test_escape_empty_component(self):
        assert escape_dn_component("") == ""


class TestTyped:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("x", AttributeType.STRING),
            (7, AttributeType.INTEGER),
            (True, AttributeType.BOOLEAN),
            (b"\x01", AttributeType.BINARY),
            (DistinguishedName("CN=x"), AttributeType.REFERENCE),
        ],
    )
    def test_inference(self, value, expected):
        assert typed(value).data_type == expected

    def test_list_is_multivalued(self):
        value = typed(["a", "b"])
        assert value.is_multivalued
        assert value.values == ("a", "b")

    def test_none_is_absent(self):
        assert not typed(None).is_present


class TestMemoryObjects:
    def test_protocols_are_satisfied(self, person):
        connection = person.connections_for("AD")
        connector = connection.start_new_connector("user", [])
        assert isinstance(person, Subject)
        assert isinstance(connection, TargetSystemConnection)
        assert isinstance(connector, ConnectorObject)

    def test_pending_connector_is_not_counted(self, person):
        connection = person.connections_for("AD")
        connector = connection.start_new_connector("user", [])
        assert connection.connector_count() == 0
        connector.commit()
        assert connection.connector_count() == 1
        with pytest.raises(RuntimeError):
            connector.commit()

    def test_deprovision_removes_connector(self, person):
        connection = person.connections_for("AD")
        connector = connection.add_existing("CN=jdoe")
        connector.deprovision()
        assert connection.connector_count() == 0
        assert person.deprovisioned_connectors() == [connector]

    def test_connections_ignore_case(self, person):
        assert person.connections_for("AD") is person.connections_for("ad")

    def test_connected_systems_only_lists_connected(self, person):
        person.connections_for("HR")
        person.connections_for("AD").add_existing("CN=jdoe")
        assert [c.target_system for c in person.connected_systems()] == ["AD"]

    def test_connector_attribute_types_follow_schema(self):
        subject = MemorySubject("person", schemas={"AD": {"uidNumber": AttributeType.INTEGER}})
        connector = subject.connections_for("AD").start_new_connector("user", [])
        assert connector.get_value("uidNumber").data_type == AttributeType.INTEGER
        assert connector.get_value("anythingElse").data_type == AttributeType.STRING

    def test_append_value(self, person):
        connector = person.connections_for("AD").start_new_connector("user", [])
        connector.append_value("proxyAddresses", TypedValue.string("a"))
        connector.append_value("PROXYADDRESSES", TypedValue.string("b"))
        assert connector.get_value("proxyAddresses").values == ("a", "b")

    def test_subject_lookup_ignores_case(self, person):
        assert person.get_value("ACCOUNTNAME").value == "jdoe"
        assert person.has_attribute("accountname")
        assert not person.get_value("mail").is_present
