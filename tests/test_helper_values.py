"""Tests for per-invocation helper values."""

import uuid

from rulesync.engine.helper_values import SECRET_ALPHABET, HelperValues, generate_helper_values
from rulesync.models.helpers import ConstantHelper, RandomSecretHelper, ScopedIdentifierHelper


class TestGenerateHelperValues:
    def test_constant(self):
        values = generate_helper_values([ConstantHelper(name="ou", value="OU=Staff")])
        assert values["ou"] == "OU=Staff"

    def test_scoped_identifier_is_a_uuid(self):
        values = generate_helper_values([ScopedIdentifierHelper(name="id")])
        assert str(uuid.UUID(values["id"])) == values["id"]

    def test_scoped_identifier_is_fresh_per_call(self):
        declarations = [ScopedIdentifierHelper(name="id")]
        assert generate_helper_values(declarations)["id"] != generate_helper_values(declarations)["id"]

    def test_random_secret_length_and_alphabet(self):
        values = generate_helper_values([RandomSecretHelper(name="pw", length=24)])
        secret = values["pw"]
        assert len(secret) == 24
        assert "#" not in secret
        assert all(ch in SECRET_ALPHABET for ch in secret)

    def test_random_secret_default_length(self):
        assert len(generate_helper_values([RandomSecretHelper(name="pw")])["pw"]) == 16

    def test_secret_is_not_logged(self, diagnostics):
        values = generate_helper_values([RandomSecretHelper(name="pw")], diagnostics)
        assert not any(values["pw"] in m for m in diagnostics.messages())

    def test_no_declarations(self):
        assert len(generate_helper_values([])) == 0


class TestHelperValues:
    def test_lookup_ignores_case(self):
        values = HelperValues({"TempPassword": "s3cret"})
        assert values["temppassword"] == "s3cret"
        assert "TEMPPASSWORD" in values

    def test_iteration_keeps_declared_names(self):
        assert list(HelperValues({"TempPassword": "x", "Id": "y"})) == ["TempPassword", "Id"]
