"""Tests for the type-coercion matrix."""

import pytest

from rulesync.engine.coercion import MATRIX, StringOptions, convert
from rulesync.errors import ConversionError
from rulesync.models.values import AttributeType as T


class TestSupportedConversions:
    def test_integer_to_string(self):
        assert convert(42, T.INTEGER, T.STRING) == "42"

    def test_boolean_to_integer(self):
        assert convert(True, T.BOOLEAN, T.INTEGER) == 1
        assert convert(False, T.BOOLEAN, T.INTEGER) == 0

    def test_string_to_integer(self):
        assert convert(" 17 ", T.STRING, T.INTEGER) == 17

    def test_string_to_integer_rejects_text(self):
        with pytest.raises(ConversionError):
            convert("abc", T.STRING, T.INTEGER)

    @pytest.mark.parametrize("text", ["1_000", "١٢", "1.5", "", "+", "9223372036854775808"])
    def test_string_to_integer_is_strict(self, text):
        with pytest.raises(ConversionError):
            convert(text, T.STRING, T.INTEGER)

    def test_string_to_integer_accepts_sign(self):
        assert convert("-42", T.STRING, T.INTEGER) == -42
        assert convert("+7", T.STRING, T.INTEGER) == 7

    @pytest.mark.parametrize(
        "text,expected",
        [("true", True), ("TRUE", True), ("1", True), ("False", False), ("0", False)],
    )
    def test_string_to_boolean(self, text, expected):
        assert convert(text, T.STRING, T.BOOLEAN) is expected

    def test_string_to_boolean_rejects_other_text(self):
        with pytest.raises(ConversionError):
            convert("yes", T.STRING, T.BOOLEAN)

    def test_string_to_binary_is_utf8(self):
        assert convert("zoë", T.STRING, T.BINARY) == "zoë".encode("utf-8")

    def test_binary_to_string_is_base64(self):
        assert convert(b"\x00\x01", T.BINARY, T.STRING) == "AAE="

    def test_integer_to_boolean(self):
        assert convert(1, T.INTEGER, T.BOOLEAN) is True
        assert convert(0, T.INTEGER, T.BOOLEAN) is False
        with pytest.raises(ConversionError):
            convert(2, T.INTEGER, T.BOOLEAN)

    def test_boolean_to_string(self):
        assert convert(True, T.BOOLEAN, T.STRING) == "True"
        assert convert(False, T.BOOLEAN, T.STRING, StringOptions(lowercase=True)) == "false"

    def test_reference_to_reference(self):
        marker = object()
        assert convert(marker, T.REFERENCE, T.REFERENCE) is marker


class TestRejectedConversions:
    @pytest.mark.parametrize(
        "source,target",
        [
            (T.STRING, T.REFERENCE),
            (T.INTEGER, T.BINARY),
            (T.BINARY, T.INTEGER),
            (T.BINARY, T.BOOLEAN),
            (T.BOOLEAN, T.BINARY),
            (T.REFERENCE, T.STRING),
        ],
    )
    def test_unsupported_pair_names_both_types(self, source, target):
        with pytest.raises(ConversionError) as info:
            convert("x", source, target)
        assert source.value in str(info.value)
        assert target.value in str(info.value)
        assert info.value.source_type == source
        assert info.value.target_type == target

    def test_boolean_cannot_become_a_name(self):
        with pytest.raises(ConversionError, match="name"):
            convert(True, T.BOOLEAN, T.STRING, to_name=True)

    def test_matrix_has_no_reference_fanout(self):
        assert [pair for pair in MATRIX if T.REFERENCE in pair] == [(T.REFERENCE, T.REFERENCE)]


class TestStringOptions:
    def test_normalizations_then_prefix(self):
        options = StringOptions(lowercase=True, trim=True, prefix="u-")
        assert convert("  JDoe ", T.STRING, T.STRING, options) == "u-jdoe"

    def test_uppercase(self):
        assert convert("jdoe", T.STRING, T.STRING, StringOptions(uppercase=True)) == "JDOE"

    def test_integer_to_string_ignores_options(self):
        assert convert(7, T.INTEGER, T.STRING, StringOptions(prefix="n-")) == "7"
