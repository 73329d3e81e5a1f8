# ==============================================
# Tests for Type Codec Module
# ==============================================
#
# Cell layout follows HBase's Bytes.toBytes: fixed-width
# big-endian numbers, 0xFF/0x00 booleans, charset text.
#
# ==============================================

import struct
from datetime import date, datetime, time
from decimal import Decimal

import pytest

from hbase_connector.codec import ArrayType, FieldSpec, FieldType, RecordSchema, TypeCodec, parse_type
from hbase_connector.errors import CodecError, UnsupportedTypeError


@pytest.fixture
def codec():
    return TypeCodec()


class TestParseType:
    def test_scalar_names(self):
        """Type names and aliases resolve to FieldType."""
        assert parse_type("int") == FieldType.INT
        assert parse_type("BIGINT") == FieldType.BIGINT
        assert parse_type("long") == FieldType.BIGINT
        assert parse_type("varchar") == FieldType.STRING

    def test_array_names(self):
        assert parse_type("array<string>") == ArrayType(FieldType.STRING)
        assert parse_type("array< int >") == ArrayType(FieldType.INT)
        assert str(parse_type("array<double>")) == "array<double>"

    def test_unknown_type_rejected(self):
        with pytest.raises(UnsupportedTypeError):
            parse_type("map<string,int>")
        with pytest.raises(UnsupportedTypeError):
            parse_type("uuid")

    def test_array_of_bytes_rejected(self):
        with pytest.raises(UnsupportedTypeError):
            parse_type("array<bytes>")


class TestRecordSchema:
    def test_from_dict_keeps_order(self):
        schema = RecordSchema.from_dict({"b": "int", "a": "array<string>", "c": "str"})
        assert schema.field_names == ["b", "a", "c"]
        assert schema.type_of("a") == ArrayType(FieldType.STRING)
        assert schema.to_dict() == {"b": "int", "a": "array<string>", "c": "string"}
        assert "b" in schema and "z" not in schema
        assert len(schema) == 3

    def test_duplicate_field_rejected(self):
        with pytest.raises(ValueError):
            RecordSchema([FieldSpec("a", FieldType.INT), FieldSpec("a", FieldType.STRING)])


class TestScalarEncoding:
    def test_integers_are_big_endian_fixed_width(self, codec):
        """Integer classes use their HBase Bytes widths."""
        assert codec.encode(1, "int") == b"\x00\x00\x00\x01"
        assert codec.encode(-1, "tinyint") == b"\xff"
        assert codec.encode(258, "smallint") == b"\x01\x02"
        assert codec.encode(9_000_000_000, "bigint") == struct.pack(">q", 9_000_000_000)

    def test_boolean(self, codec):
        assert codec.encode(True, "boolean") == b"\xff"
        assert codec.encode(False, "boolean") == b"\x00"
        assert codec.decode(b"\x01", "boolean") is True
        assert codec.decode(b"\x00", "boolean") is False

    def test_string_uses_charset(self, codec):
        assert codec.encode("héllo", "string") == "héllo".encode("utf-8")
        assert TypeCodec("latin-1").encode("héllo", "string") == "héllo".encode("latin-1")

    def test_float_is_32_bit(self, codec):
        assert codec.encode(1.5, "float") == struct.pack(">f", 1.5)
        assert codec.decode(struct.pack(">f", 1.5), "float") == 1.5

    def test_double(self, codec):
        data = codec.encode(3.14159, "double")
        assert len(data) == 8
        assert codec.decode(data, "double") == 3.14159

    def test_text_encoded_types(self, codec):
        """decimal, date, time and timestamp are stored as canonical text."""
        assert codec.encode(Decimal("12.50"), "decimal") == b"12.50"
        assert codec.encode(date(2024, 2, 29), "date") == b"2024-02-29"
        assert codec.encode(time(13, 45, 1), "time") == b"13:45:01"
        assert codec.encode(datetime(2024, 2, 29, 13, 45), "timestamp") == b"2024-02-29T13:45:00"

    def test_text_encoded_types_decode(self, codec):
        assert codec.decode(b"12.50", "decimal") == Decimal("12.50")
        assert codec.decode(b"2024-02-29", "date") == date(2024, 2, 29)
        assert codec.decode(b"2024-02-29T13:45:01.250000", "timestamp") == datetime(2024, 2, 29, 13, 45, 1, 250000)

    def test_bytes_pass_through(self, codec):
        assert codec.encode(b"\x00\x01", "bytes") == b"\x00\x01"
        assert codec.decode(b"\x00\x01", "bytes") == b"\x00\x01"

    def test_empty_cell(self, codec):
        """Empty cell is "" for string, b"" for bytes, None for the rest."""
        assert codec.decode(b"", "string") == ""
        assert codec.decode(b"", "bytes") == b""
        assert codec.decode(b"", "int") is None
        assert codec.decode(b"", "date") is None


class TestScalarErrors:
    def test_wrong_python_type(self, codec):
        with pytest.raises(UnsupportedTypeError):
            codec.encode("12", "int")
        with pytest.raises(UnsupportedTypeError):
            codec.encode(1, "string")
        with pytest.raises(UnsupportedTypeError):
            codec.encode(datetime(2024, 1, 1), "date")

    def test_bool_is_not_an_integer(self, codec):
        with pytest.raises(UnsupportedTypeError):
            codec.encode(True, "int")

    def test_out_of_range(self, codec):
        with pytest.raises(UnsupportedTypeError):
            codec.encode(128, "tinyint")
        with pytest.raises(UnsupportedTypeError):
            codec.encode(2 ** 31, "int")

    def test_null_rejected(self, codec):
        with pytest.raises(UnsupportedTypeError):
            codec.encode(None, "string")

    def test_wrong_width_is_codec_error(self, codec):
        with pytest.raises(CodecError):
            codec.decode(b"\x00\x01", "int")
        with pytest.raises(CodecError):
            codec.decode(b"\x00\x01", "boolean")

    def test_unparseable_text_is_codec_error(self, codec):
        with pytest.raises(CodecError):
            codec.decode(b"not-a-date", "date")
        with pytest.raises(CodecError):
            codec.decode_text("abc", "int")


class TestArrayEncoding:
    def test_string_array_is_quoted(self, codec):
        assert codec.encode(["a", "b", "c"], "array<string>") == b'"a","b","c"'
        assert codec.decode(b'"a","b","c"', "array<string>") == ["a", "b", "c"]

    def test_numeric_arrays(self, codec):
        assert codec.encode([4, 5, 6], "array<int>") == b"4,5,6"
        assert codec.decode(b"4,5,6", "array<int>") == [4, 5, 6]
        assert codec.encode([1.5, 2.0], "array<double>") == b"1.5,2.0"
        assert codec.decode(b"1.5,2.0", "array<double>") == [1.5, 2.0]

    def test_boolean_array(self, codec):
        assert codec.encode([True, False], "array<boolean>") == b"true,false"
        assert codec.decode(b"true,false", "array<boolean>") == [True, False]

    def test_empty_array(self, codec):
        assert codec.encode([], "array<int>") == b""
        assert codec.decode(b"", "array<int>") == []
        assert codec.decode(b"", "array<string>") == []

    def test_separator_inside_element_rejected(self, codec):
        with pytest.raises(UnsupportedTypeError):
            codec.encode(["a,b"], "array<string>")
        with pytest.raises(UnsupportedTypeError):
            codec.encode(['say "hi"'], "array<string>")

    def test_null_element_rejected(self, codec):
        with pytest.raises(UnsupportedTypeError):
            codec.encode([1, None], "array<int>")

    def test_element_type_checked(self, codec):
        with pytest.raises(UnsupportedTypeError):
            codec.encode(["1"], "array<int>")
        with pytest.raises(UnsupportedTypeError):
            codec.encode("abc", "array<string>")


class TestCanonicalText:
    def test_encode_text(self, codec):
        assert codec.encode_text(True, "boolean") == "true"
        assert codec.encode_text(42, "bigint") == "42"
        assert codec.encode_text(Decimal("1.10"), "decimal") == "1.10"
        assert codec.encode_text("A", "string") == "A"

    def test_decode_text(self, codec):
        assert codec.decode_text("true", "boolean") is True
        assert codec.decode_text("42", "bigint") == 42
        assert codec.decode_text("2024-02-29", "date") == date(2024, 2, 29)
