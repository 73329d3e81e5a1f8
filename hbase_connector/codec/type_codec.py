# ==============================================
# TypeCodec
# ==============================================
#
# PURPOSE:
#   Convert a typed field value to the bytes stored in an HBase
#   cell and back. Scalars follow HBase's Bytes.toBytes layout
#   (fixed-width big-endian numbers, 0xFF/0x00 booleans, charset
#   encoded text) so cells stay readable by JVM clients.
#
# CLASS: TypeCodec
# ----------------
#   Stateless apart from the text charset.
#
#   Methods:
#   --------
#   - encode(value, declared_type) -> bytes
#   - decode(data, declared_type) -> value
#       Cell encoding. Arrays are comma-separated canonical text,
#       strings double-quoted:  ["a","b"] → "a","b" ;  [4,5,6] → 4,5,6
#
#   - encode_text(value, declared_type) -> str
#   - decode_text(text, declared_type) -> value
#       Canonical text form, used for array elements and row keys.
#
# ERRORS:
# -------
#   - UnsupportedTypeError  → type not supported / value does not fit type
#   - CodecError            → bytes cannot be decoded as declared type
#
# ==============================================

import struct
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List

from hbase_connector.codec.field_types import (
    ARRAY_ELEMENT_TYPES,
    INTEGER_TYPES,
    ArrayType,
    DeclaredType,
    FieldType,
    parse_type,
)
from hbase_connector.errors import CodecError, UnsupportedTypeError

BOOL_TRUE = b"\xff"
BOOL_FALSE = b"\x00"

_STRUCT_FORMATS = {
    FieldType.TINYINT: ">b",
    FieldType.SMALLINT: ">h",
    FieldType.INT: ">i",
    FieldType.BIGINT: ">q",
    FieldType.FLOAT: ">f",
    FieldType.DOUBLE: ">d",
}

# Types whose empty cell value means null rather than an empty value
_EMPTY_IS_VALUE = (FieldType.STRING, FieldType.BYTES)


class TypeCodec:
    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._encoders: Dict[FieldType, Callable[[Any, FieldType], bytes]] = {
            FieldType.STRING: self._encode_string,
            FieldType.BOOLEAN: self._encode_boolean,
            FieldType.BYTES: self._encode_bytes,
        }
        self._decoders: Dict[FieldType, Callable[[bytes, FieldType], Any]] = {
            FieldType.STRING: self._decode_string,
            FieldType.BOOLEAN: self._decode_boolean,
            FieldType.BYTES: self._decode_bytes,
        }
        for field_type in _STRUCT_FORMATS:
            self._encoders[field_type] = self._encode_fixed
            self._decoders[field_type] = self._decode_fixed
        for field_type in (FieldType.DECIMAL, FieldType.DATE, FieldType.TIME, FieldType.TIMESTAMP):
            self._encoders[field_type] = self._encode_as_text
            self._decoders[field_type] = self._decode_as_text

    # ------------------------------------------
    # Cell encoding
    # ------------------------------------------

    def encode(self, value: Any, declared_type: Any) -> bytes:
        """
        Encode a field value into cell bytes.

        Args:
            value: Field value (never None, the mapper handles nulls)
            declared_type: Type name or DeclaredType

        Returns:
            Cell bytes
        """
        field_type = parse_type(declared_type)
        if value is None:
            raise UnsupportedTypeError(f"Cannot encode null as {field_type}")
        if isinstance(field_type, ArrayType):
            return self._encode_array(value, field_type)
        encoder = self._encoders.get(field_type)
        if encoder is None:
            raise UnsupportedTypeError(f"No encoder for type '{field_type.value}'")
        return encoder(value, field_type)

    def decode(self, data: bytes, declared_type: Any) -> Any:
        """
        Decode cell bytes into a field value.

        An empty value decodes to "" / b"" / [] for string, bytes and
        array types, and to None for every other type.
        """
        field_type = parse_type(declared_type)
        data = bytes(data)
        if isinstance(field_type, ArrayType):
            return self._decode_array(data, field_type)
        if not data and field_type not in _EMPTY_IS_VALUE:
            return None
        decoder = self._decoders.get(field_type)
        if decoder is None:
            raise UnsupportedTypeError(f"No decoder for type '{field_type.value}'")
        return decoder(data, field_type)

    # ------------------------------------------
    # Canonical text
    # ------------------------------------------

    def encode_text(self, value: Any, declared_type: Any) -> str:
        field_type = parse_type(declared_type)
        if isinstance(field_type, ArrayType):
            return self._encode_array(value, field_type).decode(self.encoding)
        if field_type == FieldType.STRING:
            return self._check_string(value)
        if field_type == FieldType.BOOLEAN:
            return "true" if self._check_boolean(value) else "false"
        if field_type in INTEGER_TYPES:
            return str(self._check_integer(value, field_type))
        if field_type in (FieldType.FLOAT, FieldType.DOUBLE):
            return repr(self._check_float(value, field_type))
        if field_type == FieldType.DECIMAL:
            if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
                raise self._mismatch(value, field_type)
            return str(Decimal(value))
        if field_type == FieldType.DATE:
            if isinstance(value, datetime) or not isinstance(value, date):
                raise self._mismatch(value, field_type)
            return value.isoformat()
        if field_type == FieldType.TIME:
            if not isinstance(value, time):
                raise self._mismatch(value, field_type)
            return value.isoformat()
        if field_type == FieldType.TIMESTAMP:
            if not isinstance(value, datetime):
                raise self._mismatch(value, field_type)
            return value.isoformat()
        raise UnsupportedTypeError(f"Type '{field_type.value}' has no text form")

    def decode_text(self, text: str, declared_type: Any) -> Any:
        field_type = parse_type(declared_type)
        if isinstance(field_type, ArrayType):
            return self._decode_array(text.encode(self.encoding), field_type)
        try:
            if field_type == FieldType.STRING:
                return text
            if field_type == FieldType.BOOLEAN:
                lowered = text.strip().lower()
                if lowered in ("true", "false"):
                    return lowered == "true"
                raise ValueError(f"not a boolean: {text!r}")
            if field_type in INTEGER_TYPES:
                return self._check_integer(int(text), field_type)
            if field_type in (FieldType.FLOAT, FieldType.DOUBLE):
                return float(text)
            if field_type == FieldType.DECIMAL:
                return Decimal(text)
            if field_type == FieldType.DATE:
                return date.fromisoformat(text)
            if field_type == FieldType.TIME:
                return time.fromisoformat(text)
            if field_type == FieldType.TIMESTAMP:
                return datetime.fromisoformat(text)
        except (ValueError, InvalidOperation, UnsupportedTypeError) as e:
            raise CodecError(f"Cannot decode {text!r} as {field_type.value}: {e}") from e
        raise UnsupportedTypeError(f"Type '{field_type.value}' has no text form")

    # ------------------------------------------
    # Scalars
    # ------------------------------------------

    def _encode_string(self, value: Any, field_type: FieldType) -> bytes:
        return self._check_string(value).encode(self.encoding)

    def _decode_string(self, data: bytes, field_type: FieldType) -> str:
        try:
            return data.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise CodecError(f"Cannot decode string with {self.encoding}: {e}") from e

    def _encode_boolean(self, value: Any, field_type: FieldType) -> bytes:
        return BOOL_TRUE if self._check_boolean(value) else BOOL_FALSE

    def _decode_boolean(self, data: bytes, field_type: FieldType) -> bool:
        if len(data) != 1:
            raise CodecError(f"Boolean cell must be 1 byte, got {len(data)}")
        return data != BOOL_FALSE

    def _encode_bytes(self, value: Any, field_type: FieldType) -> bytes:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise self._mismatch(value, field_type)
        return bytes(value)

    def _decode_bytes(self, data: bytes, field_type: FieldType) -> bytes:
        return data

    def _encode_fixed(self, value: Any, field_type: FieldType) -> bytes:
        if field_type in INTEGER_TYPES:
            value = self._check_integer(value, field_type)
        else:
            value = self._check_float(value, field_type)
        try:
            return struct.pack(_STRUCT_FORMATS[field_type], value)
        except (struct.error, OverflowError) as e:
            raise UnsupportedTypeError(f"Value {value!r} does not fit {field_type.value}: {e}") from e

    def _decode_fixed(self, data: bytes, field_type: FieldType) -> Any:
        fmt = _STRUCT_FORMATS[field_type]
        if len(data) != struct.calcsize(fmt):
            raise CodecError(
                f"{field_type.value} cell must be {struct.calcsize(fmt)} bytes, got {len(data)}"
            )
        return struct.unpack(fmt, data)[0]

    def _encode_as_text(self, value: Any, field_type: FieldType) -> bytes:
        return self.encode_text(value, field_type).encode(self.encoding)

    def _decode_as_text(self, data: bytes, field_type: FieldType) -> Any:
        return self.decode_text(self._decode_string(data, FieldType.STRING), field_type)

    # ------------------------------------------
    # Arrays
    # ------------------------------------------

    def _encode_array(self, value: Any, array_type: ArrayType) -> bytes:
        if not isinstance(value, (list, tuple)):
            raise self._mismatch(value, array_type)
        element_type = array_type.element_type
        if element_type not in ARRAY_ELEMENT_TYPES:
            raise UnsupportedTypeError(f"Unsupported array element type: '{element_type.value}'")

        parts: List[str] = []
        for item in value:
            if item is None:
                raise UnsupportedTypeError(f"Null elements are not supported in {array_type}")
            text = self.encode_text(item, element_type)
            if element_type == FieldType.STRING:
                # No escaping: quotes and commas would break the split on decode
                if '"' in text or "," in text:
                    raise UnsupportedTypeError(
                        f"{array_type} elements may not contain '\"' or ',': {text!r}"
                    )
                text = f'"{text}"'
            parts.append(text)
        return ",".join(parts).encode(self.encoding)

    def _decode_array(self, data: bytes, array_type: ArrayType) -> list:
        if not data:
            return []
        element_type = array_type.element_type
        text = self._decode_string(data, FieldType.STRING)
        values = []
        for part in text.split(","):
            if element_type == FieldType.STRING:
                if len(part) >= 2 and part.startswith('"') and part.endswith('"'):
                    part = part[1:-1]
                values.append(part)
            else:
                values.append(self.decode_text(part, element_type))
        return values

    # ------------------------------------------
    # Value checks
    # ------------------------------------------

    def _check_string(self, value: Any) -> str:
        if not isinstance(value, str):
            raise self._mismatch(value, FieldType.STRING)
        return value

    def _check_boolean(self, value: Any) -> bool:
        if not isinstance(value, bool):
            raise self._mismatch(value, FieldType.BOOLEAN)
        return value

    def _check_integer(self, value: Any, field_type: FieldType) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise self._mismatch(value, field_type)
        bits = INTEGER_TYPES[field_type]
        if not -(1 << (bits - 1)) <= value < (1 << (bits - 1)):
            raise UnsupportedTypeError(f"Value {value} out of range for {field_type.value}")
        return value

    def _check_float(self, value: Any, field_type: FieldType) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._mismatch(value, field_type)
        return float(value)

    @staticmethod
    def _mismatch(value: Any, declared: DeclaredType) -> UnsupportedTypeError:
        name = str(declared) if isinstance(declared, ArrayType) else declared.value
        return UnsupportedTypeError(
            f"Cannot encode {type(value).__name__} value {value!r} as {name}"
        )


default_codec = TypeCodec()


def encode(value: Any, declared_type: Any) -> bytes:
    return default_codec.encode(value, declared_type)


def decode(data: bytes, declared_type: Any) -> Any:
    return default_codec.decode(data, declared_type)
