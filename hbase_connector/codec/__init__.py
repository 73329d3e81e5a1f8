# ==============================================
# TYPE CODEC
# ==============================================
#
# Converts typed record values to and from HBase cell bytes.
#
# Modules:
# --------
# - field_types.py → FieldType / ArrayType / RecordSchema, type name parsing
# - type_codec.py  → TypeCodec (encode / decode, canonical text form)
#
# ==============================================

from .field_types import (
    ArrayType,
    DeclaredType,
    FieldSpec,
    FieldType,
    RecordSchema,
    parse_type,
)
from .type_codec import TypeCodec, decode, encode

__all__ = [
    "ArrayType",
    "DeclaredType",
    "FieldSpec",
    "FieldType",
    "RecordSchema",
    "parse_type",
    "TypeCodec",
    "encode",
    "decode",
]
