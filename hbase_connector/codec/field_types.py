# ==============================================
# Field Types & Record Schema
# ==============================================
#
# PURPOSE:
#   Declared field types of a record and the ordered schema that
#   maps field names to them. HBase cells are schema-less bytes, so
#   every encode/decode needs the declared type of its field.
#
# TYPES:
# ------
# - FieldType(Enum)     → scalar types (string, int, bigint, double, ...)
# - ArrayType           → array<element> of a primitive scalar type
# - DeclaredType        → FieldType | ArrayType
#
# - parse_type(name) -> DeclaredType
#     "int" → FieldType.INT, "array<string>" → ArrayType(FieldType.STRING)
#     Raises UnsupportedTypeError for anything else.
#
# CLASSES:
# --------
# - FieldSpec (dataclass)  → one (name, type) pair
# - RecordSchema           → ordered collection of FieldSpec
#
# ==============================================

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from hbase_connector.errors import UnsupportedTypeError


class FieldType(Enum):
    """Scalar field types understood by the codec."""
    STRING = "string"
    BOOLEAN = "boolean"
    TINYINT = "tinyint"
    SMALLINT = "smallint"
    INT = "int"
    BIGINT = "bigint"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    BYTES = "bytes"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class ArrayType:
    element_type: FieldType

    def __str__(self) -> str:
        return f"array<{self.element_type.value}>"


DeclaredType = Union[FieldType, ArrayType]


TYPE_ALIASES: Dict[str, FieldType] = {
    "str": FieldType.STRING,
    "varchar": FieldType.STRING,
    "text": FieldType.STRING,
    "bool": FieldType.BOOLEAN,
    "byte": FieldType.TINYINT,
    "short": FieldType.SMALLINT,
    "integer": FieldType.INT,
    "long": FieldType.BIGINT,
    "binary": FieldType.BYTES,
}

INTEGER_TYPES = {
    FieldType.TINYINT: 8,
    FieldType.SMALLINT: 16,
    FieldType.INT: 32,
    FieldType.BIGINT: 64,
}

# Element types allowed inside array<...>
ARRAY_ELEMENT_TYPES = frozenset({
    FieldType.STRING,
    FieldType.BOOLEAN,
    FieldType.TINYINT,
    FieldType.SMALLINT,
    FieldType.INT,
    FieldType.BIGINT,
    FieldType.FLOAT,
    FieldType.DOUBLE,
    FieldType.DECIMAL,
})

_ARRAY_PATTERN = re.compile(r"^array\s*<\s*([a-z_]+)\s*>$")


def _parse_scalar(name: str) -> FieldType:
    if name in TYPE_ALIASES:
        return TYPE_ALIASES[name]
    try:
        return FieldType(name)
    except ValueError:
        raise UnsupportedTypeError(f"Unsupported field type: '{name}'") from None


def parse_type(declared: Any) -> DeclaredType:
    """
    Resolve a type name (or an already parsed type) to a DeclaredType.

    Args:
        declared: "int", "array<string>", FieldType.INT, ArrayType(...)

    Returns:
        FieldType or ArrayType
    """
    if isinstance(declared, (FieldType, ArrayType)):
        return declared
    if not isinstance(declared, str):
        raise UnsupportedTypeError(f"Unsupported field type: {declared!r}")

    name = declared.strip().lower()
    match = _ARRAY_PATTERN.match(name)
    if match:
        element = _parse_scalar(match.group(1))
        if element not in ARRAY_ELEMENT_TYPES:
            raise UnsupportedTypeError(f"Unsupported array element type: '{element.value}'")
        return ArrayType(element)
    return _parse_scalar(name)


def type_name(declared: DeclaredType) -> str:
    if isinstance(declared, ArrayType):
        return str(declared)
    return declared.value


@dataclass(frozen=True)
class FieldSpec:
    name: str
    field_type: DeclaredType


class RecordSchema:
    """
    Ordered field name → declared type mapping.

    Built from configuration, e.g.:
        RecordSchema.from_dict({"name": "string", "tags": "array<string>"})
    """

    def __init__(self, fields: List[FieldSpec]):
        seen = set()
        for spec in fields:
            if spec.name in seen:
                raise ValueError(f"Duplicate field in schema: '{spec.name}'")
            seen.add(spec.name)
        self._fields = list(fields)
        self._by_name = {spec.name: spec for spec in self._fields}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordSchema":
        return cls([FieldSpec(name, parse_type(declared)) for name, declared in data.items()])

    def to_dict(self) -> Dict[str, str]:
        return {spec.name: type_name(spec.field_type) for spec in self._fields}

    @property
    def field_names(self) -> List[str]:
        return [spec.name for spec in self._fields]

    def get(self, name: str) -> Optional[FieldSpec]:
        return self._by_name.get(name)

    def type_of(self, name: str) -> DeclaredType:
        return self._by_name[name].field_type

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"RecordSchema({self.to_dict()!r})"
