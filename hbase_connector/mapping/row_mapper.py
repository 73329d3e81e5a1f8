# ==============================================
# RowMapper
# ==============================================
#
# PURPOSE:
#   Maps a record onto HBase's row model and back:
#     record  → (row key, [Cell])         sink side
#     row     → record                    source side
#
# CLASS: RowMapper
# ----------------
#   Stateless once built. Build with for_sink(SinkConfig) or
#   for_source(SourceConfig).
#
#   Methods:
#   --------
#   - row_key(record) -> bytes
#       Canonical text of each rowkey field, joined with the
#       delimiter. RowKeyError if a field is missing / null or the
#       key comes out empty.
#
#   - to_cells(record) -> MappedRow
#       One cell per schema field that is not part of the row key
#       and not the version field. qualifier = field name,
#       family = configured family (or per-field override).
#       Null values are skipped, or written empty (null_mode).
#
#   - from_row(table_name, row_key, cells) -> dict
#       Inverse of to_cells. Unknown columns are ignored, missing
#       fields come back as None.
#
# ==============================================

from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from hbase_connector.codec.field_types import FieldSpec, FieldType, RecordSchema
from hbase_connector.codec.type_codec import TypeCodec
from hbase_connector.config import SinkConfig, SourceConfig
from hbase_connector.errors import CodecError, RowKeyError, UnsupportedTypeError
from hbase_connector.mapping.cell import Cell, MappedRow

RowCells = Union[Mapping[bytes, bytes], Iterable[Cell]]


class RowMapper:
    def __init__(
        self,
        schema: RecordSchema,
        family: str = "info",
        family_map: Optional[Dict[str, str]] = None,
        rowkey_fields: Optional[List[str]] = None,
        rowkey_delimiter: str = "",
        version_field: Optional[str] = None,
        null_mode: str = "skip",
        rowkey_field: Optional[str] = None,
        codec: Optional[TypeCodec] = None,
    ):
        self.schema = schema
        self.family = family
        self.family_map = dict(family_map or {})
        self.rowkey_fields = list(rowkey_fields or [])
        self.rowkey_delimiter = rowkey_delimiter
        self.version_field = version_field
        self.null_mode = null_mode
        self.rowkey_field = rowkey_field
        self.codec = codec or TypeCodec()

        excluded = set(self.rowkey_fields)
        if version_field:
            excluded.add(version_field)
        if rowkey_field:
            excluded.add(rowkey_field)
        self._cell_fields: List[FieldSpec] = [spec for spec in schema if spec.name not in excluded]
        self._by_column: Dict[bytes, FieldSpec] = {
            self._column(spec.name): spec for spec in self._cell_fields
        }

    @classmethod
    def for_sink(cls, config: SinkConfig) -> "RowMapper":
        return cls(
            schema=config.schema,
            family=config.family,
            family_map=config.family_map,
            rowkey_fields=config.rowkey_fields,
            rowkey_delimiter=config.rowkey_delimiter,
            version_field=config.version_field,
            null_mode=config.null_mode,
            codec=TypeCodec(config.encoding),
        )

    @classmethod
    def for_source(cls, config: SourceConfig) -> "RowMapper":
        return cls(
            schema=config.schema,
            family=config.family,
            family_map=config.family_map,
            rowkey_field=config.rowkey_field,
            codec=TypeCodec(config.encoding),
        )

    @property
    def families(self) -> Set[str]:
        """Column families this mapper reads or writes."""
        return {self.family_for(spec.name) for spec in self._cell_fields} or {self.family}

    @property
    def columns(self) -> List[bytes]:
        return list(self._by_column)

    def family_for(self, field_name: str) -> str:
        return self.family_map.get(field_name, self.family)

    def _column(self, field_name: str) -> bytes:
        return f"{self.family_for(field_name)}:{field_name}".encode("utf-8")

    # ------------------------------------------
    # Sink side
    # ------------------------------------------

    def row_key(self, record: Mapping[str, Any]) -> bytes:
        parts = []
        for name in self.rowkey_fields:
            value = record.get(name)
            if value is None:
                raise RowKeyError(f"Row key field '{name}' is missing or null", field=name)
            field_type = self.schema.type_of(name)
            if field_type == FieldType.BYTES:
                raise UnsupportedTypeError(f"Row key field '{name}' cannot be of type bytes")
            parts.append(self.codec.encode_text(value, field_type))

        key = self.rowkey_delimiter.join(parts).encode(self.codec.encoding)
        if not key:
            raise RowKeyError(f"Row key derived from {self.rowkey_fields} is empty")
        return key

    def to_cells(self, record: Mapping[str, Any]) -> MappedRow:
        """
        Map one record to its row key and cells.

        Args:
            record: Field name → value mapping (not modified)

        Returns:
            MappedRow with one cell per non-key schema field
        """
        if not isinstance(record, Mapping):
            raise UnsupportedTypeError(f"Record must be a mapping, got {type(record).__name__}")

        row = MappedRow(row_key=self.row_key(record), timestamp=self._timestamp(record))
        for spec in self._cell_fields:
            value = record.get(spec.name)
            if value is None:
                if self.null_mode == "skip":
                    continue
                data = b""
            else:
                try:
                    data = self.codec.encode(value, spec.field_type)
                except UnsupportedTypeError as e:
                    raise UnsupportedTypeError(f"Field '{spec.name}': {e}") from e
            row.cells.append(Cell(self.family_for(spec.name), spec.name, data, row.timestamp))
        return row

    def _timestamp(self, record: Mapping[str, Any]) -> Optional[int]:
        if not self.version_field:
            return None
        value = record.get(self.version_field)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise UnsupportedTypeError(
                f"Version field '{self.version_field}' must be an integer timestamp, got {value!r}"
            )
        return value

    # ------------------------------------------
    # Source side
    # ------------------------------------------

    def from_row(self, table_name: str, row_key: bytes, cells: RowCells) -> Dict[str, Any]:
        """
        Rebuild a record from one scanned row.

        Args:
            table_name: Table the row came from (for error messages)
            row_key: Row key bytes
            cells: {b"family:qualifier": value} as returned by happybase,
                   or an iterable of Cell

        Returns:
            dict with every schema field, None where the row has no cell
        """
        record: Dict[str, Any] = {name: None for name in self.schema.field_names}

        if self.rowkey_field:
            key_type = self.schema.type_of(self.rowkey_field)
            record[self.rowkey_field] = self._decode(
                table_name, row_key, self.rowkey_field,
                lambda: self.codec.decode_text(self.codec.decode(row_key, FieldType.STRING), key_type),
            )

        if isinstance(cells, Mapping):
            items = cells.items()
        else:
            items = ((cell.column, cell.value) for cell in cells)

        for column, value in items:
            column = column if isinstance(column, bytes) else str(column).encode("utf-8")
            spec = self._by_column.get(column)
            if spec is None:
                continue
            record[spec.name] = self._decode(
                table_name, row_key, column.decode("utf-8"),
                lambda: self.codec.decode(value, spec.field_type),
            )
        return record

    @staticmethod
    def _decode(table_name: str, row_key: bytes, column: str, fn):
        try:
            return fn()
        except CodecError as e:
            raise CodecError(f"Table '{table_name}', row {row_key!r}, column '{column}': {e}") from e
