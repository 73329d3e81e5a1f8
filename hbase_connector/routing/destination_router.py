# ==============================================
# DestinationRouter
# ==============================================
#
# PURPOSE:
#   Decides which HBase table a record is written to.
#
# WHY THIS CLASS EXISTS:
#   One sink can feed several tables. The choice has to be stable:
#   the same discriminator value always lands in the same table,
#   so the writer can keep one pending batch per table.
#
# CLASS: DestinationRouter
# ------------------------
#   Stateless, holds configuration only.
#
#   Modes:
#   ------
#   - single table:  table="events"            → always "events"
#   - multi table:   discriminator_field="kind"
#       1. table_mapping[value]           static value → table
#       2. table_template.format(value)   e.g. "events_{value}"
#       3. default_table
#       4. RoutingError
#
# DATA CLASS: TableRef
# --------------------
#   name: str
#
# ==============================================

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from hbase_connector.config import SinkConfig, validate_table_name
from hbase_connector.errors import ConfigError, RoutingError


@dataclass(frozen=True)
class TableRef:
    name: str

    def __str__(self) -> str:
        return self.name


class DestinationRouter:
    def __init__(
        self,
        table: Optional[str] = None,
        discriminator_field: Optional[str] = None,
        table_mapping: Optional[Dict[str, str]] = None,
        table_template: Optional[str] = None,
        default_table: Optional[str] = None,
    ):
        self.discriminator_field = discriminator_field
        self.table_mapping = {str(k): TableRef(v) for k, v in (table_mapping or {}).items()}
        self.table_template = table_template
        self.default_table = TableRef(default_table) if default_table else None
        self._single = TableRef(table) if table and not discriminator_field else None

        if self._single is None and not discriminator_field:
            raise ConfigError("Router needs either a table or a discriminator field")

    @classmethod
    def from_config(cls, config: SinkConfig) -> "DestinationRouter":
        return cls(
            table=config.table,
            discriminator_field=config.discriminator_field,
            table_mapping=config.table_mapping,
            table_template=config.table_template,
            default_table=config.default_table,
        )

    @property
    def multi_table(self) -> bool:
        return self._single is None

    def route(self, record: Mapping[str, Any]) -> TableRef:
        """
        Pick the destination table for one record.

        Raises:
            RoutingError: no mapping, template or default applies
        """
        if self._single is not None:
            return self._single

        value = record.get(self.discriminator_field)
        if value is None:
            if self.default_table is not None:
                return self.default_table
            raise RoutingError(
                f"Record has no value for discriminator '{self.discriminator_field}' "
                f"and no default table is configured",
                value=None,
            )

        key = str(value).lower() if isinstance(value, bool) else str(value)
        table = self.table_mapping.get(key)
        if table is not None:
            return table

        if self.table_template:
            try:
                name = self.table_template.format(value=key)
                return TableRef(validate_table_name(name))
            except (ConfigError, KeyError, IndexError, ValueError) as e:
                raise RoutingError(
                    f"Discriminator value {value!r} gives an invalid table name: {e}", value=value
                ) from e

        if self.default_table is not None:
            return self.default_table

        raise RoutingError(
            f"No table mapped for {self.discriminator_field}={value!r} and no default table",
            value=value,
        )
