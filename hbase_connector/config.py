# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration. Connection and tuning
#   settings come from environment variables / .env file; the
#   per-job sink and source settings come from a JSON job file.
#
# CLASSES:
# --------
# - HBaseConfig (dataclass)
#     host: str              (default "localhost")
#     port: int              (default 9090, HBase Thrift server)
#     timeout_ms: int | None (default None)
#     pool_size: int         (default 4)
#     table_prefix: str|None (default None)
#     transport: str         (default "buffered")
#     protocol: str          (default "binary")
#
# - BatchConfig (dataclass)
#     batch_size: int                (default 100)
#     batch_timeout_seconds: float   (default 5.0)
#
# - RetryConfig (dataclass)
#     max_attempts: int              (default 3)
#     initial_backoff_seconds: float (default 0.5)
#     max_backoff_seconds: float     (default 10.0)
#     backoff_multiplier: float      (default 2.0)
#
# - SinkConfig / SourceConfig (dataclass)
#     Per-job settings, built with from_dict() from the job file.
#
# - AppConfig (dataclass)
#     hbase, batch, retry, worker_count, data_stream_url
#
# FUNCTIONS:
# ----------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct AppConfig.
#     Returns the same singleton on repeated calls.
#
# - load_job_config(path, app_config=None) -> JobConfig
#     Read a JSON job file with "sink" and/or "source" sections.
#
# USAGE:
# ------
#   from hbase_connector.config import get_config, load_job_config
#   config = get_config()
#   job = load_job_config("jobs/fake-to-hbase.json", config)
#   print(job.sink.table, job.sink.batch.batch_size)
#
# ==============================================

import json
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from hbase_connector.codec.field_types import RecordSchema
from hbase_connector.errors import ConfigError, UnsupportedTypeError

NULL_MODES = ("skip", "empty")
INVALID_RECORD_POLICIES = ("fail", "skip")

# [namespace:]qualifier, see HBase TableName rules
TABLE_NAME_PATTERN = re.compile(r"^([A-Za-z0-9_]+:)?[A-Za-z0-9_][A-Za-z0-9_.\-]*$")


@dataclass
class HBaseConfig:
    """HBase Thrift gateway connection settings."""
    host: str = "localhost"
    port: int = 9090
    timeout_ms: Optional[int] = None
    pool_size: int = 4
    table_prefix: Optional[str] = None
    transport: str = "buffered"
    protocol: str = "binary"


@dataclass
class BatchConfig:
    """Per-table batching thresholds for the sink."""
    batch_size: int = 100
    batch_timeout_seconds: float = 5.0


@dataclass
class RetryConfig:
    """Retry policy for transient store failures."""
    max_attempts: int = 3
    initial_backoff_seconds: float = 0.5
    max_backoff_seconds: float = 10.0
    backoff_multiplier: float = 2.0

    def backoff_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        delay = self.initial_backoff_seconds * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)


@dataclass
class AppConfig:
    """Main application configuration."""
    hbase: HBaseConfig
    batch: BatchConfig
    retry: RetryConfig
    worker_count: int = 4
    data_stream_url: str = "http://127.0.0.1:8000/GET/record"


def validate_table_name(name: Any, what: str = "table") -> str:
    if not isinstance(name, str) or not TABLE_NAME_PATTERN.match(name):
        raise ConfigError(f"Invalid {what} name: {name!r}")
    return name


def _parse_schema(data: Dict[str, Any], section: str) -> RecordSchema:
    raw = data.get("schema")
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"'{section}.schema' must be a non-empty mapping of field -> type")
    try:
        return RecordSchema.from_dict(raw)
    except UnsupportedTypeError as e:
        raise ConfigError(f"'{section}.schema': {e}") from e


def _merge(base: Any, overrides: Optional[Dict[str, Any]], section: str) -> Any:
    if not overrides:
        return replace(base)
    unknown = set(overrides) - set(base.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {sorted(unknown)}")
    return replace(base, **overrides)


@dataclass
class SinkConfig:
    """
    Settings of one sink.

    Single-table mode sets `table`. Multi-table mode sets
    `discriminator_field` plus `table_mapping` and/or `table_template`,
    optionally with a `default_table` fallback.
    """
    schema: RecordSchema
    rowkey_fields: List[str]
    table: Optional[str] = None
    family: str = "info"
    family_map: Dict[str, str] = field(default_factory=dict)
    rowkey_delimiter: str = ""
    version_field: Optional[str] = None
    null_mode: str = "skip"
    encoding: str = "utf-8"
    discriminator_field: Optional[str] = None
    table_mapping: Dict[str, str] = field(default_factory=dict)
    table_template: Optional[str] = None
    default_table: Optional[str] = None
    on_invalid_record: str = "fail"
    wal: bool = True
    create_tables: bool = False
    worker_count: int = 4
    batch: BatchConfig = field(default_factory=BatchConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self):
        self.validate()

    @property
    def multi_table(self) -> bool:
        return self.discriminator_field is not None

    def family_for(self, field_name: str) -> str:
        return self.family_map.get(field_name, self.family)

    def validate(self) -> None:
        if not self.rowkey_fields:
            raise ConfigError("'sink.rowkey_fields' must name at least one field")
        for name in self.rowkey_fields:
            if name not in self.schema:
                raise ConfigError(f"Row key field '{name}' is not in the sink schema")
        if self.version_field is not None and self.version_field not in self.schema:
            raise ConfigError(f"Version field '{self.version_field}' is not in the sink schema")
        if self.null_mode not in NULL_MODES:
            raise ConfigError(f"'sink.null_mode' must be one of {NULL_MODES}")
        if self.on_invalid_record not in INVALID_RECORD_POLICIES:
            raise ConfigError(f"'sink.on_invalid_record' must be one of {INVALID_RECORD_POLICIES}")
        if not self.family:
            raise ConfigError("'sink.family' must not be empty")

        if self.multi_table:
            if self.discriminator_field not in self.schema:
                raise ConfigError(f"Discriminator field '{self.discriminator_field}' is not in the sink schema")
            if not (self.table_mapping or self.table_template or self.default_table):
                raise ConfigError(
                    "Multi-table sink needs 'table_mapping', 'table_template' or 'default_table'"
                )
            if self.table_template is not None:
                self._check_template()
        elif not self.table:
            raise ConfigError("Sink needs either 'table' or 'discriminator_field'")

        for name in [self.table, self.default_table, *self.table_mapping.values()]:
            if name is not None:
                validate_table_name(name)
        if self.worker_count < 1:
            raise ConfigError("'sink.worker_count' must be >= 1")
        if self.batch.batch_size < 1:
            raise ConfigError("'sink.batch.batch_size' must be >= 1")
        if self.retry.max_attempts < 1:
            raise ConfigError("'sink.retry.max_attempts' must be >= 1")

    def _check_template(self) -> None:
        if "{value}" not in self.table_template:
            raise ConfigError(f"'sink.table_template' must contain {{value}}: {self.table_template!r}")
        try:
            sample = self.table_template.format(value="x")
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(f"Invalid 'sink.table_template' {self.table_template!r}: {e}") from e
        validate_table_name(sample, "table_template")

    @classmethod
    def from_dict(cls, data: Dict[str, Any], app_config: Optional[AppConfig] = None) -> "SinkConfig":
        base = app_config or AppConfig(HBaseConfig(), BatchConfig(), RetryConfig())
        data = dict(data)
        rowkey_fields = data.pop("rowkey_fields", None)
        if isinstance(rowkey_fields, str):
            rowkey_fields = [rowkey_fields]
        kwargs = {
            "schema": _parse_schema(data, "sink"),
            "rowkey_fields": list(rowkey_fields or []),
            "batch": _merge(base.batch, data.pop("batch", None), "sink.batch"),
            "retry": _merge(base.retry, data.pop("retry", None), "sink.retry"),
            "worker_count": data.pop("worker_count", base.worker_count),
        }
        data.pop("schema")
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown keys in 'sink': {sorted(unknown)}")
        kwargs.update(data)
        return cls(**kwargs)


@dataclass
class SourceConfig:
    """Settings of one source scan."""
    table: str
    schema: RecordSchema
    family: str = "info"
    family_map: Dict[str, str] = field(default_factory=dict)
    rowkey_field: Optional[str] = None
    start_row: Optional[str] = None
    stop_row: Optional[str] = None
    row_prefix: Optional[str] = None
    scan_batch_size: int = 1000
    restrict_columns: bool = False
    encoding: str = "utf-8"

    def __post_init__(self):
        self.validate()

    def family_for(self, field_name: str) -> str:
        return self.family_map.get(field_name, self.family)

    def validate(self) -> None:
        validate_table_name(self.table)
        if self.rowkey_field is not None and self.rowkey_field not in self.schema:
            raise ConfigError(f"Row key field '{self.rowkey_field}' is not in the source schema")
        if self.row_prefix is not None and (self.start_row is not None or self.stop_row is not None):
            raise ConfigError("'source.row_prefix' cannot be combined with start_row/stop_row")
        if self.scan_batch_size < 1:
            raise ConfigError("'source.scan_batch_size' must be >= 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceConfig":
        data = dict(data)
        if "table" not in data:
            raise ConfigError("'source.table' is required")
        schema = _parse_schema(data, "source")
        data.pop("schema")
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown keys in 'source': {sorted(unknown)}")
        return cls(schema=schema, **data)


@dataclass
class JobConfig:
    sink: Optional[SinkConfig] = None
    source: Optional[SourceConfig] = None


# Singleton instance
_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is not None:
        return _config_instance

    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    timeout = os.getenv("HBASE_TIMEOUT_MS")
    hbase_config = HBaseConfig(
        host=os.getenv("HBASE_HOST", "localhost"),
        port=int(os.getenv("HBASE_PORT", "9090")),
        timeout_ms=int(timeout) if timeout else None,
        pool_size=int(os.getenv("HBASE_POOL_SIZE", "4")),
        table_prefix=os.getenv("HBASE_TABLE_PREFIX") or None,
        transport=os.getenv("HBASE_TRANSPORT", "buffered"),
        protocol=os.getenv("HBASE_PROTOCOL", "binary")
    )

    batch_config = BatchConfig(
        batch_size=int(os.getenv("SINK_BATCH_SIZE", "100")),
        batch_timeout_seconds=float(os.getenv("SINK_BATCH_TIMEOUT_SECONDS", "5.0"))
    )

    retry_config = RetryConfig(
        max_attempts=int(os.getenv("SINK_MAX_ATTEMPTS", "3")),
        initial_backoff_seconds=float(os.getenv("SINK_INITIAL_BACKOFF_SECONDS", "0.5")),
        max_backoff_seconds=float(os.getenv("SINK_MAX_BACKOFF_SECONDS", "10.0"))
    )

    _config_instance = AppConfig(
        hbase=hbase_config,
        batch=batch_config,
        retry=retry_config,
        worker_count=int(os.getenv("SINK_WORKER_COUNT", "4")),
        data_stream_url=os.getenv("DATA_STREAM_URL", "http://127.0.0.1:8000/GET/record")
    )

    return _config_instance


def load_job_config(path: str, app_config: Optional[AppConfig] = None) -> JobConfig:
    """
    Load a JSON job file.

    Args:
        path: Path to a file like {"sink": {...}, "source": {...}}
        app_config: Supplies default batch/retry settings for the sink

    Returns:
        JobConfig with the sections present in the file
    """
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read job file '{path}': {e}") from e

    if not isinstance(data, dict) or not ({"sink", "source"} & set(data)):
        raise ConfigError(f"Job file '{path}' needs a 'sink' and/or 'source' section")

    return JobConfig(
        sink=SinkConfig.from_dict(data["sink"], app_config) if "sink" in data else None,
        source=SourceConfig.from_dict(data["source"]) if "source" in data else None,
    )
