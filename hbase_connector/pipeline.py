"""
==============================================
Streaming Pipeline
==============================================

Drives the connector for a job: pulls records from the JSON data
stream (or a JSON-lines file) into the HBase sink, and scans the
source table back out.

USAGE EXAMPLES:

1. Stream records from the data stream API into HBase:
    from hbase_connector.config import load_job_config
    from hbase_connector.pipeline import StreamingPipeline

    job = load_job_config("jobs/fake-to-hbase.json")
    with StreamingPipeline(job) as pipeline:
        pipeline.start_streaming(max_records=100)

2. Manual batch:
    with StreamingPipeline(job) as pipeline:
        pipeline.process_batch([
            {"name": "A", "c_int": 1, "c_array_string": ["a", "b", "c"]},
        ])

3. Scan the source table:
    with StreamingPipeline(job) as pipeline:
        for record in pipeline.scan():
            print(record)
"""

import base64
import json
import time
from datetime import date, datetime, time as time_of_day
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests

from hbase_connector.codec.field_types import ArrayType, FieldType, RecordSchema
from hbase_connector.config import AppConfig, JobConfig, get_config
from hbase_connector.errors import ConfigError
from hbase_connector.sink.sink_writer import HBaseSinkWriter
from hbase_connector.source.source_reader import HBaseSourceReader
from hbase_connector.storage.hbase_client import HBaseClient


def coerce_json_value(value: Any, declared: Any) -> Any:
    """
    Convert a JSON-decoded value to the Python type its field declares.

    JSON has no dates, decimals or bytes, so those arrive as strings
    (bytes as base64). Values that already fit, and values that do not
    convert, are returned as-is; the codec rejects the latter.
    """
    if value is None:
        return None
    if isinstance(declared, ArrayType):
        if isinstance(value, list):
            return [coerce_json_value(item, declared.element_type) for item in value]
        return value
    try:
        if declared == FieldType.DECIMAL and isinstance(value, (str, float)) and not isinstance(value, bool):
            return Decimal(str(value))
        if isinstance(value, str):
            if declared == FieldType.DATE:
                return date.fromisoformat(value)
            if declared == FieldType.TIMESTAMP:
                return datetime.fromisoformat(value)
            if declared == FieldType.TIME:
                return time_of_day.fromisoformat(value)
            if declared == FieldType.BYTES:
                return base64.b64decode(value, validate=True)
    except (ValueError, ArithmeticError):
        return value
    return value


def coerce_json_record(record: Dict[str, Any], schema: RecordSchema) -> Dict[str, Any]:
    coerced = dict(record)
    for spec in schema:
        if spec.name in coerced:
            coerced[spec.name] = coerce_json_value(coerced[spec.name], spec.field_type)
    return coerced


def to_json_value(value: Any) -> Any:
    # json.dumps default= hook for scanned values
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (date, datetime, time_of_day)):
        return value.isoformat()
    return str(value)


class StreamingPipeline:
    """
    High-level wrapper around HBaseClient, HBaseSinkWriter and
    HBaseSourceReader for one job.
    """

    def __init__(
        self,
        job: JobConfig,
        config: Optional[AppConfig] = None,
        client: Optional[HBaseClient] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            job: Sink and/or source settings
            config: Optional configuration. If None, loads from environment.
            client: Optional pre-built client (tests inject a fake pool here)
        """
        self._config = config or get_config()
        self._job = job
        self._client = client or HBaseClient.from_config(self._config.hbase)
        self._client.connect()
        self._sink: Optional[HBaseSinkWriter] = None
        self._source: Optional[HBaseSourceReader] = None
        self._is_running = False
        self._records_ingested = 0

    @property
    def sink(self) -> HBaseSinkWriter:
        if self._sink is None:
            if self._job.sink is None:
                raise ConfigError("Job has no 'sink' section")
            self._sink = HBaseSinkWriter(self._client, self._job.sink)
        return self._sink

    @property
    def source(self) -> HBaseSourceReader:
        if self._source is None:
            if self._job.source is None:
                raise ConfigError("Job has no 'source' section")
            self._source = HBaseSourceReader(self._client, self._job.source)
        return self._source

    @property
    def client(self) -> HBaseClient:
        return self._client

    # ------------------------------------------
    # Sink side
    # ------------------------------------------

    def _coerced(self, records: Iterable[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
        schema = self.sink.config.schema
        for record in records:
            yield coerce_json_record(record, schema)

    def start_streaming(
        self,
        max_records: Optional[int] = None,
        interval_seconds: float = 0.1
    ) -> dict:
        """
        Stream records from the configured data stream URL into the sink.

        Args:
            max_records: Maximum records to ingest (None = until stopped)
            interval_seconds: Delay between fetches

        Returns:
            Summary statistics
        """
        print(f"🚀 Starting streaming ingestion from {self._config.data_stream_url}")
        if max_records:
            print(f"   → Will stop after {max_records} records")
        else:
            print("   → Press Ctrl+C to stop")

        self._is_running = True
        self._records_ingested = 0
        start_time = time.time()
        schema = self.sink.config.schema

        try:
            while self._is_running:
                if max_records and self._records_ingested >= max_records:
                    print(f"\n✓ Reached target of {max_records} records")
                    break

                record = self._fetch_record()
                if record is not None:
                    self.sink.write_one(coerce_json_record(record, schema))
                    self._records_ingested += 1
                    if self._records_ingested % 10 == 0:
                        print(f"   → Ingested {self._records_ingested} records...", end='\r')
                else:
                    self.sink.flush_due()

                time.sleep(interval_seconds)

        except KeyboardInterrupt:
            print("\n⚠ Interrupted by user")
        finally:
            self._is_running = False

        print("\n🔄 Flushing remaining records...")
        result = self.sink.flush()
        elapsed = time.time() - start_time

        summary = {
            "records_ingested": self._records_ingested,
            "elapsed_seconds": round(elapsed, 2),
            "records_per_second": round(self._records_ingested / elapsed, 2) if elapsed > 0 else 0,
            "result": result.to_dict(),
        }

        print(f"\n📊 Summary:")
        print(f"   → Total records: {summary['records_ingested']}")
        print(f"   → Written: {result.records_written}, rejected: {result.records_rejected}")
        print(f"   → Rate: {summary['records_per_second']} records/sec")
        return summary

    def stop_streaming(self) -> None:
        """Stop the streaming ingestion."""
        self._is_running = False
        self.sink.shutdown()

    def process_batch(self, records: List[Dict[str, Any]]) -> dict:
        """
        Write a batch of JSON records and flush.

        Returns:
            WriteResult as a dict
        """
        print(f"📥 Processing batch of {len(records)} records...")
        return self.sink.write(self._coerced(records)).to_dict()

    def ingest_file(self, path: str) -> dict:
        """Write every record of a JSON-lines file."""
        print(f"📥 Reading records from {path}")
        return self.sink.write(self._coerced(self._read_jsonl(path))).to_dict()

    @staticmethod
    def _read_jsonl(path: str) -> Iterator[Dict[str, Any]]:
        try:
            f = open(path, "r")
        except OSError as e:
            raise ConfigError(f"Cannot read records file '{path}': {e}") from e
        with f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as e:
                    raise ConfigError(f"{path}:{line_no}: invalid JSON: {e}") from e

    def _fetch_record(self) -> Optional[dict]:
        """
        Fetch a single record from the data stream.

        Returns:
            Record dictionary or None on error
        """
        try:
            response = requests.get(
                self._config.data_stream_url,
                timeout=5
            )
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            print(f"\n⚠ Failed to fetch record: {e}")
            return None

    # ------------------------------------------
    # Source side
    # ------------------------------------------

    def scan(self, table: Optional[str] = None, limit: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        records = self.source.scan(table)
        try:
            for count, record in enumerate(records, start=1):
                yield record
                if limit is not None and count >= limit:
                    break
        finally:
            records.close()

    def count_rows(self, table: str) -> int:
        return self._client.count_rows(table)

    def clear_table(self, table: str) -> int:
        return self._client.clear_table(table)

    def close(self) -> None:
        """Flush and close the sink, then release the connection pool."""
        try:
            if self._sink is not None:
                self._sink.close()
        finally:
            self._client.disconnect()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
