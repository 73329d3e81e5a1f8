# ==============================================
# CLI: Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Provides command-line interface to run a connector job.
#
# COMMANDS:
# ---------
# 1. Write records into HBase (job file "sink" section):
#    python -m hbase_connector.cli sink --job job.json --input records.jsonl
#    python -m hbase_connector.cli sink --job job.json --stream --count 100
#
# 2. Scan a table (job file "source" section), one JSON record per line:
#    python -m hbase_connector.cli scan --job job.json --limit 10
#
# 3. Count rows of a table:
#    python -m hbase_connector.cli count --table seatunnel_test
#
# 4. Delete every row of a table (for testing):
#    python -m hbase_connector.cli clear --table seatunnel_test --confirm
#
# EXIT STATUS:
# ------------
#   0 on success, 1 on any ConnectorError (error kind, table and
#   record are printed), 2 on usage errors.
#
# ==============================================

import argparse
import json
import sys
from typing import List, Optional

from hbase_connector.config import JobConfig, get_config, load_job_config, validate_table_name
from hbase_connector.errors import ConnectorError
from hbase_connector.pipeline import StreamingPipeline, to_json_value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hbase_connector",
        description="Move records between JSON sources and HBase tables.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    sink = commands.add_parser("sink", help="write records into HBase")
    sink.add_argument("--job", required=True, help="JSON job file with a 'sink' section")
    origin = sink.add_mutually_exclusive_group(required=True)
    origin.add_argument("--input", help="JSON-lines file of records")
    origin.add_argument("--stream", action="store_true", help="pull records from DATA_STREAM_URL")
    sink.add_argument("--count", type=int, default=None, help="stop streaming after N records")
    sink.add_argument("--interval", type=float, default=0.1, help="delay between stream fetches")

    scan = commands.add_parser("scan", help="print the records of a table")
    scan.add_argument("--job", required=True, help="JSON job file with a 'source' section")
    scan.add_argument("--table", default=None, help="override the source table")
    scan.add_argument("--limit", type=int, default=None)

    count = commands.add_parser("count", help="count the rows of a table")
    count.add_argument("--table", required=True)

    clear = commands.add_parser("clear", help="delete every row of a table")
    clear.add_argument("--table", required=True)
    clear.add_argument("--confirm", action="store_true", help="required, deletes data")

    return parser


def _describe(error: ConnectorError) -> str:
    details = []
    for attr in ("table", "field", "failed_count", "rows_read", "record_index"):
        value = getattr(error, attr, None)
        if value not in (None, ""):
            details.append(f"{attr}={value}")
    suffix = f" [{', '.join(details)}]" if details else ""
    return f"{type(error).__name__}: {error}{suffix}"


def run(args: argparse.Namespace) -> int:
    config = get_config()

    if args.command in ("count", "clear"):
        validate_table_name(args.table)
        if args.command == "clear" and not args.confirm:
            print("✗ Refusing to clear without --confirm")
            return 2
        with StreamingPipeline(JobConfig(), config) as pipeline:
            if args.command == "count":
                print(pipeline.count_rows(args.table))
            else:
                pipeline.clear_table(args.table)
        return 0

    job = load_job_config(args.job, config)

    with StreamingPipeline(job, config) as pipeline:
        if args.command == "sink":
            if args.stream:
                summary = pipeline.start_streaming(max_records=args.count, interval_seconds=args.interval)
                result = summary["result"]
            else:
                result = pipeline.ingest_file(args.input)
            print(f"✓ Wrote {result['records_written']} records to {sorted(result['tables'])}")
        else:
            for record in pipeline.scan(args.table, limit=args.limit):
                print(json.dumps(record, default=to_json_value, ensure_ascii=False))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except ConnectorError as e:
        print(f"✗ {_describe(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
