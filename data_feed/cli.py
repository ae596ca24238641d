from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import fields
from pathlib import Path
from typing import Any

from .config import Config, _base_type, _is_field_type
from .counts import DataCountsReporter
from .diagnostics import BucketDiagnostics
from .json_decode import RecordParseError
from .process_writers import LengthEncodedWriter, NdjsonRecordWriter
from .runlog import RunLog
from .writer import DataToProcessWriter


def _str2bool(value: str | bool) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"invalid bool: {value}")


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    for field in fields(Config):
        name = field.name.replace("_", "-")
        if _is_field_type(field.type, bool, "bool"):
            group = parser.add_mutually_exclusive_group()
            group.add_argument(f"--{name}", dest=field.name, action="store_true")
            group.add_argument(f"--no-{name}", dest=field.name, action="store_false")
            parser.set_defaults(**{field.name: None})
        else:
            parser.add_argument(f"--{name}", dest=field.name, default=None)


def _cli_overrides(ns: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for field in fields(Config):
        value = getattr(ns, field.name, None)
        if value is None:
            continue
        target_type = _base_type(field.type)
        if target_type is bool:
            overrides[field.name] = _str2bool(value)
        elif target_type is int:
            overrides[field.name] = int(value)
        elif target_type is float:
            overrides[field.name] = float(value)
        else:
            overrides[field.name] = value
    return overrides


def _open_process(config: Config, handle):
    if config.output_format == "ndjson":
        return NdjsonRecordWriter(handle)
    return LengthEncodedWriter(handle)


def run_write(config: Config, input_path: Path, output_path: Path) -> dict[str, Any]:
    schema = config.field_schema()
    settings = config.analysis_settings()
    diagnostics = BucketDiagnostics(settings.bucket_span_ms)
    reporter = DataCountsReporter(diagnostics=diagnostics)
    runlog = RunLog(config.runlog_path) if config.runlog_path else None
    if runlog is not None:
        runlog.write(
            "session_start",
            {
                "input": str(input_path),
                "output": str(output_path),
                "fields": list(schema.input_fields),
                "bucket_span_ms": settings.bucket_span_ms,
                "latency_ms": settings.latency_ms,
            },
        )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with input_path.open("rb") as source, output_path.open("wb") as sink:
        process = _open_process(config, sink)
        writer = DataToProcessWriter(
            schema,
            settings,
            process,
            reporter,
            diagnostics=diagnostics,
            latest_record_time_ms=config.latest_record_time_ms,
            max_consecutive_errors=config.max_consecutive_decode_errors,
            chunk_size=config.read_chunk_bytes,
        )
        writer.write_header()
        try:
            session = writer.write(source)
        except RecordParseError as exc:
            if runlog is not None:
                runlog.write("session_failed", {"error": str(exc)})
            raise
        finally:
            process.flush()
    summary = {
        "session": session.to_dict(),
        "counts": reporter.counts().to_dict(),
    }
    if runlog is not None:
        runlog.write("session_summary", summary)
    return summary


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="data_feed")
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="command", required=True)

    write_parser = sub.add_parser("write", help="write JSON records to the analysis input")
    write_parser.add_argument("--input", required=True)
    write_parser.add_argument("--output", required=True)
    _add_config_args(write_parser)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "write":
        try:
            config = Config.from_env_and_cli(_cli_overrides(args), dict(os.environ)).validate()
        except ValueError as exc:
            parser.error(str(exc))
        try:
            summary = run_write(config, Path(args.input), Path(args.output))
        except RecordParseError as exc:
            print(f"parse error: {exc}", file=sys.stderr)
            return 2
        print(json.dumps(summary, ensure_ascii=True, sort_keys=True))
        return 0
    return 1
