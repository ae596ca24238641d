from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import orjson

_ORJSON_NDJSON_OPTIONS = orjson.OPT_APPEND_NEWLINE


class RunLog:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.records_written = 0

    def write(self, record_type: str, payload: dict[str, Any] | None = None) -> None:
        record: dict[str, Any] = {
            "record_type": record_type,
            "ts_wall_ns_utc": time.time_ns(),
        }
        if payload:
            record.update(payload)
        line = orjson.dumps(record, option=_ORJSON_NDJSON_OPTIONS)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("ab") as handle:
            handle.write(line)
        self.records_written += 1


def read_runlog(path: str | Path) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    with Path(path).open("rb") as handle:
        for line in handle:
            if line.strip():
                records.append(orjson.loads(line))
    return records
