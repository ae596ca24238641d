from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Protocol

from .diagnostics import BucketDiagnostics


class CountsReporter(Protocol):
    def start_new_incremental_count(self) -> None: ...

    def report_record_written(self, count_in_bucket: int, bucket_start_ms: int) -> None: ...

    def report_out_of_order_record(self, buckets_late: int) -> None: ...

    def report_missing_fields(self, total: int) -> None: ...

    def report_date_parse_error(self, fields_read: int) -> None: ...

    def report_latest_time_incremental_stats(self, latest_time_ms: int) -> None: ...

    def finish_reporting(self) -> None: ...


@dataclass
class DataCounts:
    processed_record_count: int = 0
    out_of_order_record_count: int = 0
    out_of_order_buckets_late_max: int = 0
    missing_field_count: int = 0
    date_parse_error_count: int = 0
    date_parse_error_fields_read: int = 0
    latest_bucket_start_ms: int | None = None
    latest_bucket_record_count: int = 0
    latest_record_time_ms: int | None = None
    bucket_count: int = 0
    empty_bucket_count: int = 0
    sparse_bucket_count: int = 0
    latest_empty_bucket_time_ms: int | None = None
    latest_sparse_bucket_time_ms: int | None = None

    def merge(self, other: "DataCounts") -> None:
        self.processed_record_count += other.processed_record_count
        self.out_of_order_record_count += other.out_of_order_record_count
        self.out_of_order_buckets_late_max = max(
            self.out_of_order_buckets_late_max, other.out_of_order_buckets_late_max
        )
        self.missing_field_count += other.missing_field_count
        self.date_parse_error_count += other.date_parse_error_count
        self.date_parse_error_fields_read += other.date_parse_error_fields_read
        mine, theirs = self.latest_bucket_start_ms, other.latest_bucket_start_ms
        if theirs is not None:
            if mine == theirs:
                self.latest_bucket_record_count += other.latest_bucket_record_count
            elif mine is None or theirs > mine:
                self.latest_bucket_record_count = other.latest_bucket_record_count
        self.latest_bucket_start_ms = _max_optional(
            self.latest_bucket_start_ms, other.latest_bucket_start_ms
        )
        self.latest_record_time_ms = _max_optional(
            self.latest_record_time_ms, other.latest_record_time_ms
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _max_optional(left: int | None, right: int | None) -> int | None:
    if left is None:
        return right
    if right is None:
        return left
    return max(left, right)


class DataCountsReporter:
    def __init__(self, diagnostics: BucketDiagnostics | None = None) -> None:
        self.diagnostics = diagnostics
        self.total = DataCounts()
        self.incremental = DataCounts()
        self.sessions_started = 0
        self.sessions_finished = 0
        self.reporting = False

    def start_new_incremental_count(self) -> None:
        self.incremental = DataCounts()
        self.sessions_started += 1
        self.reporting = True

    def report_record_written(self, count_in_bucket: int, bucket_start_ms: int) -> None:
        self.incremental.processed_record_count += 1
        bucket_start_ms = int(bucket_start_ms)
        latest = self.incremental.latest_bucket_start_ms
        if latest is None or bucket_start_ms >= latest:
            self.incremental.latest_bucket_start_ms = bucket_start_ms
            self.incremental.latest_bucket_record_count = int(count_in_bucket)

    def report_out_of_order_record(self, buckets_late: int) -> None:
        self.incremental.out_of_order_record_count += 1
        self.incremental.out_of_order_buckets_late_max = max(
            self.incremental.out_of_order_buckets_late_max, int(buckets_late)
        )

    def report_missing_fields(self, total: int) -> None:
        self.incremental.missing_field_count += int(total)

    def report_date_parse_error(self, fields_read: int) -> None:
        self.incremental.date_parse_error_count += 1
        self.incremental.date_parse_error_fields_read += int(fields_read)

    def report_latest_time_incremental_stats(self, latest_time_ms: int) -> None:
        self.incremental.latest_record_time_ms = _max_optional(
            self.incremental.latest_record_time_ms, int(latest_time_ms)
        )

    def finish_reporting(self) -> None:
        self.total.merge(self.incremental)
        self.sessions_finished += 1
        self.reporting = False

    def get_bucket_count(self) -> int:
        return 0 if self.diagnostics is None else self.diagnostics.get_bucket_count()

    def get_empty_bucket_count(self) -> int:
        return 0 if self.diagnostics is None else self.diagnostics.get_empty_bucket_count()

    def get_sparse_bucket_count(self) -> int:
        return 0 if self.diagnostics is None else self.diagnostics.get_sparse_bucket_count()

    def get_latest_empty_bucket_time(self) -> int | None:
        return None if self.diagnostics is None else self.diagnostics.get_latest_empty_bucket_time()

    def get_latest_sparse_bucket_time(self) -> int | None:
        if self.diagnostics is None:
            return None
        return self.diagnostics.get_latest_sparse_bucket_time()

    def counts(self) -> DataCounts:
        snapshot = DataCounts(**asdict(self.total))
        if self.reporting:
            snapshot.merge(self.incremental)
        snapshot.bucket_count = self.get_bucket_count()
        snapshot.empty_bucket_count = self.get_empty_bucket_count()
        snapshot.sparse_bucket_count = self.get_sparse_bucket_count()
        snapshot.latest_empty_bucket_time_ms = self.get_latest_empty_bucket_time()
        snapshot.latest_sparse_bucket_time_ms = self.get_latest_sparse_bucket_time()
        return snapshot

    def stats(self) -> dict[str, Any]:
        payload = self.counts().to_dict()
        payload["sessions_started"] = self.sessions_started
        payload["sessions_finished"] = self.sessions_finished
        return payload
