from __future__ import annotations

from dataclasses import dataclass
import enum
import logging
from typing import Any, BinaryIO

from .config import AnalysisSettings, FieldSchema
from .counts import CountsReporter
from .diagnostics import BucketDiagnostics
from .fields import ExtractedRecord, FieldExtractor
from .json_decode import JsonRecordReader
from .latency_buffer import LatencyBuffer
from .process_writers import RecordProcess
from .time_format import DateTransformer, TimestampParseError

logger = logging.getLogger(__name__)


class WriterState(enum.Enum):
    AWAITING_FIRST = "awaiting_first"
    STREAMING = "streaming"
    FINISHED = "finished"


@dataclass
class WriteSession:
    decoded_units: int = 0
    records_read: int = 0
    records_written: int = 0
    out_of_order_records: int = 0
    date_parse_errors: int = 0
    missing_fields: int = 0
    malformed_units: int = 0
    skipped_units: int = 0
    first_record_time_ms: int | None = None
    latest_record_time_ms: int | None = None
    max_buffered: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "decoded_units": int(self.decoded_units),
            "records_read": int(self.records_read),
            "records_written": int(self.records_written),
            "out_of_order_records": int(self.out_of_order_records),
            "date_parse_errors": int(self.date_parse_errors),
            "missing_fields": int(self.missing_fields),
            "malformed_units": int(self.malformed_units),
            "skipped_units": int(self.skipped_units),
            "first_record_time_ms": self.first_record_time_ms,
            "latest_record_time_ms": self.latest_record_time_ms,
            "max_buffered": int(self.max_buffered),
        }


class DataToProcessWriter:
    def __init__(
        self,
        schema: FieldSchema,
        settings: AnalysisSettings,
        process: RecordProcess,
        reporter: CountsReporter,
        *,
        diagnostics: BucketDiagnostics | None = None,
        latest_record_time_ms: int | None = None,
        max_consecutive_errors: int = 100,
        chunk_size: int = 65536,
    ) -> None:
        if settings.bucket_span_ms <= 0:
            raise ValueError("bucket_span_ms must be > 0")
        if settings.latency_ms < 0:
            raise ValueError("latency_ms must be >= 0")
        self.schema = schema
        self.settings = settings
        self.process = process
        self.reporter = reporter
        self.diagnostics = diagnostics
        self.resume_time_ms = latest_record_time_ms
        self.max_consecutive_errors = max_consecutive_errors
        self.chunk_size = chunk_size
        self.state = WriterState.AWAITING_FIRST
        self._extractor = FieldExtractor(schema)
        self._dates = DateTransformer(settings.time_format)
        self._buffer = LatencyBuffer()
        self._session = WriteSession()
        self._max_time_seen: int | None = None
        self._latest_this_session: int | None = None
        self._bucket_index: int | None = None
        self._bucket_written = 0

    def write_header(self) -> None:
        self.process.write_record(self.schema.header())

    def write(self, stream: BinaryIO) -> WriteSession:
        self._start_session()
        self.reporter.start_new_incremental_count()
        reader = JsonRecordReader(
            stream,
            chunk_size=self.chunk_size,
            max_consecutive_errors=self.max_consecutive_errors,
        )
        try:
            for raw in reader:
                self._session.records_read += 1
                record = self._extract(raw)
                if record is not None:
                    self._accept(record)
        finally:
            self._session.decoded_units = reader.stats.units
            self._session.malformed_units = reader.stats.malformed_units
            self._session.skipped_units = reader.stats.skipped_units
        self._finish()
        return self._session

    def _start_session(self) -> None:
        self.state = WriterState.AWAITING_FIRST
        self._buffer = LatencyBuffer()
        self._session = WriteSession()
        self._max_time_seen = self.resume_time_ms
        self._latest_this_session = None
        self._bucket_index = None
        self._bucket_written = 0

    def _extract(self, raw: dict[str, Any]) -> ExtractedRecord | None:
        extraction = self._extractor.extract(raw)
        try:
            if extraction.time_text is None:
                raise TimestampParseError(f"missing time field {self.schema.time_field!r}")
            time_ms = self._dates.transform(extraction.time_text)
        except TimestampParseError as exc:
            self._session.date_parse_errors += 1
            self.reporter.report_date_parse_error(extraction.fields_read)
            logger.warning("dropping record %d: %s", self._session.records_read, exc)
            return None
        self._session.missing_fields += extraction.missing_count
        return ExtractedRecord(time_ms=time_ms, values=extraction.values)

    def _accept(self, record: ExtractedRecord) -> None:
        time_ms = record.time_ms
        if self.state is WriterState.AWAITING_FIRST:
            self.state = WriterState.STREAMING
            self._session.first_record_time_ms = time_ms
        latency_ms = self.settings.latency_ms
        if self._max_time_seen is not None and time_ms < self._max_time_seen - latency_ms:
            self._reject_out_of_order(time_ms)
            return
        if self._max_time_seen is None or time_ms > self._max_time_seen:
            self._max_time_seen = time_ms
        self._note_latest(time_ms)
        self._buffer.insert(record)
        if len(self._buffer) > self._session.max_buffered:
            self._session.max_buffered = len(self._buffer)
        for ready in self._buffer.drain_ready(self._max_time_seen - latency_ms):
            self._emit(ready)

    def _reject_out_of_order(self, time_ms: int) -> None:
        span = self.settings.bucket_span_ms
        buckets_late = self._max_time_seen // span - time_ms // span
        self._session.out_of_order_records += 1
        self.reporter.report_out_of_order_record(buckets_late)
        if self._latest_this_session is None or time_ms > self._latest_this_session:
            # resumed sessions still track how far this upload reached
            self._note_latest(time_ms)
            self.reporter.report_latest_time_incremental_stats(time_ms)

    def _note_latest(self, time_ms: int) -> None:
        if self._latest_this_session is None or time_ms > self._latest_this_session:
            self._latest_this_session = time_ms
            self._session.latest_record_time_ms = time_ms

    def _emit(self, record: ExtractedRecord) -> None:
        span = self.settings.bucket_span_ms
        bucket = record.time_ms // span
        if bucket != self._bucket_index:
            self._bucket_index = bucket
            self._bucket_written = 0
        self._bucket_written += 1
        self.process.write_record(record.to_vector())
        self._session.records_written += 1
        self.reporter.report_record_written(self._bucket_written, bucket * span)
        if self.diagnostics is not None:
            self.diagnostics.check_record(record.time_ms)

    def _finish(self) -> None:
        for record in self._buffer.drain_all():
            self._emit(record)
        if self.diagnostics is not None:
            self.diagnostics.flush()
        if self._session.missing_fields > 0:
            self.reporter.report_missing_fields(self._session.missing_fields)
        self.reporter.finish_reporting()
        self.state = WriterState.FINISHED
        logger.info(
            "wrote %d of %d records (%d out of order, %d date parse errors, %d missing fields)",
            self._session.records_written,
            self._session.records_read,
            self._session.out_of_order_records,
            self._session.date_parse_errors,
            self._session.missing_fields,
        )
