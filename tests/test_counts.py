from data_feed.counts import DataCountsReporter
from data_feed.diagnostics import BucketDiagnostics


def test_incremental_counts_merge_into_total() -> None:
    reporter = DataCountsReporter()
    reporter.start_new_incremental_count()
    reporter.report_record_written(1, 0)
    reporter.report_record_written(2, 0)
    reporter.report_out_of_order_record(3)
    reporter.report_date_parse_error(1)
    reporter.report_missing_fields(4)
    assert reporter.counts().processed_record_count == 2
    reporter.finish_reporting()

    reporter.start_new_incremental_count()
    reporter.report_record_written(1, 300_000)
    reporter.report_out_of_order_record(1)
    reporter.report_latest_time_incremental_stats(5_000)
    reporter.finish_reporting()

    counts = reporter.counts()
    assert counts.processed_record_count == 3
    assert counts.out_of_order_record_count == 2
    assert counts.out_of_order_buckets_late_max == 3
    assert counts.date_parse_error_count == 1
    assert counts.date_parse_error_fields_read == 1
    assert counts.missing_field_count == 4
    assert counts.latest_bucket_start_ms == 300_000
    assert counts.latest_bucket_record_count == 1
    assert counts.latest_record_time_ms == 5_000
    assert reporter.incremental.processed_record_count == 1
    assert reporter.sessions_started == 2
    assert reporter.sessions_finished == 2


def test_diagnostics_view() -> None:
    diagnostics = BucketDiagnostics(60_000)
    reporter = DataCountsReporter(diagnostics=diagnostics)
    for ts in (0, 130_000):
        diagnostics.check_record(ts)
    diagnostics.flush()
    assert reporter.get_bucket_count() == 3
    assert reporter.get_empty_bucket_count() == 1
    assert reporter.get_latest_empty_bucket_time() == 60_000
    assert reporter.get_sparse_bucket_count() == 0
    assert reporter.get_latest_sparse_bucket_time() is None
    stats = reporter.stats()
    assert stats["bucket_count"] == 3
    assert stats["sessions_started"] == 0


def test_without_diagnostics() -> None:
    reporter = DataCountsReporter()
    assert reporter.get_bucket_count() == 0
    assert reporter.get_latest_empty_bucket_time() is None


def test_latest_bucket_record_count_spans_sessions() -> None:
    reporter = DataCountsReporter()
    reporter.start_new_incremental_count()
    reporter.report_record_written(1, 0)
    reporter.report_record_written(1, 60_000)
    reporter.report_record_written(2, 60_000)
    assert reporter.counts().latest_bucket_record_count == 2
    reporter.finish_reporting()

    reporter.start_new_incremental_count()
    reporter.report_record_written(1, 60_000)
    reporter.finish_reporting()
    counts = reporter.counts()
    assert counts.latest_bucket_start_ms == 60_000
    assert counts.latest_bucket_record_count == 3
    assert reporter.stats()["latest_bucket_record_count"] == 3

    reporter.start_new_incremental_count()
    reporter.report_record_written(1, 120_000)
    reporter.finish_reporting()
    assert reporter.counts().latest_bucket_record_count == 1
