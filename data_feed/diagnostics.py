from __future__ import annotations

from collections import deque
import logging
import math
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 10
# log(baseline) - log(count) above this marks a bucket sparse (count < baseline / e**2)
DEFAULT_SPARSITY_THRESHOLD = 2.0


class BucketDiagnostics:
    """Epoch-aligned bucket counts; the bucket open at flush is never sparse."""

    def __init__(
        self,
        bucket_span_ms: int,
        *,
        history_size: int = DEFAULT_HISTORY_SIZE,
        sparsity_threshold: float = DEFAULT_SPARSITY_THRESHOLD,
    ) -> None:
        if bucket_span_ms <= 0:
            raise ValueError("bucket_span_ms must be > 0")
        self.bucket_span_ms = int(bucket_span_ms)
        self.sparsity_threshold = float(sparsity_threshold)
        self._history: deque[int] = deque(maxlen=max(1, int(history_size)))
        self._open_bucket: int | None = None
        self._open_count = 0
        self._open_counted = False
        self._closed_buckets = 0
        self._empty_buckets = 0
        self._sparse_buckets = 0
        self._latest_empty_bucket: int | None = None
        self._latest_sparse_bucket: int | None = None

    def check_record(self, record_time_ms: int) -> None:
        bucket = int(record_time_ms) // self.bucket_span_ms
        if self._open_bucket is None:
            self._open_bucket = bucket
            self._open_count = 1
            return
        if bucket == self._open_bucket:
            self._open_count += 1
            return
        if bucket < self._open_bucket:
            logger.debug(
                "ignoring timestamp %d behind open bucket %d", record_time_ms, self._open_bucket
            )
            return
        self._close_bucket(self._open_bucket, self._open_count)
        for empty_bucket in range(self._open_bucket + 1, bucket):
            self._close_bucket(empty_bucket, 0)
        self._open_bucket = bucket
        self._open_count = 1
        self._open_counted = False

    def flush(self) -> None:
        if self._open_bucket is None or self._open_counted:
            return
        self._closed_buckets += 1
        self._open_counted = True

    def _close_bucket(self, bucket: int, count: int) -> None:
        if not self._open_counted:
            self._closed_buckets += 1
        self._open_counted = False
        if count == 0:
            self._empty_buckets += 1
            self._latest_empty_bucket = bucket
            return
        if self._history:
            baseline = sum(self._history) / len(self._history)
            score = math.log(baseline) - math.log(count)
            if score > self.sparsity_threshold:
                logger.debug(
                    "sparse bucket %d: count %d baseline %.1f score %.2f",
                    bucket,
                    count,
                    baseline,
                    score,
                )
                self._sparse_buckets += 1
                self._latest_sparse_bucket = bucket
                return
        self._history.append(count)

    def _bucket_time(self, bucket: int | None) -> int | None:
        if bucket is None:
            return None
        return bucket * self.bucket_span_ms

    def get_bucket_count(self) -> int:
        return self._closed_buckets

    def get_empty_bucket_count(self) -> int:
        return self._empty_buckets

    def get_sparse_bucket_count(self) -> int:
        return self._sparse_buckets

    def get_latest_empty_bucket_time(self) -> int | None:
        return self._bucket_time(self._latest_empty_bucket)

    def get_latest_sparse_bucket_time(self) -> int | None:
        return self._bucket_time(self._latest_sparse_bucket)

    def counts(self) -> dict[str, Any]:
        return {
            "bucket_count": self.get_bucket_count(),
            "empty_bucket_count": self.get_empty_bucket_count(),
            "sparse_bucket_count": self.get_sparse_bucket_count(),
            "latest_empty_bucket_time_ms": self.get_latest_empty_bucket_time(),
            "latest_sparse_bucket_time_ms": self.get_latest_sparse_bucket_time(),
        }
