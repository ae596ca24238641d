from __future__ import annotations

import heapq
import itertools
from typing import Iterator

from .fields import ExtractedRecord


class LatencyBuffer:
    def __init__(self) -> None:
        self._heap: list[tuple[int, int, ExtractedRecord]] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    @property
    def oldest_time_ms(self) -> int | None:
        if not self._heap:
            return None
        return self._heap[0][0]

    def insert(self, record: ExtractedRecord) -> None:
        heapq.heappush(self._heap, (record.time_ms, next(self._seq), record))

    def drain_ready(self, threshold_ms: int) -> Iterator[ExtractedRecord]:
        while self._heap and self._heap[0][0] <= threshold_ms:
            yield heapq.heappop(self._heap)[2]

    def drain_all(self) -> Iterator[ExtractedRecord]:
        while self._heap:
            yield heapq.heappop(self._heap)[2]
