from __future__ import annotations

import struct
from typing import BinaryIO, Protocol, Sequence

import orjson

_INT32 = struct.Struct(">i")
_ORJSON_NDJSON_OPTIONS = orjson.OPT_APPEND_NEWLINE


class RecordProcess(Protocol):
    def write_record(self, fields: Sequence[str]) -> None: ...


class LengthEncodedWriter:
    """Analysis process input: int32 field count, then int32 length + UTF-8 per field."""

    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle
        self.records_written = 0
        self.bytes_written = 0

    def write_record(self, fields: Sequence[str]) -> None:
        parts = [_INT32.pack(len(fields))]
        for field in fields:
            encoded = field.encode("utf-8")
            parts.append(_INT32.pack(len(encoded)))
            parts.append(encoded)
        payload = b"".join(parts)
        self._handle.write(payload)
        self.records_written += 1
        self.bytes_written += len(payload)

    def flush(self) -> None:
        self._handle.flush()


def read_length_encoded(data: bytes) -> list[list[str]]:
    records: list[list[str]] = []
    offset = 0
    size = len(data)
    while offset < size:
        if size - offset < _INT32.size:
            raise ValueError(f"truncated field count at offset {offset}")
        (num_fields,) = _INT32.unpack_from(data, offset)
        offset += _INT32.size
        if num_fields < 0:
            raise ValueError(f"negative field count at offset {offset - _INT32.size}")
        record: list[str] = []
        for _ in range(num_fields):
            if size - offset < _INT32.size:
                raise ValueError(f"truncated field length at offset {offset}")
            (length,) = _INT32.unpack_from(data, offset)
            offset += _INT32.size
            if length < 0 or size - offset < length:
                raise ValueError(f"truncated field at offset {offset}")
            record.append(data[offset : offset + length].decode("utf-8"))
            offset += length
        records.append(record)
    return records


class NdjsonRecordWriter:
    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle
        self.records_written = 0
        self.bytes_written = 0

    def write_record(self, fields: Sequence[str]) -> None:
        line = orjson.dumps(list(fields), option=_ORJSON_NDJSON_OPTIONS)
        self._handle.write(line)
        self.records_written += 1
        self.bytes_written += len(line)

    def flush(self) -> None:
        self._handle.flush()


class ListRecordProcess:
    def __init__(self) -> None:
        self.records: list[list[str]] = []

    @property
    def records_written(self) -> int:
        return len(self.records)

    def write_record(self, fields: Sequence[str]) -> None:
        self.records.append(list(fields))
