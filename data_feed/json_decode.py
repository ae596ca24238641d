from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Any, BinaryIO, Iterable, Iterator

import orjson

logger = logging.getLogger(__name__)

_OPENERS = b"{["
_CLOSERS = b"}]"
_QUOTE = ord('"')
_BACKSLASH = ord("\\")

_STRUCTURAL_RE = re.compile(rb'["{}\[\]]')
_IN_STRING_RE = re.compile(rb'["\\]')
_UNIT_START_RE = re.compile(rb"[{\[]")
_NON_WHITESPACE_RE = re.compile(rb"[^ \t\r\n]")

_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)
_NUMBER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_WS_RE = re.compile(r"[ \t\r\n]*")
_LITERALS = (("true", True), ("false", False), ("null", None))


class RecordParseError(ValueError):
    pass


class _SalvageStop(Exception):
    pass


class _Salvager:
    """Recursive-descent reader that keeps whatever parsed before the first error."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def _peek(self) -> str:
        self.pos = _WS_RE.match(self.text, self.pos).end()
        if self.pos >= len(self.text):
            return ""
        return self.text[self.pos]

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            raise _SalvageStop
        self.pos += 1

    def _string(self) -> str:
        self._peek()
        match = _STRING_RE.match(self.text, self.pos)
        if match is None:
            raise _SalvageStop
        try:
            value = orjson.loads(match.group(0))
        except orjson.JSONDecodeError as exc:
            raise _SalvageStop from exc
        self.pos = match.end()
        return value

    def _scalar(self) -> Any:
        char = self._peek()
        if char == '"':
            return self._string()
        for literal, value in _LITERALS:
            if self.text.startswith(literal, self.pos):
                self.pos += len(literal)
                return value
        match = _NUMBER_RE.match(self.text, self.pos)
        if match is None or match.end() == self.pos:
            raise _SalvageStop
        self.pos = match.end()
        return orjson.loads(match.group(0))

    def _value(self) -> tuple[Any, bool]:
        char = self._peek()
        if char == "{":
            return {}, True
        if char == "[":
            return [], True
        return self._scalar(), False

    def _fill(self, container: Any) -> None:
        if isinstance(container, dict):
            self.parse_object(container)
        else:
            self.parse_array(container)

    def parse_object(self, target: dict[str, Any]) -> None:
        self._expect("{")
        if self._peek() == "}":
            self.pos += 1
            return
        while True:
            key = self._string()
            self._expect(":")
            value, nested = self._value()
            target[key] = value
            if nested:
                self._fill(value)
            char = self._peek()
            if char == ",":
                self.pos += 1
                continue
            if char == "}":
                self.pos += 1
                return
            raise _SalvageStop

    def parse_array(self, target: list[Any]) -> None:
        self._expect("[")
        if self._peek() == "]":
            self.pos += 1
            return
        while True:
            value, nested = self._value()
            target.append(value)
            if nested:
                self._fill(value)
            char = self._peek()
            if char == ",":
                self.pos += 1
                continue
            if char == "]":
                self.pos += 1
                return
            raise _SalvageStop


def salvage_record(unit: bytes) -> dict[str, Any] | None:
    """Best-effort decode of a malformed object unit; None if nothing usable parsed."""
    text = unit.decode("utf-8", errors="replace").lstrip()
    if not text.startswith("{"):
        return None
    record: dict[str, Any] = {}
    try:
        _Salvager(text).parse_object(record)
    except (_SalvageStop, RecursionError):
        pass
    return record or None


def _iter_items(payload: Any) -> Iterable[dict[str, Any]]:
    if isinstance(payload, list):
        for item in payload:
            if isinstance(item, dict):
                yield item
    elif isinstance(payload, dict):
        yield payload


@dataclass
class DecodeStats:
    units: int = 0
    records: int = 0
    malformed_units: int = 0
    skipped_units: int = 0


class JsonRecordReader:
    """Brace-balanced JSON records from a byte stream; bad units are salvaged or skipped."""

    def __init__(
        self,
        stream: BinaryIO,
        *,
        chunk_size: int = 65536,
        max_consecutive_errors: int = 100,
    ) -> None:
        self._stream = stream
        self._chunk_size = max(1, int(chunk_size))
        self._max_consecutive_errors = max(0, int(max_consecutive_errors))
        self._buf = bytearray()
        self._pos = 0
        self._offset = 0
        self._eof = False
        self._consecutive_errors = 0
        self.stats = DecodeStats()

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return self.iter_records()

    def iter_records(self) -> Iterator[dict[str, Any]]:
        while True:
            unit = self._next_unit()
            if unit is None:
                return
            for record in self._decode_unit(unit):
                self.stats.records += 1
                yield record

    def _fill(self) -> bool:
        if self._eof:
            return False
        chunk = self._stream.read(self._chunk_size)
        if not chunk:
            self._eof = True
            return False
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buf.extend(chunk)
        return True

    def _compact(self) -> None:
        if self._pos:
            del self._buf[: self._pos]
            self._offset += self._pos
            self._pos = 0

    def _record_error(self, message: str) -> None:
        self._consecutive_errors += 1
        logger.warning("%s at offset %d", message, self._offset + self._pos)
        if self._consecutive_errors > self._max_consecutive_errors:
            raise RecordParseError(
                f"failed to parse JSON input: {self._consecutive_errors} consecutive bad records"
            )

    def _seek_unit_start(self) -> bool:
        skipped = False
        while True:
            match = _UNIT_START_RE.search(self._buf, self._pos)
            if match is not None:
                if _NON_WHITESPACE_RE.search(self._buf, self._pos, match.start()):
                    skipped = True
                self._pos = match.start()
                break
            if _NON_WHITESPACE_RE.search(self._buf, self._pos):
                skipped = True
            self._pos = len(self._buf)
            self._compact()
            if not self._fill():
                break
        if skipped:
            self.stats.skipped_units += 1
            self._record_error("skipped bytes outside of a JSON record")
        return self._pos < len(self._buf)

    def _next_unit(self) -> bytes | None:
        self._compact()
        if not self._seek_unit_start():
            return None
        self._compact()
        depth = 0
        in_string = False
        scan = 0
        while True:
            pattern = _IN_STRING_RE if in_string else _STRUCTURAL_RE
            match = pattern.search(self._buf, scan)
            if match is None:
                scan = len(self._buf)
                if not self._fill():
                    raise RecordParseError(
                        f"unterminated JSON record at offset {self._offset} at end of input"
                    )
                continue
            idx = match.start()
            byte = self._buf[idx]
            scan = idx + 1
            if in_string:
                if byte == _BACKSLASH:
                    if scan >= len(self._buf) and not self._fill():
                        raise RecordParseError(
                            f"unterminated JSON record at offset {self._offset} at end of input"
                        )
                    scan += 1
                else:
                    in_string = False
            elif byte == _QUOTE:
                in_string = True
            elif byte in _OPENERS:
                depth += 1
            elif byte in _CLOSERS:
                depth -= 1
                if depth == 0:
                    self._pos = scan
                    self.stats.units += 1
                    return bytes(self._buf[:scan])

    def _decode_unit(self, unit: bytes) -> list[dict[str, Any]]:
        try:
            payload = orjson.loads(unit)
        except orjson.JSONDecodeError:
            partial = salvage_record(unit)
            if partial is None:
                self.stats.skipped_units += 1
                self._record_error("skipped undecodable JSON record")
                return []
            self.stats.malformed_units += 1
            self._record_error("salvaged fields from malformed JSON record")
            return [partial]
        self._consecutive_errors = 0
        return list(_iter_items(payload))
