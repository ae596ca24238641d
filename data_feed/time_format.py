from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal, DecimalException, InvalidOperation

EPOCH = "epoch"
EPOCH_MS = "epoch_ms"

# 9999-12-31T23:59:59.999Z, the last millisecond datetime can represent
MAX_EPOCH_MS = 253_402_300_799_999

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


class TimestampParseError(ValueError):
    pass


def _to_decimal(text: str) -> Decimal:
    try:
        value = Decimal(text.strip())
    except InvalidOperation as exc:
        raise TimestampParseError(f"cannot parse timestamp {text!r}") from exc
    if not value.is_finite():
        raise TimestampParseError(f"cannot parse timestamp {text!r}")
    return value


def _to_epoch_ms(text: str, scale: int) -> int:
    try:
        value = _to_decimal(text) * scale
    except DecimalException as exc:
        raise TimestampParseError(f"timestamp {text!r} out of range") from exc
    if value.copy_abs() > MAX_EPOCH_MS:
        raise TimestampParseError(f"timestamp {text!r} out of range")
    return int(value)


class DateTransformer:
    """epoch seconds, epoch_ms, or a strptime pattern (naive read as UTC) to epoch ms."""

    def __init__(self, time_format: str = EPOCH) -> None:
        fmt = str(time_format).strip()
        if fmt not in (EPOCH, EPOCH_MS) and "%" not in fmt:
            raise ValueError(f"invalid time format: {time_format!r}")
        self.time_format = fmt

    def transform(self, text: str) -> int:
        if self.time_format == EPOCH:
            return _to_epoch_ms(text, 1000)
        if self.time_format == EPOCH_MS:
            return _to_epoch_ms(text, 1)
        try:
            parsed = datetime.strptime(text.strip(), self.time_format)
        except ValueError as exc:
            raise TimestampParseError(
                f"cannot parse timestamp {text!r} with format {self.time_format!r}"
            ) from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return (parsed - _UNIX_EPOCH) // _ONE_MS
