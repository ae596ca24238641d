from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from .config import FieldSchema


@dataclass(frozen=True, slots=True)
class Resolved:
    value: str


@dataclass(frozen=True, slots=True)
class Missing:
    pass


@dataclass(frozen=True, slots=True)
class NotScalar:
    pass


Resolution = Union[Resolved, Missing, NotScalar]

MISSING = Missing()
NOT_SCALAR = NotScalar()


@dataclass(frozen=True, slots=True)
class ExtractedRecord:
    time_ms: int
    values: tuple[str, ...]
    control: str = ""

    def to_vector(self) -> list[str]:
        return [str(self.time_ms // 1000), *self.values, self.control]


def scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    return str(value)


def _resolve_value(value: Any) -> Resolution:
    if value is None:
        return MISSING
    if isinstance(value, list):
        return NOT_SCALAR
    if isinstance(value, Mapping):
        return MISSING
    return Resolved(scalar_text(value))


def resolve_path(record: Mapping[str, Any], path: str) -> Resolution:
    """Look up a dotted path; a literal key matching the whole path wins."""
    if path in record:
        return _resolve_value(record[path])
    current: Any = record
    for segment in path.split("."):
        if isinstance(current, list):
            return NOT_SCALAR
        if not isinstance(current, Mapping) or segment not in current:
            return MISSING
        current = current[segment]
    return _resolve_value(current)


@dataclass(frozen=True, slots=True)
class Extraction:
    time_text: str | None
    values: tuple[str, ...]
    missing_count: int
    fields_read: int


class FieldExtractor:
    def __init__(self, schema: FieldSchema) -> None:
        self.schema = schema

    def extract(self, record: Mapping[str, Any]) -> Extraction:
        time_res = resolve_path(record, self.schema.time_field)
        time_text = time_res.value if isinstance(time_res, Resolved) else None
        fields_read = 1 if time_text is not None else 0
        values: list[str] = []
        missing = 0
        for name in self.schema.fields:
            res = resolve_path(record, name)
            if isinstance(res, Resolved):
                values.append(res.value)
                fields_read += 1
            elif isinstance(res, Missing):
                values.append("")
                missing += 1
            else:
                values.append("")
        return Extraction(
            time_text=time_text,
            values=tuple(values),
            missing_count=missing,
            fields_read=fields_read,
        )
