from __future__ import annotations

from dataclasses import dataclass, fields
import types
import typing
from typing import Any, get_args, get_origin

ENV_PREFIX = "DATA_FEED_"
CONTROL_FIELD_NAME = "."
OUTPUT_FORMATS = ("length_encoded", "ndjson")


def _parse_bool(value: str) -> bool:
    val = str(value).strip().lower()
    if val in {"1", "true", "yes", "y", "on"}:
        return True
    if val in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"invalid bool: {value}")


def _parse_number(value: str, target_type: type) -> Any:
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    return value


def _unwrap_optional(field_type: Any) -> tuple[Any, bool]:
    if isinstance(field_type, str):
        # postponed annotations arrive as text
        text = field_type.replace(" ", "")
        if text.endswith("|None"):
            return text[: -len("|None")], True
        return text, False
    origin = get_origin(field_type)
    union_type = getattr(types, "UnionType", None)
    if origin not in (typing.Union, union_type):
        return field_type, False
    args = get_args(field_type)
    if args and type(None) in args and len(args) == 2:
        base = args[0] if args[1] is type(None) else args[1]
        return base, True
    return field_type, False


def _is_field_type(field_type: Any, expected: type, expected_name: str) -> bool:
    base_type, _is_optional = _unwrap_optional(field_type)
    if base_type is expected:
        return True
    if isinstance(base_type, str) and base_type == expected_name:
        return True
    return False


def _base_type(field_type: Any) -> type:
    for expected, name in ((bool, "bool"), (int, "int"), (float, "float")):
        if _is_field_type(field_type, expected, name):
            return expected
    return str


def _parse_optional(raw: str, target_type: type) -> Any:
    text = str(raw).strip()
    if text == "":
        return None
    lower = text.lower()
    if lower in {"none", "null"}:
        return None
    if target_type is bool:
        return _parse_bool(text)
    return _parse_number(text, target_type)


def split_field_list(text: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in str(text).split(",") if part.strip())


@dataclass(frozen=True)
class FieldSchema:
    time_field: str
    fields: tuple[str, ...]

    def header(self) -> list[str]:
        return [self.time_field, *self.fields, CONTROL_FIELD_NAME]

    @property
    def input_fields(self) -> tuple[str, ...]:
        return (self.time_field, *self.fields)


@dataclass(frozen=True)
class AnalysisSettings:
    bucket_span_ms: int
    latency_ms: int = 0
    time_format: str = "epoch"


@dataclass
class Config:
    time_field: str = "time"
    time_format: str = "epoch"
    fields: str = "value"
    bucket_span_seconds: int = 300
    latency_seconds: int = 0
    max_consecutive_decode_errors: int = 100
    read_chunk_bytes: int = 65536
    output_format: str = "length_encoded"
    runlog_path: str | None = None
    latest_record_time_ms: int | None = None

    def apply_overrides(self, overrides: dict[str, Any]) -> "Config":
        for field in fields(self):
            name = field.name
            if name in overrides:
                value = overrides[name]
                if value is None:
                    _base, is_optional = _unwrap_optional(field.type)
                    if is_optional:
                        setattr(self, name, None)
                    continue
                setattr(self, name, value)
        return self

    @classmethod
    def from_env_and_cli(cls, cli_overrides: dict[str, Any], env: dict[str, str]) -> "Config":
        cfg = cls().apply_overrides(cli_overrides)
        for field in fields(cfg):
            env_key = ENV_PREFIX + field.name.upper()
            if env_key not in env:
                continue
            raw = env[env_key]
            _base, is_optional = _unwrap_optional(field.type)
            target_type = _base_type(field.type)
            if is_optional:
                value = _parse_optional(raw, target_type)
            elif target_type is bool:
                value = _parse_bool(raw)
            elif target_type in (int, float):
                value = _parse_number(raw, target_type)
            else:
                value = raw
            setattr(cfg, field.name, value)
        return cfg

    def validate(self) -> "Config":
        if not str(self.time_field).strip():
            raise ValueError("time_field must be non-empty")
        names = split_field_list(self.fields)
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate analysis fields: {self.fields}")
        if self.time_field in names:
            raise ValueError(f"time field {self.time_field!r} listed as an analysis field")
        if int(self.bucket_span_seconds) <= 0:
            raise ValueError("bucket_span_seconds must be > 0")
        if int(self.latency_seconds) < 0:
            raise ValueError("latency_seconds must be >= 0")
        if int(self.max_consecutive_decode_errors) < 0:
            raise ValueError("max_consecutive_decode_errors must be >= 0")
        if int(self.read_chunk_bytes) <= 0:
            raise ValueError("read_chunk_bytes must be > 0")
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"unknown output_format: {self.output_format}")
        return self

    def field_schema(self) -> FieldSchema:
        return FieldSchema(
            time_field=str(self.time_field).strip(),
            fields=split_field_list(self.fields),
        )

    def analysis_settings(self) -> AnalysisSettings:
        return AnalysisSettings(
            bucket_span_ms=int(self.bucket_span_seconds) * 1000,
            latency_ms=int(self.latency_seconds) * 1000,
            time_format=self.time_format,
        )
