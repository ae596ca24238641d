from data_feed.config import FieldSchema
from data_feed.fields import (
    ExtractedRecord,
    FieldExtractor,
    Missing,
    NotScalar,
    Resolved,
    resolve_path,
)


def test_resolve_scalars() -> None:
    record = {"s": "text", "i": 3, "f": 2.5, "t": True, "n": False}
    assert resolve_path(record, "s") == Resolved("text")
    assert resolve_path(record, "i") == Resolved("3")
    assert resolve_path(record, "f") == Resolved("2.5")
    assert resolve_path(record, "t") == Resolved("true")
    assert resolve_path(record, "n") == Resolved("false")


def test_resolve_nested_path() -> None:
    record = {"nested": {"deeper": {"value": "2.0"}}}
    assert resolve_path(record, "nested.deeper.value") == Resolved("2.0")


def test_literal_dotted_key_wins() -> None:
    record = {"a.b": "flat", "a": {"b": "nested"}}
    assert resolve_path(record, "a.b") == Resolved("flat")


def test_missing_paths() -> None:
    record = {"a": {"b": "x"}, "s": "scalar", "z": None}
    assert resolve_path(record, "nope") == Missing()
    assert resolve_path(record, "a.c") == Missing()
    assert resolve_path(record, "a") == Missing()
    assert resolve_path(record, "s.deeper") == Missing()
    assert resolve_path(record, "z") == Missing()


def test_arrays_are_not_scalar() -> None:
    record = {"arr": [1, 2], "a": {"list": [{"b": 1}]}}
    assert resolve_path(record, "arr") == NotScalar()
    assert resolve_path(record, "a.list") == NotScalar()
    assert resolve_path(record, "a.list.b") == NotScalar()


def test_extractor_counts_missing_but_not_arrays() -> None:
    extractor = FieldExtractor(FieldSchema(time_field="time", fields=("arr", "gone", "nested.v")))
    extraction = extractor.extract({"time": "7", "arr": [], "nested": {"v": 1}})
    assert extraction.time_text == "7"
    assert extraction.values == ("", "", "1")
    assert extraction.missing_count == 1
    assert extraction.fields_read == 2


def test_extractor_without_time() -> None:
    extractor = FieldExtractor(FieldSchema(time_field="ts", fields=("value",)))
    extraction = extractor.extract({"value": "1"})
    assert extraction.time_text is None
    assert extraction.fields_read == 1


def test_extracted_record_vector_has_control_field() -> None:
    record = ExtractedRecord(time_ms=1_500_999, values=("a", ""))
    assert record.to_vector() == ["1500", "a", "", ""]


def test_schema_header() -> None:
    schema = FieldSchema(time_field="time", fields=("b", "a.c"))
    assert schema.header() == ["time", "b", "a.c", "."]
