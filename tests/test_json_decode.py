import io

import pytest

from data_feed.json_decode import JsonRecordReader, RecordParseError, salvage_record


def _read(data: bytes, **kwargs):
    reader = JsonRecordReader(io.BytesIO(data), **kwargs)
    return list(reader), reader


def test_concatenated_and_newline_separated_records() -> None:
    records, reader = _read(b'{"a":1}{"b":2}\n{"c":3}\r\n  {"d":4}\n')
    assert records == [{"a": 1}, {"b": 2}, {"c": 3}, {"d": 4}]
    assert reader.stats.units == 4
    assert reader.stats.records == 4
    assert reader.stats.malformed_units == 0
    assert reader.stats.skipped_units == 0


def test_top_level_array_yields_object_items() -> None:
    records, reader = _read(b'[{"a":1}, 7, {"b":2}]{"c":3}')
    assert records == [{"a": 1}, {"b": 2}, {"c": 3}]
    assert reader.stats.units == 2


def test_small_chunks_with_braces_and_escapes_inside_strings() -> None:
    data = b'{"k":"a\\"}b","time":"1"}{"k":"{[","time":"2"}'
    records, _ = _read(data, chunk_size=1)
    assert records == [{"k": 'a"}b', "time": "1"}, {"k": "{[", "time": "2"}]


def test_garbage_between_records_is_skipped() -> None:
    records, reader = _read(b'{"a":1} garbage {"b":2} tail')
    assert records == [{"a": 1}, {"b": 2}]
    assert reader.stats.skipped_units == 2


def test_malformed_record_is_salvaged() -> None:
    records, reader = _read(b'{"time":"2" "value":"2.0"}{"time":"3"}')
    assert records == [{"time": "2"}, {"time": "3"}]
    assert reader.stats.malformed_units == 1


def test_unterminated_record_raises() -> None:
    with pytest.raises(RecordParseError):
        _read(b'{"time":"1", "value":"2.0"}{"time')


def test_unterminated_string_raises() -> None:
    with pytest.raises(RecordParseError):
        _read(b'{"time":"1\\')


def test_consecutive_error_limit() -> None:
    data = b"{,}" * 3 + b'{"a":1}'
    records, reader = _read(data, max_consecutive_errors=3)
    assert records == [{"a": 1}]
    assert reader.stats.skipped_units == 3
    with pytest.raises(RecordParseError):
        _read(b"{,}" * 4 + b'{"a":1}', max_consecutive_errors=3)


def test_error_count_resets_after_good_record() -> None:
    data = b'{,}{,}{"a":1}{,}{,}{"b":2}'
    records, _ = _read(data, max_consecutive_errors=2)
    assert records == [{"a": 1}, {"b": 2}]


def test_empty_input() -> None:
    records, reader = _read(b"  \n")
    assert records == []
    assert reader.stats.units == 0


def test_salvage_keeps_complete_nested_objects() -> None:
    unit = b'{"time":"2", "nested":{"value":"2.0"} "foo":"bar"}'
    assert salvage_record(unit) == {"time": "2", "nested": {"value": "2.0"}}


def test_salvage_keeps_partial_nested_objects_and_scalars() -> None:
    unit = b'{"n":1.5, "b":true, "z":null, "inner":{"x":"y", "broken" "q"}}'
    assert salvage_record(unit) == {"n": 1.5, "b": True, "z": None, "inner": {"x": "y"}}


def test_salvage_returns_none_when_nothing_parsed() -> None:
    assert salvage_record(b"{,}") is None
    assert salvage_record(b"[1,,]") is None
