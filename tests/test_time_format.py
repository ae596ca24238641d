import pytest

from data_feed.time_format import DateTransformer, TimestampParseError


def test_epoch_seconds() -> None:
    dates = DateTransformer("epoch")
    assert dates.transform("1") == 1000
    assert dates.transform(" 1.2345 ") == 1234
    assert dates.transform("1500000000") == 1_500_000_000_000


def test_epoch_ms() -> None:
    assert DateTransformer("epoch_ms").transform("1500000000123") == 1_500_000_000_123


def test_pattern_naive_is_utc() -> None:
    dates = DateTransformer("%Y-%m-%dT%H:%M:%S")
    assert dates.transform("1970-01-01T00:01:00") == 60_000


def test_pattern_with_offset() -> None:
    dates = DateTransformer("%Y-%m-%d %H:%M:%S%z")
    assert dates.transform("1970-01-01 01:00:00+0100") == 0


@pytest.mark.parametrize("text", ["", "abc", "NaN", "Infinity"])
def test_epoch_rejects_garbage(text: str) -> None:
    with pytest.raises(TimestampParseError):
        DateTransformer("epoch").transform(text)


def test_pattern_rejects_mismatch() -> None:
    with pytest.raises(TimestampParseError):
        DateTransformer("%Y-%m-%d").transform("01/02/2020")


def test_unknown_format() -> None:
    with pytest.raises(ValueError):
        DateTransformer("yyyy-MM-dd")


@pytest.mark.parametrize("text", ["1e9999999", "1e5000", "-1e20", "253402300800"])
def test_epoch_rejects_out_of_range(text: str) -> None:
    with pytest.raises(TimestampParseError):
        DateTransformer("epoch").transform(text)


def test_epoch_range_bounds() -> None:
    assert DateTransformer("epoch").transform("253402300799.999") == 253_402_300_799_999
    assert DateTransformer("epoch").transform("-1") == -1000
    with pytest.raises(TimestampParseError):
        DateTransformer("epoch_ms").transform("253402300800000")
