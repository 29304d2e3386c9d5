import numpy as np
import pytest

from tickwatch.ingest import parser
from tickwatch.utils.errors import DataUnavailable


def chart(meta=None, stamps=None, closes=None, volumes=None):
    return {"chart": {"result": [{
        "meta": meta or {},
        "timestamp": stamps or [],
        "indicators": {"quote": [{"close": closes or [], "volume": volumes or []}]},
    }], "error": None}}


def test_history_drops_null_closes():
    h = parser.parse_chart_history("ABC", chart(stamps=[1, 2, 3], closes=[10.0, None, 12.0],
                                                volumes=[100, 200, 300]))
    assert h.symbol == "ABC"
    assert list(h.epochs) == [1, 3]
    assert np.allclose(h.closes, [10.0, 12.0])
    assert np.allclose(h.volumes, [100, 300])


def test_history_without_volumes():
    h = parser.parse_chart_history("ABC", chart(stamps=[1, 2], closes=[1.0, 2.0]))
    assert h.volumes is None


@pytest.mark.parametrize("payload", [
    {"chart": {"result": None, "error": {"code": "Not Found", "description": "No data found"}}},
    {"chart": {"result": [], "error": None}},
    {},
    chart(stamps=[1, 2], closes=[None, None]),
])
def test_history_unusable_payloads(payload):
    with pytest.raises(DataUnavailable):
        parser.parse_chart_history("ABC", payload)


def test_snapshot_from_daily_chart():
    meta = {"regularMarketPrice": 110.0, "regularMarketVolume": 6000, "regularMarketTime": 1_700_000_000}
    s = parser.parse_chart_snapshot("ABC", chart(meta, [1, 2, 3], [90.0, 100.0, 110.0], [1000, 3000, 4000]))
    assert s.price == 110.0
    assert s.change_pct == 10.0
    assert s.volume == 6000
    assert s.relative_volume == 3.0
    assert s.timestamp == 1_700_000_000


def test_snapshot_fallbacks():
    meta = {"regularMarketPrice": 55.0, "chartPreviousClose": 50.0}
    s = parser.parse_chart_snapshot("ABC", chart(meta, [1], [55.0], [700]), now=123.0)
    assert s.change_pct == 10.0
    assert s.volume == 700
    assert s.relative_volume == 1.0
    assert s.timestamp == 123.0


def test_snapshot_negative_change():
    meta = {"regularMarketPrice": 90.0}
    s = parser.parse_chart_snapshot("ABC", chart(meta, [1, 2], [100.0, 90.0], [10, 10]))
    assert s.change_pct == -10.0


def test_snapshot_requires_price():
    with pytest.raises(DataUnavailable):
        parser.parse_chart_snapshot("ABC", chart({}, [1], [1.0], [1]))
