import numpy as np
import pytest

from tickwatch.data.ring_buffer import SeriesBuffer
from tests.helpers.fakes import history

def test_append_and_last_epoch():
    buf = SeriesBuffer("ABC", capacity=5)
    assert buf.last_epoch() is None

    assert buf.append(1, 10.0, 100)
    assert buf.append(2, 11.0)
    assert buf.last_epoch() == 2
    assert len(buf) == 2

def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        SeriesBuffer("ABC", capacity=0)

def test_same_epoch_overwrites_older_is_dropped():
    buf = SeriesBuffer("ABC", capacity=5)
    buf.append(1, 10.0)
    buf.append(2, 11.0)
    assert buf.append(2, 12.5)
    assert not buf.append(1, 99.0)
    h = buf.history()
    assert list(h.epochs) == [1, 2]
    assert np.allclose(h.closes, [10.0, 12.5])

def test_view_last_contiguous():
    buf = SeriesBuffer("ABC", capacity=5)
    for i in range(1, 4):
        buf.append(i, float(i))

    v = buf.view_last(2)
    assert v.length == 2
    assert len(v.slices) == 1
    ep, c, vol = v.slices[0]
    assert list(ep) == [2, 3]
    assert np.allclose(c, [2.0, 3.0])

def test_view_last_wraparound_two_segments():
    buf = SeriesBuffer("ABC", capacity=4)
    for i in range(1, 6):
        buf.append(i, float(i))

    v = buf.view_last(3)
    assert v.length == 3
    epochs = []
    for sl in v.slices:
        epochs.extend(sl[0].tolist())
    assert epochs == [3, 4, 5]

def test_history_stitches_in_time_order_after_wrap():
    buf = SeriesBuffer("ABC", capacity=4)
    for i in range(1, 8):
        buf.append(i, float(i) * 2, i * 10)
    h = buf.history()
    assert h.symbol == "ABC"
    assert list(h.epochs) == [4, 5, 6, 7]
    assert np.allclose(h.closes, [8.0, 10.0, 12.0, 14.0])
    assert np.allclose(h.volumes, [40, 50, 60, 70])

def test_history_drops_volumes_when_any_missing():
    buf = SeriesBuffer("ABC", capacity=4)
    buf.append(1, 1.0, 10)
    buf.append(2, 2.0)
    assert buf.history().volumes is None

def test_merge_overlapping_fetches():
    buf = SeriesBuffer("ABC", capacity=10)
    first = history("ABC", [1.0, 2.0, 3.0], start=100, step=10)
    second = history("ABC", [3.5, 4.0, 5.0], start=120, step=10)
    assert buf.merge(first) == 3
    # epoch 120 overlaps and takes the fetched close
    assert buf.merge(second) == 5
    h = buf.history()
    assert list(h.epochs) == [100, 110, 120, 130, 140]
    assert np.allclose(h.closes, [1.0, 2.0, 3.5, 4.0, 5.0])

def test_merge_backfills_older_epochs():
    buf = SeriesBuffer("ABC", capacity=10)
    buf.merge(history("ABC", [4.0, 5.0], start=130, step=10))
    assert buf.merge(history("ABC", [1.0, 2.0, 3.0, 4.0, 5.0], start=100, step=10)) == 5
    assert list(buf.history().epochs) == [100, 110, 120, 130, 140]

def test_merge_keeps_newest_capacity_points():
    buf = SeriesBuffer("ABC", capacity=3)
    buf.merge(history("ABC", [1.0, 2.0, 3.0, 4.0, 5.0], start=100, step=10))
    h = buf.history()
    assert list(h.epochs) == [120, 130, 140]
    assert np.allclose(h.closes, [3.0, 4.0, 5.0])

def test_merge_collapses_points_of_the_same_bar():
    day = lambda ep: ep // 1000
    buf = SeriesBuffer("ABC", capacity=10)
    buf.merge(history("ABC", [1.0, 2.0], start=1000, step=1000))
    # in-progress bar re-stamped later in the same "day"
    buf.merge(history("ABC", [1.0, 2.5], start=1000, step=1300), day)
    h = buf.history()
    assert list(h.epochs) == [1000, 2300]
    assert np.allclose(h.closes, [1.0, 2.5])

def test_merge_prefers_fetched_point_over_buffered_one():
    day = lambda ep: ep // 1000
    buf = SeriesBuffer("ABC", capacity=10)
    buf.merge(history("ABC", [1.0, 2.9], start=1000, step=1500), day)
    # the final bar comes back stamped earlier than the buffered intraday one
    buf.merge(history("ABC", [1.0, 3.0], start=1000, step=1000), day)
    h = buf.history()
    assert list(h.epochs) == [1000, 2000]
    assert np.allclose(h.closes, [1.0, 3.0])

def test_empty_history():
    h = SeriesBuffer("ABC", capacity=3).history()
    assert len(h) == 0
