import pytest

from tickwatch.utils.backoff import backoff_iter, jitter, next_backoff

def test_next_backoff_caps():
    assert next_backoff(1, 4) == 2
    assert next_backoff(2, 4) == 4
    assert next_backoff(4, 4) == 4

def test_next_backoff_factor():
    assert next_backoff(5.0, 30.0, factor=1.5) == 7.5
    assert next_backoff(25.3125, 30.0, factor=1.5) == 30.0

def test_backoff_iter_progression():
    it = backoff_iter(5.0, 30.0)
    vals = [next(it) for _ in range(7)]
    assert vals == [5.0, 7.5, 11.25, 16.875, 25.3125, 30.0, 30.0]

@pytest.mark.parametrize("ratio", [0.0, 0.2, 0.5])
def test_jitter_bounds(ratio):
    for _ in range(50):
        v = jitter(10.0, ratio=ratio)
        assert 10.0 * (1 - ratio) <= v <= 10.0 * (1 + ratio)
