import numpy as np

from gridattack.core.types import Watt
from gridattack.grid.reserve import ReservePower


def test_rate_limited_compensation():
    reserve = ReservePower(Watt(-100), Watt(100), Watt(0), Watt(10))
    assert reserve.compensate(Watt(7)) == Watt(7)
    assert reserve.current_usage == Watt(7)
    assert reserve.compensate(Watt(50)) == Watt(10)
    assert reserve.current_usage == Watt(17)
    assert reserve.compensate(Watt(-50)) == Watt(-10)
    assert reserve.current_usage == Watt(7)


def test_clamps_to_limits():
    reserve = ReservePower(Watt(-100), Watt(100), Watt(95), Watt(10))
    assert reserve.compensate(Watt(50)) == Watt(5)
    assert reserve.current_usage == Watt(100)

    reserve = ReservePower(Watt(-100), Watt(100), Watt(0), Watt(10))
    assert reserve.compensate(Watt(-200)) == Watt(-100)
    assert reserve.current_usage == Watt(-100)


def test_symmetric_construction():
    reserve = ReservePower.symmetric(Watt(10_000), Watt(100))
    assert reserve.lower_limit == Watt(-10_000)
    assert reserve.upper_limit == Watt(10_000)
    assert reserve.current_usage == Watt(0)
    assert reserve.watt_per_step == Watt(100)


def test_usage_stays_within_limits():
    rng = np.random.default_rng(7)
    reserve = ReservePower.symmetric(Watt(1_000), Watt(50))
    for error in rng.integers(-800, 800, size=500):
        error = Watt(int(error))
        taken = reserve.compensate(error)
        assert reserve.lower_limit <= reserve.current_usage <= reserve.upper_limit
        assert abs(taken).value <= max(reserve.watt_per_step.value, abs(error).value)
