import math

import numpy as np
import pytest

from gridattack.core.errors import ParamError
from gridattack.core.metrics import InfectionState
from gridattack.core.parameters import AttackParameters, GridParameters
from gridattack.core.rng import norm_dist
from gridattack.core.types import Steps, Watt
from gridattack.grid.powergeneration import PowerGeneration, SineParam, calc_sin


def _attack(percentage_vuln_devices):
    return AttackParameters(
        percentage_vuln_devices=percentage_vuln_devices,
        infection_rate_per_step=0.0,
        patch_rate_per_step=0.0
    )


def test_sine_term_window_is_half_open():
    term = SineParam(begin=0.25, end=0.75, a=1.0, b=1.0, c=0.0, d=1.0)
    assert term.value_at(0.1) == 0.0
    assert term.value_at(0.75) == 0.0
    assert term.value_at(0.25) == pytest.approx(2.0)
    assert term.value_at(0.5) == pytest.approx(1.0)


def test_sine_term_minimum():
    term = SineParam(begin=0.0, end=1.0, a=1.0, b=1.0, c=0.0, d=-5.0, minimum=0.0)
    assert term.value_at(0.3) == 0.0


def test_calc_sin_sums_terms():
    terms = [
        SineParam(begin=0.0, end=1.0, a=0.0, b=1.0, c=0.0, d=1.0),
        SineParam(begin=0.0, end=0.5, a=0.0, b=1.0, c=0.0, d=2.0),
    ]
    assert calc_sin(Steps(0), terms) == pytest.approx(3.0)
    assert calc_sin(Steps(48), terms) == pytest.approx(1.0)


def test_household_without_generation():
    unit = PowerGeneration(
        average_power_usage=Watt(1_000),
        consumption_param=[SineParam(begin=0.0, end=1.0, a=0.4, b=1.0, c=math.pi, d=0.6)],
        consumption_noise_param=[SineParam(begin=0.0, end=1.0, a=0.5, b=1.0, c=1.0, d=1.0)],
        noise_percentage=0.1
    )
    for step in range(2 * 96):
        generated, used, error = unit.calc_power(Steps(step))
        assert generated == Watt(0)
        assert error == used
        assert used > Watt(0)


def test_calc_power_is_cached_per_step():
    unit = PowerGeneration(
        average_power_usage=Watt(1_000),
        consumption_param=[SineParam(begin=0.0, end=1.0, a=0.0, b=1.0, c=0.0, d=0.5)]
    )
    first = unit.calc_power(Steps(5))
    unit.consumption_param = [SineParam(begin=0.0, end=1.0, a=0.0, b=1.0, c=0.0, d=0.9)]
    assert unit.calc_power(Steps(5)) == first
    assert unit.calc_power(Steps(6))[1] == Watt(900)


def test_new_no_pv_has_no_generation_and_is_not_vulnerable():
    rng = np.random.default_rng(3)
    grid = GridParameters.test()
    for _ in range(10):
        unit = PowerGeneration.new_no_pv(rng, grid, _attack(1.0))
        assert not unit.has_generation
        assert unit.infection_state == InfectionState.NOT_VULNERABLE
        assert len(unit.generation_noise_param) == grid.num_noise_functions
        assert len(unit.consumption_noise_param) == grid.num_noise_functions
        assert len(unit.consumption_param) == 2


def test_new_pv_vulnerability_follows_percentage():
    rng = np.random.default_rng(3)
    grid = GridParameters.test()
    assert PowerGeneration.new_pv(rng, grid, _attack(1.0)).infection_state == InfectionState.VULNERABLE
    assert PowerGeneration.new_pv(rng, grid, _attack(0.0)).infection_state == InfectionState.NOT_VULNERABLE

    unit = PowerGeneration.new_pv(rng, grid, _attack(0.5))
    assert unit.has_generation
    assert unit.generation_param[0].minimum == 0.0


def test_pv_generates_only_during_the_day():
    grid = GridParameters.test()
    grid.percentage_noise_on_power = 0.0
    unit = PowerGeneration.new_pv(np.random.default_rng(11), grid, _attack(0.0))
    night = unit.calc_power(Steps(0))
    assert night[0] == Watt(0)
    day = [unit.calc_power(Steps(s))[0] for s in range(24, 80)]
    assert all(g >= Watt(0) for g in day)


def test_same_seed_same_unit():
    grid = GridParameters.test()
    a = PowerGeneration.new_pv(np.random.default_rng(5), grid, _attack(0.5))
    b = PowerGeneration.new_pv(np.random.default_rng(5), grid, _attack(0.5))
    assert a.to_dict() == b.to_dict()


def test_degenerate_normal_is_a_param_error():
    rng = np.random.default_rng(0)
    with pytest.raises(ParamError):
        norm_dist(rng, 1.0, 0.0)
    with pytest.raises(ParamError):
        norm_dist(rng, float("nan"), 1.0)
    with pytest.raises(ParamError):
        GridParameters(
            n_areas=1,
            ns_per_a=(1, 2),
            hs_per_ns=(1, 2),
            energy_storage=Watt(0),
            max_gen_inc_tick=Watt(0),
            pv_adoption=0.5,
            household_power_consumption_distribution=(Watt(1_000), Watt(0))
        )
