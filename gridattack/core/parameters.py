"""
Parameter bundle for building and running a grid model.

The dataclasses below are the in-memory form of the configuration. They are
validated on construction so that ``build_model`` can assume every value is
usable; any problem is reported as a ``ParamError`` naming the field.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from gridattack.core.errors import ParamError
from gridattack.core.types import MilliHertz, MilliVolt, Steps, Watt
from gridattack.grid.boundary import Boundaries
from gridattack.methods.attack import AttackBehaviour


def _check_probability(value: float, name: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ParamError(f"must be within [0, 1], got {value}", name)


def _check_range(bounds: Tuple[int, int], name: str) -> None:
    low, high = bounds
    if low < 0 or low >= high:
        raise ParamError(f"must be a non-empty range [low, high) with low >= 0, got {bounds}", name)


def _check_window(window: Optional[Tuple[Steps, Steps]], name: str) -> None:
    if window is None:
        return
    begin, end = window
    if begin > end:
        raise ParamError(f"begin {begin!r} is after end {end!r}", name)


def default_freq_boundary() -> Boundaries:
    return Boundaries.from_limits(
        MilliHertz,
        normal=(49.9, 50.1),
        lower=[(49.8, 60), (49.5, 15)],
        upper=[(50.2, 60), (50.5, 15)]
    )


def default_volt_boundary() -> Boundaries:
    return Boundaries.from_limits(
        MilliVolt,
        normal=(225.0, 235.0),
        lower=[(220.0, 60), (207.0, 15)],
        upper=[(240.0, 60), (253.0, 15)]
    )


@dataclass
class GridParameters:
    """
    Topology and physics of the grid.

    Parameters
    ----------
    n_areas : int
        Number of areas below the root.
    ns_per_a : tuple of int
        Half-open range ``[low, high)`` of netstations per area.
    hs_per_ns : tuple of int
        Half-open range ``[low, high)`` of households per netstation.
    energy_storage : Watt
        Reserve power available in both directions.
    max_gen_inc_tick : Watt
        Maximum change of the reserve power in one step.
    pv_adoption : float
        Probability that a household has PV.
    household_power_consumption_distribution : tuple of Watt
        Mean and standard deviation of the average household usage.
    percentage_noise_on_power : float
        Weight of the noise curves.
    num_noise_functions : int
        Number of sine terms per noise curve.
    percentage_generation_of_usage : float
        Average PV generation as a fraction of usage.
    bulk_consumption : Watt
        Consumption on the grid that is not modelled by households.
    volt_modifier : float
        Sensitivity of netstation voltage to power mismatch.
    freq_boundary, volt_boundary : Boundaries
        Templates copied into the root and every netstation.
    """
    n_areas: int
    ns_per_a: Tuple[int, int]
    hs_per_ns: Tuple[int, int]
    energy_storage: Watt
    max_gen_inc_tick: Watt
    pv_adoption: float
    household_power_consumption_distribution: Tuple[Watt, Watt]
    percentage_noise_on_power: float = 0.1
    num_noise_functions: int = 3
    percentage_generation_of_usage: float = 0.2
    bulk_consumption: Watt = Watt(0)
    volt_modifier: float = 1.0
    freq_boundary: Boundaries = field(default_factory=default_freq_boundary)
    volt_boundary: Boundaries = field(default_factory=default_volt_boundary)

    def __post_init__(self):
        if self.n_areas < 1:
            raise ParamError(f"need at least one area, got {self.n_areas}", "n_areas")
        _check_range(self.ns_per_a, "ns_per_a")
        _check_range(self.hs_per_ns, "hs_per_ns")
        _check_probability(self.pv_adoption, "pv_adoption")
        if self.energy_storage.value < 0:
            raise ParamError("must not be negative", "energy_storage")
        if self.max_gen_inc_tick.value < 0:
            raise ParamError("must not be negative", "max_gen_inc_tick")
        if self.num_noise_functions < 0:
            raise ParamError("must not be negative", "num_noise_functions")

        mean, std = self.household_power_consumption_distribution
        if std.value <= 0:
            raise ParamError(
                f"standard deviation must be positive, got {std!r}",
                "household_power_consumption_distribution"
            )
        for name in ("percentage_noise_on_power", "percentage_generation_of_usage", "volt_modifier"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ParamError(f"must be a finite non-negative number, got {value}", name)

    @classmethod
    def test(cls) -> "GridParameters":
        """One area with two netstations of two households each."""
        return cls(
            n_areas=1,
            ns_per_a=(2, 3),
            hs_per_ns=(2, 3),
            energy_storage=Watt(10_000),
            max_gen_inc_tick=Watt(100),
            pv_adoption=0.5,
            household_power_consumption_distribution=(Watt(1_000), Watt(100)),
            percentage_noise_on_power=0.1,
            num_noise_functions=3,
            percentage_generation_of_usage=0.2,
            bulk_consumption=Watt(10_000),
            volt_modifier=1.0
        )


@dataclass
class AttackParameters:
    """
    Infection, patching and attacker behaviour.

    ``infection_window`` and ``patch_window`` are inclusive step ranges outside
    of which infection or patch rolls never succeed. ``None`` means always.
    """
    percentage_vuln_devices: float
    infection_rate_per_step: float
    patch_rate_per_step: float
    attack_behaviour: List[AttackBehaviour] = field(default_factory=list)
    infection_window: Optional[Tuple[Steps, Steps]] = None
    patch_window: Optional[Tuple[Steps, Steps]] = None

    def __post_init__(self):
        _check_probability(self.percentage_vuln_devices, "percentage_vuln_devices")
        _check_probability(self.infection_rate_per_step, "infection_rate_per_step")
        _check_probability(self.patch_rate_per_step, "patch_rate_per_step")
        _check_window(self.infection_window, "infection_window")
        _check_window(self.patch_window, "patch_window")
        for behaviour in self.attack_behaviour:
            if behaviour.begin > behaviour.end:
                raise ParamError(f"window of {behaviour!r} is inverted", "attack_behaviour")

    @classmethod
    def test(cls) -> "AttackParameters":
        return cls(
            percentage_vuln_devices=0.5,
            infection_rate_per_step=0.002,
            patch_rate_per_step=0.002,
            attack_behaviour=[AttackBehaviour(Steps(10), Steps(100), 2.0, 0.5)]
        )


@dataclass
class ModelParameters:
    """
    Everything needed to build and run one model.

    Parameters
    ----------
    name : str
        Name of the run, used in log lines.
    steps : Steps
        Number of steps ``run`` executes by default.
    seed : int
        Seed of all random draws.
    stop_on_freq_error : bool
        End the run after a critical frequency event.
    enable_output : bool
        Hand a snapshot of every agent to the output each step.
    track_history : bool
        Push power states into the history buffers each step.
    max_workers : int
        Size of the worker pool for per-level fan-out. 1 runs inline.
    """
    grid: GridParameters
    attack: AttackParameters
    name: str = "gridattack"
    steps: Steps = Steps(96)
    seed: int = 0
    stop_on_freq_error: bool = False
    enable_output: bool = False
    track_history: bool = True
    max_workers: int = 1

    def __post_init__(self):
        if self.steps.value < 0:
            raise ParamError("must not be negative", "steps")
        if self.seed < 0:
            raise ParamError("must not be negative", "seed")
        if self.max_workers < 1:
            raise ParamError("need at least one worker", "max_workers")

    @classmethod
    def test(cls, **overrides) -> "ModelParameters":
        """Small deterministic bundle, a day long."""
        values = dict(
            grid=GridParameters.test(),
            attack=AttackParameters.test(),
            name="Test",
            steps=Steps.steps_per_day(),
            seed=117
        )
        values.update(overrides)
        return cls(**values)
