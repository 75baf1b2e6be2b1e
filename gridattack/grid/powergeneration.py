"""
Power generation and consumption model of a single household.

Both consumption and generation are sums of sine terms over the position of
the step within the day. Each term is only active inside its own window of
the day, which lets a PV curve be zero at night while the base load carries
on. Noise curves are built the same way and scaled by a noise percentage.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from gridattack.core.metrics import InfectionState
from gridattack.core.rng import norm_dist, random_percentage
from gridattack.core.types import Steps, Watt


@dataclass(frozen=True)
class SineParam:
    """
    One term ``a * sin(2*pi*b*x + c) + d`` active for ``begin <= x < end``.

    Parameters
    ----------
    begin : float
        Start of the window as a fraction of the day.
    end : float
        End of the window as a fraction of the day, exclusive.
    a : float
        Amplitude.
    b : float
        Number of periods per day.
    c : float
        Horizontal shift, the position of the peak.
    d : float
        Vertical shift, the average over the day.
    minimum : float or None
        Floor applied to the term inside its window.
    """
    begin: float
    end: float
    a: float
    b: float
    c: float
    d: float
    minimum: Optional[float] = None

    def value_at(self, fraction_of_day: float) -> float:
        if not self.begin <= fraction_of_day < self.end:
            return 0.0
        value = self.a * np.sin(self.b * 2.0 * np.pi * fraction_of_day + self.c) + self.d
        if self.minimum is not None:
            value = max(self.minimum, value)
        return float(value)

    def to_dict(self) -> Dict[str, Optional[float]]:
        return dict(self.__dict__)


def calc_sin(step: Steps, params: Sequence[SineParam]) -> float:
    """Sum of all terms at the time of day of ``step``."""
    fraction = step.percentage_of_day()
    return sum(p.value_at(fraction) for p in params)


def gen_noise_param(rng: np.random.Generator, num_noise_functions: int) -> List[SineParam]:
    return [
        SineParam(
            begin=0.0,
            end=1.0,
            a=norm_dist(rng, 0.5, 0.02),
            b=norm_dist(rng, 1.0, 0.02),
            c=norm_dist(rng, 1.0, 0.05),
            d=1.0
        )
        for _ in range(num_noise_functions)
    ]


def gen_consumption_param(rng: np.random.Generator) -> List[SineParam]:
    """Base load over the whole day plus a dip around midday."""
    return [
        SineParam(begin=0.0, end=1.0, a=norm_dist(rng, 0.4, 0.05), b=1.0,
                  c=0.7 * 2.0 * math.pi + norm_dist(rng, 0.0, 0.3), d=0.6),
        SineParam(begin=0.25, end=0.75, a=1.0, b=1.0, c=0.75 * 2.0 * math.pi, d=0.0),
    ]


def gen_generation_param(rng: np.random.Generator) -> List[SineParam]:
    """A single daylight PV curve that never goes negative."""
    return [
        SineParam(begin=0.25, end=0.85, a=norm_dist(rng, 1.3, 0.3), b=0.9,
                  c=0.775 * 2.0 * math.pi, d=-0.3, minimum=0.0),
    ]


class PowerGeneration:
    """
    Generation unit of a household, and its infection state.

    Use ``new_pv`` or ``new_no_pv`` to draw a unit from the model parameters.

    Parameters
    ----------
    average_power_usage : Watt
        Average power consumption of the household.
    consumption_param : list of SineParam
        Terms of the consumption curve.
    generation_param : list of SineParam
        Terms of the generation curve. Empty for a household without PV.
    generation_noise_param, consumption_noise_param : list of SineParam
        Terms of the two noise curves.
    noise_percentage : float
        Weight of the noise in relation to the average usage.
    percentage_generation_of_usage : float
        Average generation as a fraction of the average usage.
    infection_state : InfectionState
        Whether the unit can be, or is, infected.
    """

    def __init__(
        self,
        average_power_usage: Watt,
        consumption_param: List[SineParam],
        generation_param: Optional[List[SineParam]] = None,
        generation_noise_param: Optional[List[SineParam]] = None,
        consumption_noise_param: Optional[List[SineParam]] = None,
        noise_percentage: float = 0.0,
        percentage_generation_of_usage: float = 1.0,
        infection_state: InfectionState = InfectionState.NOT_VULNERABLE,
        index: Optional[int] = None
    ):
        self.average_power_usage = average_power_usage
        self.consumption_param = list(consumption_param)
        self.generation_param = list(generation_param or [])
        self.generation_noise_param = list(generation_noise_param or [])
        self.consumption_noise_param = list(consumption_noise_param or [])
        self.noise_percentage = noise_percentage
        self.percentage_generation_of_usage = percentage_generation_of_usage
        self.infection_state = infection_state
        self.index = index
        self._calc_power_cache: Dict[int, Tuple[Watt, Watt, Watt]] = {}

    @classmethod
    def new_pv(cls, rng: np.random.Generator, grid, attack, index: Optional[int] = None) -> "PowerGeneration":
        """Unit with solar panels. Only these can be vulnerable to infection."""
        unit = cls._new(rng, grid, attack, infectable=True, index=index)
        unit.generation_param = gen_generation_param(rng)
        return unit

    @classmethod
    def new_no_pv(cls, rng: np.random.Generator, grid, attack, index: Optional[int] = None) -> "PowerGeneration":
        """Unit of a household that only consumes."""
        return cls._new(rng, grid, attack, infectable=False, index=index)

    @classmethod
    def _new(cls, rng, grid, attack, infectable: bool, index: Optional[int]) -> "PowerGeneration":
        mean, std = grid.household_power_consumption_distribution
        average_power_usage = Watt(int(norm_dist(rng, float(mean.value), float(std.value))))
        generation_noise_param = gen_noise_param(rng, grid.num_noise_functions)
        consumption_noise_param = gen_noise_param(rng, grid.num_noise_functions)
        consumption_param = gen_consumption_param(rng)

        if infectable and random_percentage(rng) < attack.percentage_vuln_devices:
            infection_state = InfectionState.VULNERABLE
        else:
            infection_state = InfectionState.NOT_VULNERABLE

        return cls(
            average_power_usage=average_power_usage,
            consumption_param=consumption_param,
            generation_noise_param=generation_noise_param,
            consumption_noise_param=consumption_noise_param,
            noise_percentage=grid.percentage_noise_on_power,
            percentage_generation_of_usage=grid.percentage_generation_of_usage,
            infection_state=infection_state,
            index=index
        )

    @property
    def has_generation(self) -> bool:
        return bool(self.generation_param)

    def calc_power(self, step: Steps) -> Tuple[Watt, Watt, Watt]:
        """
        Power of the unit at ``step``.

        Returns
        -------
        tuple of Watt
            ``(generated, used, error)`` with ``error = used - generated``, the
            net usage a household reports. The result is cached per step.
        """
        cached = self._calc_power_cache.get(step.value)
        if cached is not None:
            return cached
        result = self._gen_calc_power(step)
        self._calc_power_cache[step.value] = result
        return result

    def _gen_calc_power(self, step: Steps) -> Tuple[Watt, Watt, Watt]:
        average = self.average_power_usage.value
        if self.has_generation:
            power_generated = Watt(int(
                (self.generation_noise(step) * self.noise_percentage + self.generation(step)) * average
            ))
        else:
            power_generated = Watt(0)
        power_used = Watt(int(
            (self.consumption_noise(step) * self.noise_percentage + self.consumption(step)) * average
        ))
        return power_generated, power_used, power_used - power_generated

    def consumption(self, step: Steps) -> float:
        return calc_sin(step, self.consumption_param)

    def generation(self, step: Steps) -> float:
        return calc_sin(step, self.generation_param) * self.percentage_generation_of_usage

    def consumption_noise(self, step: Steps) -> float:
        return calc_sin(step, self.consumption_noise_param)

    def generation_noise(self, step: Steps) -> float:
        return calc_sin(step, self.generation_noise_param)

    def to_dict(self) -> Dict:
        return {
            'infection_state': self.infection_state.value,
            'average_power_usage': self.average_power_usage.value,
            'noise_percentage': self.noise_percentage,
            'percentage_generation_of_usage': self.percentage_generation_of_usage,
            'generation_param': [p.to_dict() for p in self.generation_param],
            'consumption_param': [p.to_dict() for p in self.consumption_param],
            'generation_noise_param': [p.to_dict() for p in self.generation_noise_param],
            'consumption_noise_param': [p.to_dict() for p in self.consumption_noise_param],
        }

    def __repr__(self) -> str:
        return (
            f"PowerGeneration(index={self.index}, "
            f"avg={self.average_power_usage!r}, "
            f"pv={self.has_generation}, "
            f"infection={self.infection_state.value})"
        )
