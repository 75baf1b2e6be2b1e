"""
Infection bookkeeping and the per-step grid summary.

This module provides the epidemic state of a household's generation unit,
aggregate statistics over a set of households, and the ``GridInformation``
record handed to the output collaborator once per step.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable

from gridattack.core.types import Steps


class InfectionState(Enum):
    """Infection status of a household's power generation unit."""
    NOT_VULNERABLE = "NotVulnerable"
    VULNERABLE = "Vulnerable"
    INFECTED = "Infected"
    PATCHED = "Patched"

    @property
    def is_stable(self) -> bool:
        """NotVulnerable and Patched never change again."""
        return self in (InfectionState.NOT_VULNERABLE, InfectionState.PATCHED)


@dataclass(frozen=True)
class InfectionStatistics:
    """
    Counts and percentages of infection states over a household population.

    Percentages are expressed on a 0-100 scale and are 0.0 for an empty
    population.
    """
    total: int = 0
    num_not_vulnerable: int = 0
    num_vulnerable: int = 0
    num_infected: int = 0
    num_patched: int = 0
    perc_not_vulnerable: float = 0.0
    perc_vulnerable: float = 0.0
    perc_infected: float = 0.0
    perc_patched: float = 0.0

    @classmethod
    def from_states(cls, states: Iterable[InfectionState]) -> "InfectionStatistics":
        counts = {state: 0 for state in InfectionState}
        for state in states:
            counts[state] += 1
        total = sum(counts.values())

        def _perc(count: int) -> float:
            return count * 100 / total if total else 0.0

        return cls(
            total=total,
            num_not_vulnerable=counts[InfectionState.NOT_VULNERABLE],
            num_vulnerable=counts[InfectionState.VULNERABLE],
            num_infected=counts[InfectionState.INFECTED],
            num_patched=counts[InfectionState.PATCHED],
            perc_not_vulnerable=_perc(counts[InfectionState.NOT_VULNERABLE]),
            perc_vulnerable=_perc(counts[InfectionState.VULNERABLE]),
            perc_infected=_perc(counts[InfectionState.INFECTED]),
            perc_patched=_perc(counts[InfectionState.PATCHED]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class GridInformation:
    """
    Summary of the grid after one step.

    Attributes
    ----------
    step : Steps
        The step this summary belongs to.
    infection_statistics : InfectionStatistics
        Statistics over every household in the grid.
    freq_state : FreqState
        Frequency state of the root.
    power_state : PowerState
        Power state of the root, after compensation.
    reserve_power : ReservePower
        Reserve power after compensation.
    """
    step: Steps
    infection_statistics: InfectionStatistics
    freq_state: Any
    power_state: Any
    reserve_power: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            'step': self.step.value,
            'infection_statistics': self.infection_statistics.to_dict(),
            'freq_state': self.freq_state.to_dict(),
            'power_state': self.power_state.to_dict(),
            'reserve_power': self.reserve_power.to_dict(),
        }

    def flatten(self) -> Dict[str, Any]:
        """One flat row, used to build tables of a whole run."""
        row: Dict[str, Any] = {'step': self.step.value, 'frequency': self.freq_state.now.value}
        for key, value in self.infection_statistics.to_dict().items():
            row[key] = value
        for key in ('power_generated', 'power_used', 'power_reported', 'power_error'):
            row[key] = getattr(self.power_state, key).value
        row['reserve_current_usage'] = self.reserve_power.current_usage.value
        return row
