"""
Attack engine: malware spreading through PV inverters.

Every step each household draws a patch roll and an infection roll. The rolls
for all households are drawn up front, in household order, from a single
generator; only then are the transitions applied, possibly in parallel. This
keeps a run reproducible from its seed no matter how the apply step is
scheduled.

While an ``AttackBehaviour`` is active, infected households scale what they
generate and what they report.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from gridattack.core.metrics import InfectionState
from gridattack.core.rng import random_percentage
from gridattack.core.types import Steps

logger = logging.getLogger(__name__)

Roll = Tuple[bool, bool]
MapFn = Callable[[Callable, Iterable], list]


@dataclass(frozen=True)
class AttackBehaviour:
    """
    Behaviour of infected units during a window of steps.

    Parameters
    ----------
    begin : Steps
        First step of the window, inclusive.
    end : Steps
        Last step of the window, inclusive.
    report_modifier : float
        Factor on the reported power. 1.0 is honest reporting.
    generation_modifier : float
        Factor on the generated power. 1.0 is normal generation.
    """
    begin: Steps
    end: Steps
    report_modifier: float = 1.0
    generation_modifier: float = 1.0

    def is_active(self, step: Steps) -> bool:
        return self.begin <= step <= self.end

    def to_dict(self):
        return {
            'begin': self.begin.value,
            'end': self.end.value,
            'report_modifier': self.report_modifier,
            'generation_modifier': self.generation_modifier,
        }


def apply_transition(state: InfectionState, will_patch: bool, will_infect: bool) -> InfectionState:
    """
    Next infection state of a unit.

    NotVulnerable and Patched never change. A successful patch wins over a
    successful infection in the same step.
    """
    if state.is_stable:
        return state
    if will_patch:
        return InfectionState.PATCHED
    if state is InfectionState.VULNERABLE and will_infect:
        return InfectionState.INFECTED
    return state


def _in_window(window: Optional[Tuple[Steps, Steps]], step: Steps) -> bool:
    if window is None:
        return True
    return window[0] <= step <= window[1]


def _sequential_map(fn: Callable, items: Iterable) -> list:
    return [fn(item) for item in items]


class Attack:
    """
    Infection process and attacker schedule of one model.

    Parameters
    ----------
    rng : numpy.random.Generator
        Stream the rolls are drawn from. Only ever drawn from sequentially.
    percentage_vuln_devices : float
        Share of PV units that start out vulnerable.
    infection_rate_per_step : float
        Probability a vulnerable unit becomes infected in a step.
    patch_rate_per_step : float
        Probability a vulnerable or infected unit gets patched in a step.
    attack_behaviour : list of AttackBehaviour
        Schedule of the attacker. The first active entry wins.
    infection_window, patch_window : tuple of Steps or None
        Inclusive windows outside of which rolls never succeed.
    """

    def __init__(
        self,
        rng: np.random.Generator,
        percentage_vuln_devices: float,
        infection_rate_per_step: float,
        patch_rate_per_step: float,
        attack_behaviour: Optional[Sequence[AttackBehaviour]] = None,
        infection_window: Optional[Tuple[Steps, Steps]] = None,
        patch_window: Optional[Tuple[Steps, Steps]] = None
    ):
        self.rng = rng
        self.percentage_vuln_devices = percentage_vuln_devices
        self.infection_rate_per_step = infection_rate_per_step
        self.patch_rate_per_step = patch_rate_per_step
        self.attack_behaviour: List[AttackBehaviour] = list(attack_behaviour or [])
        self.infection_window = infection_window
        self.patch_window = patch_window
        self.current_attack: Optional[AttackBehaviour] = None

    @classmethod
    def from_parameters(cls, params, rng: np.random.Generator) -> "Attack":
        return cls(
            rng,
            params.percentage_vuln_devices,
            params.infection_rate_per_step,
            params.patch_rate_per_step,
            params.attack_behaviour,
            params.infection_window,
            params.patch_window
        )

    def check_current_attack(self, step: Steps) -> Optional[AttackBehaviour]:
        """Select the first behaviour whose window contains ``step``."""
        previous = self.current_attack
        self.current_attack = next((ab for ab in self.attack_behaviour if ab.is_active(step)), None)
        if self.current_attack != previous:
            logger.info(f"Step {step.value}: attack behaviour changed to {self.current_attack}")
        return self.current_attack

    def roll(self, n: int, step: Steps) -> List[Roll]:
        """
        Draw ``(will_patch, will_infect)`` for ``n`` households.

        Two draws per household, patch first, in household order. The draws
        are always taken; the windows only decide whether they can succeed.
        """
        patch_open = _in_window(self.patch_window, step)
        infect_open = _in_window(self.infection_window, step)
        rolls = []
        for _ in range(n):
            patch_roll = random_percentage(self.rng)
            infect_roll = random_percentage(self.rng)
            rolls.append((
                patch_open and patch_roll < self.patch_rate_per_step,
                infect_open and infect_roll < self.infection_rate_per_step,
            ))
        return rolls

    @staticmethod
    def apply_roll(pair) -> bool:
        """Apply one ``(household, roll)`` pair. True if the state changed."""
        household, (will_patch, will_infect) = pair
        with household.lock.write():
            unit = household.power_generation
            new_state = apply_transition(unit.infection_state, will_patch, will_infect)
            changed = new_state is not unit.infection_state
            unit.infection_state = new_state
        return changed

    def modify_device(self, household) -> bool:
        """Distort one household if it is infected and an attack is active."""
        behaviour = self.current_attack
        if behaviour is None:
            return False
        with household.lock.write():
            if household.power_generation.infection_state is not InfectionState.INFECTED:
                return False
            household.power_state.attack(behaviour)
        return True

    def try_to_patch_and_infect(self, households: Sequence, step: Steps, map_fn: MapFn = _sequential_map) -> int:
        """
        Roll for every household and apply the resulting transitions.

        Parameters
        ----------
        households : sequence of Household
            Households in index order.
        step : Steps
            Current step.
        map_fn : callable
            ``map_fn(fn, items)`` used for the apply phase, e.g. a worker pool.

        Returns
        -------
        int
            Number of households whose state changed.
        """
        rolls = self.roll(len(households), step)
        changed = sum(map_fn(self.apply_roll, list(zip(households, rolls))))
        if changed:
            logger.debug(f"Step {step.value}: {changed} households changed infection state")
        return changed

    def modify_infected_devices(self, households: Sequence, map_fn: MapFn = _sequential_map) -> int:
        """Apply the active behaviour to every infected household."""
        if self.current_attack is None:
            return 0
        return sum(map_fn(self.modify_device, households))

    def to_dict(self):
        return {
            'percentage_vuln_devices': self.percentage_vuln_devices,
            'infection_rate_per_step': self.infection_rate_per_step,
            'patch_rate_per_step': self.patch_rate_per_step,
            'attack_behaviour': [ab.to_dict() for ab in self.attack_behaviour],
            'current_attack': self.current_attack.to_dict() if self.current_attack else None,
        }
