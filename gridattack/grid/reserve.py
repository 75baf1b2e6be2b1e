"""Reserve power the grid operator uses to absorb a power mismatch."""

from dataclasses import dataclass
from typing import Dict

from gridattack.core.types import Watt


@dataclass
class ReservePower:
    """
    Bounded energy storage at the root of the grid.

    Parameters
    ----------
    lower_limit : Watt
        How much less the operator may let produce in total.
    upper_limit : Watt
        How much more the operator may let produce in total.
    current_usage : Watt
        How much of that room is in use. Always within the limits.
    watt_per_step : Watt
        How much of that room may change within a single step.
    """
    lower_limit: Watt
    upper_limit: Watt
    current_usage: Watt = Watt(0)
    watt_per_step: Watt = Watt(0)

    @classmethod
    def symmetric(cls, energy_storage: Watt, watt_per_step: Watt) -> "ReservePower":
        return cls(-energy_storage, energy_storage, Watt(0), watt_per_step)

    def compensate(self, power_error: Watt) -> Watt:
        """
        Move the usage towards absorbing ``power_error``.

        Returns
        -------
        Watt
            The amount that was compensated. The caller subtracts it from
            its own power error.
        """
        new_usage = self.current_usage + power_error
        if new_usage > self.upper_limit:
            taken = self.upper_limit - self.current_usage
            self.current_usage = self.upper_limit
            return taken
        if new_usage < self.lower_limit:
            taken = self.lower_limit - self.current_usage
            self.current_usage = self.lower_limit
            return taken

        if abs(power_error) <= self.watt_per_step:
            taken = power_error
        elif power_error.value < 0:
            taken = -self.watt_per_step
        else:
            taken = self.watt_per_step
        self.current_usage += taken
        return taken

    def to_dict(self) -> Dict[str, int]:
        return {
            'lower_limit': self.lower_limit.value,
            'upper_limit': self.upper_limit.value,
            'current_usage': self.current_usage.value,
            'watt_per_step': self.watt_per_step.value,
        }
