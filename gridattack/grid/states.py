"""
Power, frequency and voltage state carried by the agents.

``PowerState`` is held by every agent. ``FreqState`` only lives on the root,
since frequency is a grid-wide quantity, and ``VoltState`` lives on every
netstation where the voltage is transformed down to the familiar 230V.
"""

from collections import deque
from typing import Any, Dict, Iterable

from gridattack.core.types import MilliHertz, MilliVolt, Watt

HISTORY_LEN = 10


class PowerState:
    """
    Power state of a single agent for the current step.

    Attributes
    ----------
    power_generated : Watt
        Power that is generated.
    power_used : Watt
        Power measured as used. Positive indicates a draw by the children.
    power_reported : Watt
        Power reported as used by the meter.
    power_error : Watt
        Mismatch between what is used and what is reported/generated.
    """

    FIELDS = ("power_generated", "power_used", "power_reported", "power_error")

    def __init__(
        self,
        power_generated: Watt = Watt(0),
        power_used: Watt = Watt(0),
        power_reported: Watt = Watt(0),
        power_error: Watt = Watt(0),
        history_len: int = HISTORY_LEN
    ):
        self.power_generated = power_generated
        self.power_used = power_used
        self.power_reported = power_reported
        self.power_error = power_error
        self.history_len = history_len
        self.history_power_generated: deque = deque(maxlen=history_len)
        self.history_power_used: deque = deque(maxlen=history_len)
        self.history_power_reported: deque = deque(maxlen=history_len)
        self.history_power_error: deque = deque(maxlen=history_len)

    def add(self, other: "PowerState") -> None:
        """Add the four power fields of ``other`` to this state."""
        self.power_generated += other.power_generated
        self.power_used += other.power_used
        self.power_reported += other.power_reported
        self.power_error += other.power_error

    @classmethod
    def sum_of(cls, states: Iterable["PowerState"]) -> "PowerState":
        total = cls()
        for state in states:
            total.add(state)
        return total

    def set_power(self, other: "PowerState") -> None:
        """Overwrite the four power fields, leaving the history untouched."""
        self.power_generated = other.power_generated
        self.power_used = other.power_used
        self.power_reported = other.power_reported
        self.power_error = other.power_error

    def update_history(self) -> None:
        """Push the current values into the history ring buffers."""
        self.history_power_generated.append(self.power_generated)
        self.history_power_used.append(self.power_used)
        self.history_power_reported.append(self.power_reported)
        self.history_power_error.append(self.power_error)

    def attack(self, behaviour) -> None:
        """
        Distort this state with an attack behaviour.

        The attacker scales the generated and the reported power. The error is
        then the gap between what is reported and the true net usage, which
        is a different formula than the clean ``used - generated``.

        Parameters
        ----------
        behaviour : AttackBehaviour
            Provides ``generation_modifier`` and ``report_modifier``.
        """
        self.power_generated = self.power_generated * behaviour.generation_modifier
        self.power_reported = self.power_reported * behaviour.report_modifier
        self.power_error = self.power_reported - (self.power_used - self.power_generated)

    def copy(self) -> "PowerState":
        new = PowerState(
            self.power_generated,
            self.power_used,
            self.power_reported,
            self.power_error,
            history_len=self.history_len
        )
        new.history_power_generated.extend(self.history_power_generated)
        new.history_power_used.extend(self.history_power_used)
        new.history_power_reported.extend(self.history_power_reported)
        new.history_power_error.extend(self.history_power_error)
        return new

    def as_tuple(self):
        return tuple(getattr(self, name) for name in self.FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'power_generated': self.power_generated.value,
            'power_used': self.power_used.value,
            'power_reported': self.power_reported.value,
            'power_error': self.power_error.value,
            'history_power_generated': [w.value for w in self.history_power_generated],
            'history_power_used': [w.value for w in self.history_power_used],
            'history_power_reported': [w.value for w in self.history_power_reported],
            'history_power_error': [w.value for w in self.history_power_error],
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, PowerState):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __repr__(self) -> str:
        return (
            f"PowerState(used={self.power_used.value:_}, "
            f"reported={self.power_reported.value:_}, "
            f"error={self.power_error.value:_}, "
            f"generated={self.power_generated.value:_})"
        )


class FreqState:
    """Grid frequency with a short history. Only monitored at the root."""

    NOMINAL = MilliHertz(50_000)

    def __init__(self, now: MilliHertz = NOMINAL, history_len: int = HISTORY_LEN):
        self.now = now
        self.history: deque = deque(maxlen=history_len)

    def power_mismatch(self, power_total: Watt, power_error: Watt, bulk_consumption: Watt) -> MilliHertz:
        """
        Frequency after applying a power mismatch.

        Linear approximation: the relative deviation equals the error divided
        by all consumption on the grid, households plus bulk consumers.
        """
        denominator = power_total.value + bulk_consumption.value
        if denominator == 0:
            return self.now
        return MilliHertz(self.now.value + int(self.now.value * power_error.value / denominator))

    def update(self, new: MilliHertz) -> None:
        self.history.append(self.now)
        self.now = new

    def copy(self) -> "FreqState":
        new = FreqState(self.now, history_len=self.history.maxlen)
        new.history.extend(self.history)
        return new

    def to_dict(self) -> Dict[str, Any]:
        return {'now': self.now.value, 'history': [f.value for f in self.history]}


class VoltState:
    """Voltage at a netstation with a short history."""

    NOMINAL = MilliVolt(230_000)

    def __init__(self, volt_modifier: float = 1.0, now: MilliVolt = NOMINAL, history_len: int = HISTORY_LEN):
        self.now = now
        self.volt_modifier = volt_modifier
        self.history: deque = deque(maxlen=history_len)

    def power_mismatch(self, power_total: Watt, power_error: Watt) -> MilliVolt:
        """Voltage after applying a power mismatch, scaled by ``volt_modifier``."""
        if power_total.value == 0:
            return self.now
        delta = self.now.value * self.volt_modifier * power_error.value / power_total.value
        return MilliVolt(self.now.value + int(delta))

    def update(self, new: MilliVolt) -> None:
        self.history.append(self.now)
        self.now = new

    def copy(self) -> "VoltState":
        new = VoltState(self.volt_modifier, self.now, history_len=self.history.maxlen)
        new.history.extend(self.history)
        return new

    def to_dict(self) -> Dict[str, Any]:
        return {
            'now': self.now.value,
            'history': [v.value for v in self.history],
            'volt_modifier': self.volt_modifier,
        }
