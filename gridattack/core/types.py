"""
Unit types used throughout the model.

Every physical quantity is wrapped in its own small value type so that a
``Watt`` can never be added to a ``MilliHertz`` by accident. The wrappers are
frozen dataclasses around a single integer: they hash, order and print like
the number they hold, and arithmetic keeps the unit.
"""

from dataclasses import dataclass
from typing import Union

Number = Union[int, float]

MINUTES_PER_DAY = 1440


@dataclass(frozen=True, order=True)
class _Unit:
    value: int = 0

    def __post_init__(self):
        object.__setattr__(self, "value", int(self.value))

    def _check(self, other) -> None:
        if type(other) is not type(self):
            raise TypeError(
                f"unsupported operand types: {type(self).__name__} and {type(other).__name__}"
            )

    def __add__(self, other):
        self._check(other)
        return type(self)(self.value + other.value)

    def __sub__(self, other):
        self._check(other)
        return type(self)(self.value - other.value)

    def __mul__(self, factor: Number):
        if isinstance(factor, _Unit):
            return NotImplemented
        return type(self)(int(self.value * factor))

    __rmul__ = __mul__

    def __truediv__(self, divisor: Number):
        if isinstance(divisor, _Unit):
            return NotImplemented
        return type(self)(int(self.value / divisor))

    def __neg__(self):
        return type(self)(-self.value)

    def __abs__(self):
        return type(self)(abs(self.value))

    def __int__(self) -> int:
        return self.value

    def __float__(self) -> float:
        return float(self.value)

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value:_})"


class Watt(_Unit):
    """Power in Watt."""


class MilliHertz(_Unit):
    """Frequency in milli-Hertz."""


class MilliVolt(_Unit):
    """Voltage in milli-Volt."""


class Minutes(_Unit):
    """Simulated wall time in minutes."""


class Steps(_Unit):
    """
    Simulation ticks. One step is currently 15 minutes of simulated time.
    """

    @staticmethod
    def minutes_per_step() -> Minutes:
        return Minutes(15)

    @classmethod
    def steps_per_day(cls) -> "Steps":
        return cls(MINUTES_PER_DAY // cls.minutes_per_step().value)

    @classmethod
    def from_minutes(cls, minutes: Minutes) -> "Steps":
        if not isinstance(minutes, Minutes):
            raise TypeError(f"expected Minutes, got {type(minutes).__name__}")
        return cls(minutes.value // cls.minutes_per_step().value)

    def time_of_day(self) -> Minutes:
        """Minutes passed since the start of the current simulated day."""
        total_minutes = self.value * self.minutes_per_step().value
        return Minutes(total_minutes % MINUTES_PER_DAY)

    def percentage_of_day(self) -> float:
        """Position of this step within its day as a fraction in [0, 1)."""
        return self.time_of_day().value / MINUTES_PER_DAY
