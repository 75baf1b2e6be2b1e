"""
Boundary monitor for grid frequency and netstation voltage.

A ``Boundaries`` instance watches a single quantity. Values inside the
``NormalBand`` are fine; values outside it are checked against an ordered list
of ``BoundaryBand`` objects per direction. Each band counts how many steps the
value spent on or past its border, and becomes critical once that count
exceeds the allowed time. Returning to the normal band resets every band.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from gridattack.core.types import MilliHertz, MilliVolt, Minutes, Steps

T = TypeVar("T", MilliHertz, MilliVolt)


class GridBoundaryState(Enum):
    """State of a monitored quantity with regard to its boundaries."""
    TOO_LOW = "TooLow"
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    TOO_HIGH = "TooHigh"

    @property
    def is_critical(self) -> bool:
        return self in (GridBoundaryState.TOO_LOW, GridBoundaryState.TOO_HIGH)


class Direction(Enum):
    BELOW = -1
    ABOVE = 1


@dataclass(frozen=True)
class NormalBand(Generic[T]):
    """Inclusive range of values considered normal behaviour."""
    lower: T
    higher: T

    def compare(self, value: T) -> int:
        """Return -1 below the band, 1 above it and 0 inside it."""
        if value < self.lower:
            return -1
        if value > self.higher:
            return 1
        return 0


@dataclass
class BoundaryBand(Generic[T]):
    """
    A border the value may pass for a limited number of steps.

    Parameters
    ----------
    border : T
        Value that must be reached or passed to count a step.
    max_time_allowed : Steps
        Number of steps the value may spend past the border.
    time_passed : Steps
        Steps already spent past the border since the last reset.
    """
    border: T
    max_time_allowed: Steps
    time_passed: Steps = field(default_factory=Steps)

    def check(self, current: T, direction: Direction) -> GridBoundaryState:
        if direction is Direction.BELOW:
            passed = current <= self.border
        else:
            passed = current >= self.border
        if passed:
            self.time_passed += Steps(1)

        if self.time_passed > self.max_time_allowed:
            return GridBoundaryState.TOO_LOW if direction is Direction.BELOW else GridBoundaryState.TOO_HIGH
        return GridBoundaryState.LOW if direction is Direction.BELOW else GridBoundaryState.HIGH

    def reset(self) -> None:
        self.time_passed = Steps(0)

    def to_dict(self) -> Dict[str, int]:
        return {
            'border': self.border.value,
            'max_time_allowed': self.max_time_allowed.value,
            'time_passed': self.time_passed.value,
        }


@dataclass
class GridWarning:
    """
    Event produced when a monitored quantity changes into a non-normal state.

    The boundary itself only knows ``state`` and ``critical``; the agent doing
    the check fills in the rest with ``enrich``.
    """
    state: GridBoundaryState
    critical: bool
    agent_index: Optional[int] = None
    agent_powerstate: Optional[Any] = None
    freq_state: Optional[Any] = None
    volt_state: Optional[Any] = None
    infection_statistics: Optional[Any] = None
    step: Optional[Steps] = None

    @property
    def severity(self) -> int:
        """Logging level matching this event."""
        return logging.ERROR if self.critical else logging.WARNING

    def enrich(self, **kwargs) -> "GridWarning":
        return replace(self, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        def _dump(value):
            return value.to_dict() if value is not None else None

        return {
            'state': self.state.value,
            'critical': self.critical,
            'agent_index': self.agent_index,
            'step': self.step.value if self.step is not None else None,
            'agent_powerstate': _dump(self.agent_powerstate),
            'freq_state': _dump(self.freq_state),
            'volt_state': _dump(self.volt_state),
            'infection_statistics': _dump(self.infection_statistics),
        }


class Boundaries(Generic[T]):
    """
    Hysteresis state machine over the normal band and the deviation bands.

    Parameters
    ----------
    normal_band : NormalBand
        Range of values considered normal.
    lower_bands : list of BoundaryBand
        Bands checked when the value is below the normal band.
    upper_bands : list of BoundaryBand
        Bands checked when the value is above the normal band.
    """

    def __init__(
        self,
        normal_band: NormalBand,
        lower_bands: Optional[List[BoundaryBand]] = None,
        upper_bands: Optional[List[BoundaryBand]] = None,
        state: GridBoundaryState = GridBoundaryState.NORMAL
    ):
        self.normal_band = normal_band
        self.lower_bands: List[BoundaryBand] = list(lower_bands or [])
        self.upper_bands: List[BoundaryBand] = list(upper_bands or [])
        self.state = state

    @classmethod
    def from_limits(
        cls,
        unit: Type[T],
        normal: Tuple[float, float],
        lower: Sequence[Tuple[float, int]] = (),
        upper: Sequence[Tuple[float, int]] = ()
    ) -> "Boundaries":
        """
        Build a boundary from human units.

        Parameters
        ----------
        unit : type
            ``MilliHertz`` or ``MilliVolt``.
        normal : tuple of float
            Normal band in Hz or V.
        lower, upper : sequence of (float, int)
            Border in Hz or V and the allowed duration in minutes.
        """
        def _milli(value: float):
            return unit(int(value * 1000))

        def _bands(specs):
            return [
                BoundaryBand(_milli(border), Steps.from_minutes(Minutes(minutes)))
                for border, minutes in specs
            ]

        return cls(
            NormalBand(_milli(normal[0]), _milli(normal[1])),
            _bands(lower),
            _bands(upper)
        )

    def update(self, current: T) -> Optional[GridWarning]:
        """
        Feed a new value into the monitor.

        Returns
        -------
        GridWarning or None
            A warning when the aggregate state changed into Low, High, TooLow
            or TooHigh. Staying in a state or returning to Normal yields None.
        """
        position = self.normal_band.compare(current)
        if position == 0:
            if self.state is not GridBoundaryState.NORMAL:
                self.state = GridBoundaryState.NORMAL
                self.reset_bands()
            return None

        if position < 0:
            states = [band.check(current, Direction.BELOW) for band in self.lower_bands]
            critical, warning = GridBoundaryState.TOO_LOW, GridBoundaryState.LOW
        else:
            states = [band.check(current, Direction.ABOVE) for band in self.upper_bands]
            critical, warning = GridBoundaryState.TOO_HIGH, GridBoundaryState.HIGH

        if critical in states:
            return self._change_state(critical)
        if warning in states:
            return self._change_state(warning)
        return None

    def _change_state(self, state: GridBoundaryState) -> Optional[GridWarning]:
        if self.state is state:
            return None
        self.state = state
        return GridWarning(state=state, critical=state.is_critical)

    def reset_bands(self) -> None:
        for band in self.lower_bands + self.upper_bands:
            band.reset()

    def copy(self) -> "Boundaries":
        return Boundaries(
            self.normal_band,
            [replace(band) for band in self.lower_bands],
            [replace(band) for band in self.upper_bands],
            self.state
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'normal_band': {
                'lower': self.normal_band.lower.value,
                'higher': self.normal_band.higher.value,
            },
            'lower_bands': [band.to_dict() for band in self.lower_bands],
            'upper_bands': [band.to_dict() for band in self.upper_bands],
        }

    def __repr__(self) -> str:
        return (
            f"Boundaries(state={self.state.value}, "
            f"normal=[{self.normal_band.lower!r}, {self.normal_band.higher!r}], "
            f"lower={len(self.lower_bands)}, upper={len(self.upper_bands)})"
        )
