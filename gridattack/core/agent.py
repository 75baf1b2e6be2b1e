"""
Agent implementation for the grid tree.

This module provides the four agent kinds of the grid: the root of the
grid, the areas below it, the netstations (local transformers) and the
households. Agents never hold references to each other; children are kept
as indices into the agent table owned by the model.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from gridattack.core.locking import AgentLock
from gridattack.core.metrics import InfectionStatistics
from gridattack.core.types import Steps, Watt
from gridattack.grid.boundary import Boundaries, GridWarning
from gridattack.grid.powergeneration import PowerGeneration
from gridattack.grid.reserve import ReservePower
from gridattack.grid.states import FreqState, PowerState, VoltState


class AgentKind(Enum):
    """Position of an agent in the tree."""
    ROOT = "Root"
    AREA = "Area"
    NETSTATION = "Netstation"
    HOUSEHOLD = "Household"


class BaseAgent:
    """
    Base agent of the grid tree.

    Parameters
    ----------
    index : int
        Index of this agent in the agent table. Fixed for the whole run.
    children : list of int, optional
        Indices of the children. Filled in after the tree is built.

    Attributes
    ----------
    step : Steps
        Step the agent is currently in.
    power_state : PowerState
        Power of this agent for the current step.
    lock : AgentLock
        Guards ``step``, ``power_state`` and the kind specific state.
    """

    kind: AgentKind

    def __init__(self, index: int, children: Optional[List[int]] = None):
        self.index = index
        self.step = Steps(0)
        self.children: List[int] = list(children or [])
        self.power_state = PowerState()
        self.lock = AgentLock()

    def set_step(self, step: Steps) -> None:
        with self.lock.write():
            self.step = step

    def calc_power_from_child(self, table: Sequence["BaseAgent"]) -> PowerState:
        """
        Replace the own power with the sum of the children's power.

        Children are read under their shared lock and must already be final
        for this step.

        Parameters
        ----------
        table : sequence of BaseAgent
            The agent table, indexed by agent index.

        Returns
        -------
        PowerState
            Copy of the new power state.
        """
        child_states = []
        for child in self.children:
            agent = table[child]
            with agent.lock.read():
                child_states.append(agent.power_state.copy())
        total = PowerState.sum_of(child_states)
        with self.lock.write():
            self.power_state.set_power(total)
            return self.power_state.copy()

    def update_history(self) -> None:
        with self.lock.write():
            self.power_state.update_history()

    def read_power_state(self) -> PowerState:
        with self.lock.read():
            return self.power_state.copy()

    def _extra_state(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the agent as plain JSON-compatible values."""
        with self.lock.read():
            snapshot = {
                'kind': self.kind.value,
                'index': self.index,
                'step': self.step.value,
                'children': list(self.children),
                'power_state': self.power_state.to_dict(),
            }
            snapshot.update(self._extra_state())
        return snapshot

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(index={self.index}, "
            f"step={self.step.value}, "
            f"children={self.children}, "
            f"{self.power_state!r})"
        )


class Root(BaseAgent):
    """
    Top of the grid. Watches the grid frequency.

    Parameters
    ----------
    index : int
        Always 0 for a model built by ``build_model``.
    freq_boundary : Boundaries
        Frequency boundaries of the grid.
    """

    kind = AgentKind.ROOT

    def __init__(self, index: int, freq_boundary: Boundaries, children: Optional[List[int]] = None):
        super().__init__(index, children)
        self.freq_state = FreqState()
        self.freq_boundary = freq_boundary

    def compensate(self, reserve_power: ReservePower) -> Watt:
        """Let the reserve absorb part of the power error."""
        with self.lock.write():
            compensated = reserve_power.compensate(self.power_state.power_error)
            self.power_state.power_error -= compensated
        return compensated

    def power_mismatch(self, bulk_consumption: Watt) -> None:
        with self.lock.write():
            new = self.freq_state.power_mismatch(
                self.power_state.power_used,
                self.power_state.power_error,
                bulk_consumption
            )
            self.freq_state.update(new)

    def boundary_check(self) -> Optional[GridWarning]:
        with self.lock.write():
            warning = self.freq_boundary.update(self.freq_state.now)
            if warning is None:
                return None
            return warning.enrich(
                agent_index=self.index,
                agent_powerstate=self.power_state.copy(),
                freq_state=self.freq_state.copy(),
                step=self.step
            )

    def _extra_state(self) -> Dict[str, Any]:
        return {
            'freq_state': self.freq_state.to_dict(),
            'freq_boundary': self.freq_boundary.to_dict(),
        }


class Area(BaseAgent):
    """Geographic area; only aggregates its netstations."""

    kind = AgentKind.AREA


class Netstation(BaseAgent):
    """
    Local transformer feeding a group of households. Watches the voltage.

    Parameters
    ----------
    index : int
        Index in the agent table.
    volt_boundary : Boundaries
        Voltage boundaries of this netstation.
    volt_modifier : float
        Sensitivity of the voltage to power mismatch.
    """

    kind = AgentKind.NETSTATION

    def __init__(
        self,
        index: int,
        volt_boundary: Boundaries,
        volt_modifier: float = 1.0,
        children: Optional[List[int]] = None
    ):
        super().__init__(index, children)
        self.volt_state = VoltState(volt_modifier)
        self.volt_boundary = volt_boundary

    def infection_statistics(self, table: Sequence[BaseAgent]) -> InfectionStatistics:
        states = []
        for child in self.children:
            household = table[child]
            with household.lock.read():
                states.append(household.power_generation.infection_state)
        return InfectionStatistics.from_states(states)

    def power_mismatch(self) -> None:
        with self.lock.write():
            new = self.volt_state.power_mismatch(self.power_state.power_used, self.power_state.power_error)
            self.volt_state.update(new)

    def boundary_check(self, table: Sequence[BaseAgent]) -> Optional[GridWarning]:
        with self.lock.write():
            warning = self.volt_boundary.update(self.volt_state.now)
            if warning is None:
                return None
            warning = warning.enrich(
                agent_index=self.index,
                agent_powerstate=self.power_state.copy(),
                volt_state=self.volt_state.copy(),
                step=self.step
            )
        return warning.enrich(infection_statistics=self.infection_statistics(table))

    def _extra_state(self) -> Dict[str, Any]:
        return {
            'volt_state': self.volt_state.to_dict(),
            'volt_boundary': self.volt_boundary.to_dict(),
        }


class Household(BaseAgent):
    """
    Leaf of the tree, with its own power generation unit.

    Parameters
    ----------
    index : int
        Index in the agent table.
    power_generation : PowerGeneration
        Generation and consumption model of this household.
    """

    kind = AgentKind.HOUSEHOLD

    def __init__(self, index: int, power_generation: PowerGeneration):
        super().__init__(index)
        self.power_generation = power_generation

    def clean_power_gen(self) -> PowerState:
        """
        Set the power state from the generation unit, as if nobody attacked.

        The meter reports the true net usage ``used - generated`` and an
        honest household causes no power error.
        """
        with self.lock.write():
            generated, used, net_usage = self.power_generation.calc_power(self.step)
            self.power_state.set_power(PowerState(
                power_generated=generated,
                power_used=used,
                power_reported=net_usage,
                power_error=Watt(0)
            ))
            return self.power_state.copy()

    def calc_power_from_child(self, table: Sequence[BaseAgent]) -> PowerState:
        raise TypeError("households have no children; use clean_power_gen")

    def _extra_state(self) -> Dict[str, Any]:
        return {'power_generation': self.power_generation.to_dict()}
