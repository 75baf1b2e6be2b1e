"""
Grid model: construction of the tree and the per-step pipeline.

``build_model`` turns a parameter bundle into a ``GridModel``. A model runs
step by step; every step goes through the same ordered phases, and within a
phase the agents of one level are independent and may be handled by a
worker pool. A level is always finished before the next level reads it.
"""

import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Union

from gridattack.core.agent import Area, BaseAgent, Household, Netstation, Root
from gridattack.core.errors import LogStateError, NeedToStop
from gridattack.core.graph import GridGraph
from gridattack.core.metrics import GridInformation, InfectionStatistics
from gridattack.core.output import OutputHandler
from gridattack.core.parameters import ModelParameters
from gridattack.core.rng import random_percentage, spawn_generators, uniform_int
from gridattack.core.types import Steps
from gridattack.grid.boundary import GridWarning
from gridattack.grid.powergeneration import PowerGeneration
from gridattack.grid.reserve import ReservePower
from gridattack.methods.attack import Attack

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """
    Outcome of a run.

    Attributes
    ----------
    completed_steps : int
        Number of steps that were fully executed, outputs included.
    stopped_early : bool
        True if a critical frequency event ended the run.
    reason : str or None
        Why the run stopped early.
    stop_step : int or None
        Step during which the critical frequency event happened.
    snapshot_failures : list of LogStateError
        Agents whose snapshot could not be produced, per step.
    """
    completed_steps: int = 0
    stopped_early: bool = False
    reason: Optional[str] = None
    stop_step: Optional[int] = None
    snapshot_failures: List[LogStateError] = field(default_factory=list)


class GridModel:
    """
    A built grid, ready to run.

    Parameters
    ----------
    params : ModelParameters
        The bundle the model was built from.
    graph : GridGraph
        Tree of agent indices.
    agents : list of BaseAgent
        Agent table; ``agents[i].index == i``.
    attack : Attack
        Attack engine with its own random stream.
    reserve_power : ReservePower
        Reserve used to compensate the root's power error.
    """

    def __init__(
        self,
        params: ModelParameters,
        graph: GridGraph,
        agents: List[BaseAgent],
        attack: Attack,
        reserve_power: ReservePower
    ):
        self.params = params
        self.graph = graph
        self.agents = agents
        self.attack = attack
        self.reserve_power = reserve_power

        self.root: Root = agents[0]
        self.areas: List[Area] = [a for a in agents if isinstance(a, Area)]
        self.netstations: List[Netstation] = [a for a in agents if isinstance(a, Netstation)]
        self.households: List[Household] = [a for a in agents if isinstance(a, Household)]

        self.next_step = Steps(0)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._snapshot_failures: List[LogStateError] = []

    async def _fan_out(self, fn: Callable, items: Iterable) -> list:
        """
        Apply ``fn`` to every item and wait for all of them.

        Uses the worker pool while a run holds one, otherwise runs inline.
        Results keep the order of ``items``.
        """
        items = list(items)
        if self._executor is None:
            return [fn(item) for item in items]
        loop = asyncio.get_running_loop()
        futures = [loop.run_in_executor(self._executor, fn, item) for item in items]
        return list(await asyncio.gather(*futures))

    async def step(self, step: Steps, output: Optional[OutputHandler] = None) -> GridInformation:
        """
        Execute one step of the model.

        Parameters
        ----------
        step : Steps
            The step to execute.
        output : OutputHandler, optional
            Receives warnings, snapshots and the summary.

        Returns
        -------
        GridInformation
            Summary of the grid after the step.

        Raises
        ------
        NeedToStop
            After the outputs of this step are emitted, if a critical
            frequency event happened and the run stops on those.
        """
        output = output or OutputHandler()
        name = self.params.name
        logger.info(f"{name} - Taking step {step.value}")

        logger.debug("Substep update step")
        await self._fan_out(lambda agent: agent.set_step(step), self.agents)

        logger.debug("Substep new powerstate")
        await self._fan_out(Household.clean_power_gen, self.households)

        logger.debug("Substep attack and patch")
        self.attack.check_current_attack(step)
        rolls = self.attack.roll(len(self.households), step)
        await self._fan_out(Attack.apply_roll, zip(self.households, rolls))
        await self._fan_out(self.attack.modify_device, self.households)

        logger.debug("Substep powerstate from children")
        for level in (self.netstations, self.areas, [self.root]):
            await self._fan_out(lambda agent: agent.calc_power_from_child(self.agents), level)

        if self.params.track_history:
            logger.debug("Substep update history")
            await self._fan_out(BaseAgent.update_history, self.agents)

        logger.debug("Substep infection statistics")
        infection_statistics = self.infection_statistics()

        logger.debug("Substep grid compensation")
        compensated = self.root.compensate(self.reserve_power)
        logger.debug(f"Compensation from storage - {compensated.value}")

        logger.debug("Substep power mismatch impact")
        self.root.power_mismatch(self.params.grid.bulk_consumption)
        await self._fan_out(Netstation.power_mismatch, self.netstations)

        logger.debug("Substep boundary check")
        need_to_stop = await self._boundary_check(output)

        if self.params.enable_output:
            logger.debug("Substep model output")
            output.on_snapshots(step.value, self._snapshots())

        with self.root.lock.read():
            info = GridInformation(
                step=step,
                infection_statistics=infection_statistics,
                freq_state=self.root.freq_state.copy(),
                power_state=self.root.power_state.copy(),
                reserve_power=replace(self.reserve_power)
            )
        logger.debug(f"Grid information - {info.infection_statistics}")
        logger.debug(f"Grid information - {info.power_state!r}")
        output.on_grid_information(info)

        if need_to_stop:
            raise NeedToStop(step.value, "critical frequency condition")
        return info

    def infection_statistics(self) -> InfectionStatistics:
        states = []
        for household in self.households:
            with household.lock.read():
                states.append(household.power_generation.infection_state)
        return InfectionStatistics.from_states(states)

    async def _boundary_check(self, output: OutputHandler) -> bool:
        freq_warning = self.root.boundary_check()
        volt_warnings = await self._fan_out(
            lambda netstation: netstation.boundary_check(self.agents),
            self.netstations
        )

        if freq_warning is not None:
            self._emit(freq_warning, "Frequency", output)
        for warning in volt_warnings:
            if warning is not None:
                self._emit(warning, "Voltage", output)

        return bool(
            self.params.stop_on_freq_error
            and freq_warning is not None
            and freq_warning.critical
        )

    @staticmethod
    def _emit(warning: GridWarning, quantity: str, output: OutputHandler) -> None:
        label = "error" if warning.critical else "warning"
        logger.log(
            warning.severity,
            f"{quantity} {label} - agent {warning.agent_index}: {warning.state.value}"
        )
        output.on_warning(warning)

    def _snapshots(self) -> list:
        snapshots = []
        for agent in self.agents:
            try:
                snapshot = agent.to_dict()
                json.dumps(snapshot)
            except (TypeError, ValueError, AttributeError) as e:
                failure = LogStateError(agent.index, e)
                logger.error(str(failure))
                self._snapshot_failures.append(failure)
                continue
            snapshots.append(snapshot)
        return snapshots

    async def run(self, num_steps: Union[Steps, int, None] = None, output: Optional[OutputHandler] = None) -> RunResult:
        """
        Run the model for a number of steps.

        Parameters
        ----------
        num_steps : Steps or int, optional
            Defaults to ``params.steps``. Steps continue from the last run.
        output : OutputHandler, optional
            Receives the per-step outputs.

        Returns
        -------
        RunResult
            Number of completed steps and the reason for an early stop.
        """
        if num_steps is None:
            num_steps = self.params.steps
        n = num_steps.value if isinstance(num_steps, Steps) else int(num_steps)
        name = self.params.name
        result = RunResult()
        self._snapshot_failures = []

        logger.info(f"{name} - Running")
        logger.info(
            f"{name} - Agents: 1 root, {len(self.areas)} areas, "
            f"{len(self.netstations)} netstations, {len(self.households)} households"
        )

        workers = self.params.max_workers
        self._executor = ThreadPoolExecutor(max_workers=workers) if workers > 1 else None
        try:
            for _ in range(n):
                step = self.next_step
                try:
                    await self.step(step, output)
                except NeedToStop as e:
                    logger.info(f"{name} - {e}")
                    result.completed_steps += 1
                    result.stopped_early = True
                    result.reason = e.reason
                    result.stop_step = e.step
                    self.next_step = step + Steps(1)
                    break
                result.completed_steps += 1
                self.next_step = step + Steps(1)
                await asyncio.sleep(0)
        finally:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

        result.snapshot_failures = list(self._snapshot_failures)
        logger.info(f"{name} - Finished running after {result.completed_steps} steps")
        return result


def build_model(params: ModelParameters) -> GridModel:
    """
    Build the tree and all agents.

    Indices are handed out in creation order: the root, then per area the
    area itself followed by each of its netstations, each directly followed
    by its households.

    Raises
    ------
    ParamError
        If a distribution drawn from is degenerate.
    GraphError
        If the tree does not come out in creation order.
    """
    name = params.name
    grid = params.grid
    build_rng, attack_rng = spawn_generators(params.seed)

    logger.info(f"{name} - Agent and Graph generation")
    graph = GridGraph()
    agents: List[BaseAgent] = []

    def _add(agent: BaseAgent, parent: Optional[int]) -> int:
        graph.add_node(agent.kind, agent.index)
        if parent is not None:
            graph.add_edge(parent, agent.index)
        agents.append(agent)
        return agent.index

    root_index = _add(Root(len(agents), grid.freq_boundary.copy()), None)
    for _ in range(grid.n_areas):
        area_index = _add(Area(len(agents)), root_index)
        for _ in range(uniform_int(build_rng, grid.ns_per_a)):
            ns_index = _add(
                Netstation(len(agents), grid.volt_boundary.copy(), grid.volt_modifier),
                area_index
            )
            for _ in range(uniform_int(build_rng, grid.hs_per_ns)):
                index = len(agents)
                if random_percentage(build_rng) < grid.pv_adoption:
                    unit = PowerGeneration.new_pv(build_rng, grid, params.attack, index)
                else:
                    unit = PowerGeneration.new_no_pv(build_rng, grid, params.attack, index)
                _add(Household(index, unit), ns_index)

    logger.info(f"{name} - Populating agents with their children")
    for agent in agents:
        agent.children = graph.get_children(agent.index)

    reserve_power = ReservePower.symmetric(grid.energy_storage, grid.max_gen_inc_tick)
    attack = Attack.from_parameters(params.attack, attack_rng)
    logger.debug(f"{name} - finished building the model")
    return GridModel(params, graph, agents, attack, reserve_power)


def run(model: GridModel, num_steps: Union[Steps, int, None] = None, output: Optional[OutputHandler] = None) -> RunResult:
    """Synchronous entry point around ``GridModel.run``."""
    return asyncio.run(model.run(num_steps, output))
