"""
Output collaborators receiving the per-step results of a run.

The model never writes files itself. It calls the hooks of an
``OutputHandler`` once per step; subclasses decide what to do with the
summary, the boundary events and the agent snapshots.
"""

import json
import logging
from typing import Any, Dict, List

import pandas as pd

from gridattack.core.metrics import GridInformation
from gridattack.grid.boundary import GridWarning

logger = logging.getLogger(__name__)


class OutputHandler:
    """Base output. Every hook does nothing."""

    def on_grid_information(self, info: GridInformation) -> None:
        pass

    def on_warning(self, warning: GridWarning) -> None:
        pass

    def on_snapshots(self, step: int, snapshots: List[Dict[str, Any]]) -> None:
        pass


class LoggingOutput(OutputHandler):
    """Write the step summary and events to the log."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def on_grid_information(self, info: GridInformation) -> None:
        self.log.info(json.dumps(info.to_dict()))

    def on_warning(self, warning: GridWarning) -> None:
        self.log.log(warning.severity, json.dumps(warning.to_dict()))

    def on_snapshots(self, step: int, snapshots: List[Dict[str, Any]]) -> None:
        self.log.debug(f"Step {step}: {len(snapshots)} agent snapshots")


class GridInformationRecorder(OutputHandler):
    """
    Keep everything a run produces in memory.

    Attributes
    ----------
    infos : list of GridInformation
        One summary per step, in order.
    warnings : list of GridWarning
        Every boundary event, in order.
    snapshots : dict
        Step number to the list of agent snapshots of that step.
    """

    def __init__(self):
        self.infos: List[GridInformation] = []
        self.warnings: List[GridWarning] = []
        self.snapshots: Dict[int, List[Dict[str, Any]]] = {}

    def on_grid_information(self, info: GridInformation) -> None:
        self.infos.append(info)

    def on_warning(self, warning: GridWarning) -> None:
        self.warnings.append(warning)

    def on_snapshots(self, step: int, snapshots: List[Dict[str, Any]]) -> None:
        self.snapshots[step] = snapshots

    def to_frame(self) -> pd.DataFrame:
        """One row per step with the flattened summary."""
        rows = [info.flatten() for info in self.infos]
        frame = pd.DataFrame(rows)
        if not frame.empty:
            frame = frame.set_index('step')
        return frame

    def warnings_frame(self) -> pd.DataFrame:
        rows = [
            {
                'step': w.step.value if w.step is not None else None,
                'agent_index': w.agent_index,
                'state': w.state.value,
                'critical': w.critical,
            }
            for w in self.warnings
        ]
        return pd.DataFrame(rows, columns=['step', 'agent_index', 'state', 'critical'])
