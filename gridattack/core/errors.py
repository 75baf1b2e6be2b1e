"""
Exception hierarchy for the grid attack model.

Construction problems (bad parameters, a malformed tree) are raised straight
to the caller. ``NeedToStop`` is the only exception used for control flow
during a run and is handled by the simulator itself.
"""

from typing import Optional


class ModelError(Exception):
    """Base class for every error raised by the model."""


class ParamError(ModelError):
    """
    Invalid parameter bundle.

    Parameters
    ----------
    msg : str
        What is wrong with the value.
    context : str
        Name of the offending parameter.
    """

    def __init__(self, msg: str, context: str = ""):
        self.msg = msg
        self.context = context
        super().__init__(f"ParamError: {context} - {msg}")


class GraphError(ModelError):
    """Something went wrong while building the grid tree."""

    def __init__(self, msg: str):
        super().__init__(f"Something went wrong with the graph: {msg}")


class NeedToStop(ModelError):
    """Raised when a critical frequency condition ends the run."""

    def __init__(self, step: int, reason: str = "critical frequency condition"):
        self.step = step
        self.reason = reason
        super().__init__(f"NeedToStop at step {step}: {reason}")


class LogStateError(ModelError):
    """An agent could not produce its per-step snapshot."""

    def __init__(self, agent_index: int, source: Optional[BaseException] = None):
        self.agent_index = agent_index
        self.source = source
        super().__init__(f"Agent: {agent_index} could not log their state. Error: {source}")
