import pytest

from gridattack.core.parameters import ModelParameters


class ScriptedRng:
    """Stand-in for a numpy Generator returning a fixed sequence from random()."""

    def __init__(self, values, repeat_last=False):
        self.values = list(values)
        self.repeat_last = repeat_last
        self.calls = 0

    def random(self):
        if self.calls >= len(self.values):
            if not self.repeat_last:
                raise AssertionError("scripted rng ran out of values")
            value = self.values[-1]
        else:
            value = self.values[self.calls]
        self.calls += 1
        return value


@pytest.fixture
def params():
    return ModelParameters.test()


@pytest.fixture
def scripted_rng():
    return ScriptedRng
