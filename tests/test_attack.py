import itertools

import pytest

from gridattack.core.agent import Household
from gridattack.core.metrics import InfectionState
from gridattack.core.types import Steps, Watt
from gridattack.grid.powergeneration import PowerGeneration, SineParam
from gridattack.grid.states import PowerState
from gridattack.methods.attack import Attack, AttackBehaviour, apply_transition


def _household(index, state, power_state=None):
    unit = PowerGeneration(
        average_power_usage=Watt(1_000),
        consumption_param=[SineParam(begin=0.0, end=1.0, a=0.0, b=1.0, c=0.0, d=1.0)],
        infection_state=state
    )
    household = Household(index, unit)
    if power_state is not None:
        household.power_state = power_state
    return household


def _attack(rng, infection=0.5, patch=0.5, behaviour=None, **kwargs):
    return Attack(rng, 0.5, infection, patch, behaviour or [], **kwargs)


@pytest.mark.parametrize("state", [InfectionState.NOT_VULNERABLE, InfectionState.PATCHED])
def test_stable_states_never_change(state):
    for will_patch, will_infect in itertools.product([True, False], repeat=2):
        assert apply_transition(state, will_patch, will_infect) is state


def test_transition_table():
    V, I, P = InfectionState.VULNERABLE, InfectionState.INFECTED, InfectionState.PATCHED
    assert apply_transition(V, True, True) is P
    assert apply_transition(V, True, False) is P
    assert apply_transition(V, False, True) is I
    assert apply_transition(V, False, False) is V
    assert apply_transition(I, True, False) is P
    assert apply_transition(I, False, True) is I
    assert apply_transition(I, False, False) is I


def test_rolls_are_drawn_patch_first(scripted_rng):
    rng = scripted_rng([0.0, 0.9, 0.9, 0.0])
    attack = _attack(rng)
    assert attack.roll(2, Steps(0)) == [(True, False), (False, True)]
    assert rng.calls == 4


def test_windows_gate_success_but_not_draws(scripted_rng):
    rng = scripted_rng([0.0], repeat_last=True)
    attack = _attack(rng, infection_window=(Steps(5), Steps(10)), patch_window=(Steps(8), Steps(8)))
    assert attack.roll(1, Steps(0)) == [(False, False)]
    assert attack.roll(1, Steps(5)) == [(False, True)]
    assert attack.roll(1, Steps(8)) == [(True, True)]
    assert attack.roll(1, Steps(11)) == [(False, False)]
    assert rng.calls == 8


def test_patch_wins_over_infection(scripted_rng):
    households = [
        _household(0, InfectionState.VULNERABLE),
        _household(1, InfectionState.INFECTED),
        _household(2, InfectionState.NOT_VULNERABLE),
        _household(3, InfectionState.PATCHED),
    ]
    attack = _attack(scripted_rng([0.0], repeat_last=True))
    changed = attack.try_to_patch_and_infect(households, Steps(0))
    assert changed == 2
    assert [h.power_generation.infection_state for h in households] == [
        InfectionState.PATCHED,
        InfectionState.PATCHED,
        InfectionState.NOT_VULNERABLE,
        InfectionState.PATCHED,
    ]


def test_infection_without_patch(scripted_rng):
    households = [_household(0, InfectionState.VULNERABLE), _household(1, InfectionState.INFECTED)]
    attack = _attack(scripted_rng([0.9, 0.0, 0.9, 0.0]))
    attack.try_to_patch_and_infect(households, Steps(0))
    assert households[0].power_generation.infection_state == InfectionState.INFECTED
    assert households[1].power_generation.infection_state == InfectionState.INFECTED


def test_first_active_behaviour_is_selected(scripted_rng):
    first = AttackBehaviour(Steps(0), Steps(10), 2.0, 0.5)
    second = AttackBehaviour(Steps(5), Steps(20), 3.0, 0.1)
    attack = _attack(scripted_rng([]), behaviour=[first, second])
    assert attack.check_current_attack(Steps(7)) == first
    assert attack.check_current_attack(Steps(10)) == first
    assert attack.check_current_attack(Steps(15)) == second
    assert attack.check_current_attack(Steps(21)) is None
    assert attack.current_attack is None


def test_only_infected_devices_are_modified(scripted_rng):
    def state():
        return PowerState(Watt(100), Watt(300), Watt(200), Watt(200))

    infected = _household(0, InfectionState.INFECTED, state())
    vulnerable = _household(1, InfectionState.VULNERABLE, state())
    attack = _attack(scripted_rng([]), behaviour=[AttackBehaviour(Steps(0), Steps(0), 2.0, 0.5)])

    assert attack.modify_infected_devices([infected, vulnerable]) == 0

    attack.check_current_attack(Steps(0))
    assert attack.modify_infected_devices([infected, vulnerable]) == 1
    assert infected.power_state == PowerState(Watt(50), Watt(300), Watt(400), Watt(150))
    assert vulnerable.power_state == state()


def test_identity_attack_leaves_a_clean_household_balanced(scripted_rng):
    household = _household(0, InfectionState.INFECTED)
    clean = household.clean_power_gen()
    assert clean.power_error == Watt(0)
    assert clean.power_reported == clean.power_used - clean.power_generated

    attack = _attack(scripted_rng([]), behaviour=[AttackBehaviour(Steps(0), Steps(0))])
    attack.check_current_attack(Steps(0))
    assert attack.modify_device(household)
    assert household.power_state == clean
