"""Tests for coalition identifiers, tolerance comparisons and model data classes"""

import math
import pytest
from pulp import PULP_CBC_CMD
from ccfa import CoalitionId, PartitionFormation, SolvingPars
from ccfa.model import (
    are_val_equal,
    definitely_greater,
    definitely_less,
    delta_to_zero,
    pm_consumed_power,
)
from .examples import two_cips_example, three_cips_example


@pytest.mark.smoke
def test_coalition_id_does_not_depend_on_order():
    """Equal member sets give equal identifiers"""
    assert CoalitionId.from_players([2, 0]) == CoalitionId.from_players((0, 2))
    assert hash(CoalitionId.from_players([2, 0])) == hash(CoalitionId(5))
    assert CoalitionId.from_players([0, 2]) != CoalitionId.from_players([0, 1])


@pytest.mark.smoke
def test_coalition_id_operations():
    """Members, size, union and inclusion"""
    cid = CoalitionId.from_players([0, 2])
    assert cid.players == (0, 2)
    assert len(cid) == 2
    assert 2 in cid and 1 not in cid
    assert str(cid) == "{0, 2}"
    assert cid | CoalitionId.from_players([1]) == CoalitionId.grand(3)
    assert cid.issubset(CoalitionId.grand(3))
    assert not CoalitionId.grand(3).issubset(cid)
    assert sorted([CoalitionId(3), CoalitionId(1), CoalitionId(2)]) == [
        CoalitionId(1),
        CoalitionId(2),
        CoalitionId(3),
    ]


@pytest.mark.smoke
def test_bad_coalition_ids_are_rejected():
    """Negative masks and players are rejected"""
    with pytest.raises(ValueError):
        CoalitionId(-1)
    with pytest.raises(ValueError):
        CoalitionId.from_players([-1])


def test_tolerance_comparisons():
    """Comparisons ignore floating point noise"""
    assert are_val_equal(0.1 + 0.2, 0.3)
    assert not definitely_greater(0.1 + 0.2, 0.3)
    assert definitely_greater(0.31, 0.3)
    assert definitely_less(0.3, 0.31)
    assert are_val_equal(1e9, 1e9 + 1e-3)
    assert not definitely_greater(math.nan, 0.0)
    assert not definitely_less(math.nan, 0.0)
    assert definitely_less(-math.inf, -1e12)
    assert not definitely_less(-math.inf, -math.inf)
    assert delta_to_zero(1e-9) == 0.0
    assert delta_to_zero(0.5) == 0.5


def test_pm_consumed_power():
    """Power is linear in the utilization"""
    assert pm_consumed_power(100, 200, 0) == 100
    assert pm_consumed_power(100, 200, 0.5) == 150
    assert pm_consumed_power(100, 200, 1) == 200


def test_scenario_default_tables():
    """Missing optional tables get default values"""
    scenario = two_cips_example()
    assert scenario.cip_pm_power_states == ((False,), (False,))
    assert scenario.cip_pm_asleep_costs == ((0.0,), (0.0,))
    assert scenario.cip_pm_awake_costs == ((0.0,), (0.0,))
    assert scenario.cip_to_cip_vm_migration_costs == (((0.0,), (0.0,)), ((0.0,), (0.0,)))
    assert isinstance(scenario.cip_revenues, tuple)


def test_scenario_machines():
    """PMs and VMs are sorted by type, with their power states"""
    scenario = three_cips_example()
    pms = scenario.cip_pms(1)
    assert [(pm.category, pm.powered_on) for pm in pms] == [(0, True), (1, False)]
    vms = scenario.cip_vms(2)
    assert [vm.category for vm in vms] == [0, 1, 1]
    assert all(vm.cip == 2 for vm in vms)
    assert scenario.cip_revenue(2) == pytest.approx(0.08 + 2 * 0.16)


@pytest.mark.smoke
def test_default_solving_pars():
    """Default parameters use CBC, Nash-stable partitions and Shapley values"""
    solving_pars = SolvingPars()
    assert isinstance(solving_pars.solver, PULP_CBC_CMD)
    assert solving_pars.formation == PartitionFormation.NASH
    assert solving_pars.workers == 1


@pytest.mark.smoke
@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"relative_gap": 1.5}, "Relative gap"),
        ({"relative_gap": -0.1}, "Relative gap"),
        ({"workers": 0}, "workers"),
        ({"formation": "nash"}, "Formation"),
        ({"payoff_division": "shapley"}, "Payoff division"),
    ],
)
def test_bad_solving_pars_are_rejected(kwargs, message):
    """Invalid solving parameters raise ValueError"""
    with pytest.raises(ValueError) as excinfo:
        SolvingPars(**kwargs)
    assert message in str(excinfo.value)
