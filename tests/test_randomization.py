"""Tests for the random generation of scenarios"""

import pytest
from ccfa.randomization import ScenarioRandomizer
from .examples import three_cips_example


@pytest.mark.smoke
def test_disabled_randomizer_gives_the_base_scenario():
    """Without perturbations there is a single iteration with the base scenario"""
    scenario = three_cips_example()
    randomizer = ScenarioRandomizer(scenario)
    assert not randomizer.enabled
    assert list(randomizer.scenarios(5)) == [scenario]


def test_same_seed_gives_same_scenarios():
    """Random scenarios are reproducible"""
    kwargs = {
        "gen_vms": True,
        "gen_pm_power_states": True,
        "gen_pm_on_off_costs": True,
        "gen_vm_migration_costs": True,
        "seed": 1234,
    }
    scenarios1 = list(ScenarioRandomizer(three_cips_example(), **kwargs).scenarios(3))
    scenarios2 = list(ScenarioRandomizer(three_cips_example(), **kwargs).scenarios(3))
    assert len(scenarios1) == 3
    assert scenarios1 == scenarios2


def test_random_numbers_of_vms():
    """Numbers of VMs are not greater than the base numbers and the rest of tables are kept"""
    base = three_cips_example()
    for scenario in ScenarioRandomizer(base, gen_vms=True, seed=7).scenarios(20):
        for base_row, row in zip(base.cip_num_vms, scenario.cip_num_vms):
            assert all(isinstance(n, int) and 0 <= n <= base_n for n, base_n in zip(row, base_row))
        assert scenario.cip_pm_power_states == base.cip_pm_power_states
        assert scenario.cip_pm_asleep_costs == base.cip_pm_asleep_costs


def test_random_power_states():
    """There is a power state for each PM"""
    base = three_cips_example()
    scenario = ScenarioRandomizer(base, gen_pm_power_states=True).generate()
    for cip in range(base.num_cips):
        assert len(scenario.cip_pm_power_states[cip]) == sum(base.cip_num_pms[cip])
    assert scenario.cip_num_vms == base.cip_num_vms


def test_random_switch_costs():
    """Switch-on and switch-off costs are equal and non-negative"""
    scenario = ScenarioRandomizer(three_cips_example(), gen_pm_on_off_costs=True).generate()
    assert scenario.cip_pm_asleep_costs == scenario.cip_pm_awake_costs
    assert all(cost >= 0 for row in scenario.cip_pm_asleep_costs for cost in row)


def test_random_migration_costs():
    """Migrating inside a provider is free and larger VM types cost more on average"""
    randomizer = ScenarioRandomizer(three_cips_example(), gen_vm_migration_costs=True)
    scenarios = list(randomizer.scenarios(50))
    for scenario in scenarios:
        costs = scenario.cip_to_cip_vm_migration_costs
        for cip in range(scenario.num_cips):
            assert costs[cip][cip] == (0.0, 0.0)
        assert all(cost >= 0 for src in costs for dst in src for cost in dst)
    mean_small = sum(s.cip_to_cip_vm_migration_costs[0][1][0] for s in scenarios) / len(scenarios)
    mean_large = sum(s.cip_to_cip_vm_migration_costs[0][1][1] for s in scenarios) / len(scenarios)
    assert mean_large > mean_small
