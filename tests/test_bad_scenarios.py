"""Check that appropriate exceptions are raised if we try to define a scenario
with invalid input"""

from dataclasses import replace
import pytest
from ccfa import Ccfa, Scenario
from .examples import two_cips_example


def bad_example(**changes) -> Scenario:
    """The two-provider example with some changes"""
    return replace(two_cips_example(), **changes)


@pytest.mark.smoke
def test_no_cips_is_rejected():
    """A scenario without providers is rejected"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(num_cips=0))
    assert "Number of CIP must be a positive number" in str(excinfo.value)


@pytest.mark.smoke
def test_scenario_is_not_a_scenario():
    """Only scenarios can be analyzed"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa({"num_cips": 2})
    assert "Scenario must be a Scenario" in str(excinfo.value)


@pytest.mark.smoke
def test_bad_revenues_shape_is_rejected():
    """Revenues must have a row for each provider"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(cip_revenues=[[1.0]]))
    assert "Unexpected number of CIP revenues" in str(excinfo.value)


@pytest.mark.smoke
def test_bad_migration_costs_shape_is_rejected():
    """Migration costs must have an entry for each pair of providers and VM type"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(cip_to_cip_vm_migration_costs=[[[0.0], [0.0]]]))
    assert "Unexpected number of CIP-to-CIP VM migration costs" in str(excinfo.value)


@pytest.mark.smoke
def test_negative_number_of_pms_is_rejected():
    """Numbers of PMs must be non-negative integers"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(cip_num_pms=[[1], [-1]], cip_pm_power_states=[[0], []]))
    assert "Number of CIP PMs must be non-negative integers" in str(excinfo.value)


@pytest.mark.smoke
def test_fractional_number_of_vms_is_rejected():
    """Numbers of VMs must be integers"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(cip_num_vms=[[1.5], [1]]))
    assert "Number of CIP VMs must be non-negative integers" in str(excinfo.value)


@pytest.mark.smoke
def test_bad_power_states_are_rejected():
    """There must be a power state for each PM of each provider"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(cip_pm_power_states=[[], [0]]))
    assert "Missing PM power states for CIP 0" in str(excinfo.value)


@pytest.mark.smoke
def test_negative_electricity_cost_is_rejected():
    """Costs must be non-negative"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(cip_electricity_costs=[0.1, -0.1]))
    assert "CIP electricity costs must be non-negative numbers" in str(excinfo.value)


@pytest.mark.smoke
def test_cpu_share_out_of_range_is_rejected():
    """CPU shares are fractions of a PM"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(vm_spec_cpus=[[1.5]]))
    assert "VM CPU share requirements must be in range [0, 1]" in str(excinfo.value)


@pytest.mark.smoke
def test_max_power_lower_than_min_power_is_rejected():
    """Maximum power can not be lower than minimum power"""
    with pytest.raises(ValueError) as excinfo:
        Ccfa(bad_example(pm_spec_max_powers=[50.0]))
    assert "PM maximum power consumption must not be lower than the minimum" in str(excinfo.value)


@pytest.mark.smoke
def test_non_integer_counts_are_rejected():
    """Numbers of providers and types must be integers"""
    with pytest.raises(ValueError) as excinfo:
        bad_example(num_cips=2.0)
    assert "must be integers" in str(excinfo.value)


@pytest.mark.smoke
def test_fractional_number_of_pms_is_rejected():
    """Default power states need integer numbers of PMs"""
    with pytest.raises(ValueError) as excinfo:
        bad_example(cip_num_pms=[[1.5], [1]], cip_pm_power_states=None)
    assert "PM numbers and power states must be tables of integers" in str(excinfo.value)
