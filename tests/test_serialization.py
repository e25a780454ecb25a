"""Test for scenario files, the ScenarioSerializer class and CSV export"""

import csv
import json
import pytest
from ccfa.serialization import (
    ScenarioSerializer,
    export_csv,
    parse_scenario,
    read_scenario_file,
)
from ccfa.units import CurrencyPerTime, EnergyPrice, Power
from .examples import three_cips_example, two_cips_example

MINIMAL_SCENARIO = """
# Two providers
NUM_CIPS=2
num_pm_types=1
num_vm_types=1
cip_revenues=[[1.0] [1.0]]
pm_spec_min_powers=[100]
pm_spec_max_powers=[200]
cip_num_pms=[[1] [1]]
cip_num_vms=[[2] [1]]
cip_electricity_costs=[0.1 0.1]
vm_spec_cpus=[[0.3]]
vm_spec_rams=[[0.2]]
"""


@pytest.mark.smoke
def test_read_scenario_file(examples_dir):
    """The small sample scenario file matches the scenario defined in code"""
    scenario = read_scenario_file(examples_dir / "sample_scenario2.cfg")
    assert scenario == three_cips_example()


def test_read_large_scenario_file(examples_dir, caplog):
    """Unknown keys are ignored with a warning"""
    scenario = read_scenario_file(examples_dir / "sample_scenario1.cfg")
    assert scenario.num_cips == 3
    assert scenario.cip_num_pms == ((0, 42, 0), (0, 0, 41), (0, 0, 41))
    assert scenario.cip_num_vms == ((0, 65, 0), (0, 61, 0), (0, 61, 0))
    assert len(scenario.cip_pm_power_states[0]) == 42
    assert not any(scenario.cip_pm_power_states[1])
    assert scenario.cip_to_cip_vm_migration_costs[0][1] == pytest.approx((0.02, 0.02, 0.02))
    assert scenario.vm_spec_rams[2] == pytest.approx((0.25, 0.125, 0.0625))
    assert "cip_coalition_costs" in caplog.text


def test_parse_scenario_with_defaults():
    """Keys are case insensitive and optional tables get default values"""
    scenario = parse_scenario(MINIMAL_SCENARIO)
    assert scenario == two_cips_example()
    assert isinstance(scenario.num_cips, int)
    assert isinstance(scenario.cip_num_pms[0][0], int)


@pytest.mark.parametrize(
    "line, message",
    [
        ("cip_revenues [[1.0] [1.0]]", "'=' is missing"),
        ("cip_revenues=[[1.0] [1.0]", "']' is missing"),
        ("cip_revenues=[[1.0] [1.0]]]", "'[' is missing"),
        ("cip_revenues=[[1.0] [one]]", "invalid number"),
    ],
)
def test_malformed_scenario_is_rejected(line, message):
    """Malformed lines raise ValueError"""
    text = MINIMAL_SCENARIO.replace("cip_revenues=[[1.0] [1.0]]", line)
    with pytest.raises(ValueError) as excinfo:
        parse_scenario(text)
    assert message in str(excinfo.value)


def test_missing_key_is_rejected():
    """Mandatory keys must be present"""
    text = MINIMAL_SCENARIO.replace("vm_spec_rams=[[0.2]]", "")
    with pytest.raises(ValueError) as excinfo:
        parse_scenario(text)
    assert "Missing scenario key 'vm_spec_rams'" in str(excinfo.value)


def test_scenario_as_dict():
    """Checks that the conversion to dict contains the expected values in some of the keys"""
    sc_dict = ScenarioSerializer(three_cips_example()).as_dict()
    assert sc_dict["units"] == {
        "power": "W",
        "energy_price": "usd/kWh",
        "cost/t": "usd/h",
    }
    scenario = sc_dict["scenario"]
    assert scenario["num_cips"] == 3
    assert scenario["pm_spec_min_powers"] == [86.7, 143.0]
    assert scenario["cip_pm_power_states"] == [[True, False], [True, False], [False, False]]
    # The dictionary can be written as JSON
    assert json.loads(json.dumps(sc_dict)) == sc_dict


def test_scenario_as_dict_and_back():
    """Converting a scenario to dict and back gives the same scenario"""
    scenario = three_cips_example()
    assert ScenarioSerializer.from_dict(ScenarioSerializer(scenario).as_dict()) == scenario


def test_scenario_with_other_units():
    """Magnitudes are converted to and from the units of the dictionary"""
    scenario = three_cips_example()
    units = [
        (Power, "power", "kW"),
        (EnergyPrice, "energy_price", "usd/MWh"),
        (CurrencyPerTime, "cost/t", "usd/day"),
    ]
    sc_dict = ScenarioSerializer(scenario, default_units=units).as_dict()
    assert sc_dict["units"]["power"] == "kW"
    assert sc_dict["scenario"]["pm_spec_min_powers"] == pytest.approx([0.0867, 0.143])
    assert sc_dict["scenario"]["cip_electricity_costs"] == pytest.approx([400, 300, 350])
    assert sc_dict["scenario"]["cip_revenues"][0] == pytest.approx([0.08 * 24, 0.16 * 24])

    new_scenario = ScenarioSerializer.from_dict(sc_dict)
    assert new_scenario.pm_spec_max_powers == pytest.approx(scenario.pm_spec_max_powers)
    assert new_scenario.cip_electricity_costs == pytest.approx(scenario.cip_electricity_costs)
    assert new_scenario.cip_revenues[2] == pytest.approx(scenario.cip_revenues[2])
    assert new_scenario.cip_num_pms == scenario.cip_num_pms


def test_invalid_units_are_rejected():
    """Units must have the right dimensionality"""
    sc_dict = ScenarioSerializer(two_cips_example()).as_dict()
    sc_dict["units"]["power"] = "usd/h"
    with pytest.raises(ValueError) as excinfo:
        ScenarioSerializer.from_dict(sc_dict)
    assert "Invalid unit" in str(excinfo.value)


def test_export_csv(two_cips_analysis, tmp_path):
    """There is a row with the payoffs of each coalition"""
    filename = tmp_path / "payoffs.csv"
    export_csv(filename, two_cips_analysis)
    with open(filename, encoding="utf-8", newline="") as file:
        rows = list(csv.reader(file))
    assert rows[0] == ["Coalition ID", "Payoff(CIP 0)", "Payoff(CIP 1)", "Value(Coalition)"]
    assert [row[0] for row in rows[1:]] == ["1", "2", "3"]
    assert rows[1][2] == ""
    assert rows[2][1] == ""
    assert float(rows[1][1]) == pytest.approx(2 - 0.016)
    assert float(rows[3][1]) == pytest.approx(1.989)
    assert float(rows[3][3]) == pytest.approx(3 - 0.019)


def test_export_csv_append(two_cips_analysis, tmp_path):
    """Appended results are separated by an empty row"""
    filename = tmp_path / "payoffs.csv"
    export_csv(filename, two_cips_analysis)
    export_csv(filename, two_cips_analysis, append=True)
    with open(filename, encoding="utf-8", newline="") as file:
        rows = list(csv.reader(file))
    assert len(rows) == 8
    # Identifier and payoff fields, without the value field
    assert rows[4] == ["", "", ""]
    assert rows[1:4] == rows[5:8]
