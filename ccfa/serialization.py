"""Classes and functions to read scenarios from configuration files, serialize scenarios
to dictionaries and back, which allows for easy generation of json/yaml as scenario
interchange format, and export coalition formation results to CSV files"""

import csv
from dataclasses import asdict, dataclass, fields
import logging
from pint import DimensionalityError, UndefinedUnitError
from ccfa.units import CheckedDimensionality, CurrencyPerTime, EnergyPrice, Power
from ccfa.model import CoalitionFormationInfo, Scenario
from ccfa import model

DefaultUnitsMap = list[tuple[CheckedDimensionality, str, str]]

# Keys of the scenario file with a single integer
_SCALAR_KEYS = ("num_cips", "num_pm_types", "num_vm_types")

# Keys of the scenario file with tables of integers
_COUNT_KEYS = ("cip_num_pms", "cip_num_vms")

_OPTIONAL_KEYS = (
    "cip_pm_power_states",
    "cip_pm_asleep_costs",
    "cip_pm_awake_costs",
    "cip_to_cip_vm_migration_costs",
)


def _parse_number(token: str) -> int | float:
    try:
        return int(token)
    except ValueError:
        pass
    try:
        return float(token)
    except ValueError:
        raise ValueError(f"Malformed scenario file (invalid number '{token}')") from None


def _parse_value(text: str):
    """
    Parse a number or a bracketed table like [[1 2] [3 4]].
    :param text: Text at the right of the '=' sign.
    :return: A number or nested lists of numbers.
    :raises ValueError: When brackets are not balanced or numbers are invalid.
    """

    tokens = text.replace("[", " [ ").replace("]", " ] ").replace(",", " ").split()
    stack = [[]]
    for token in tokens:
        if token == "[":
            stack.append([])
        elif token == "]":
            if len(stack) == 1:
                raise ValueError("Malformed scenario file ('[' is missing)")
            table = stack.pop()
            stack[-1].append(table)
        else:
            stack[-1].append(_parse_number(token))
    if len(stack) != 1:
        raise ValueError("Malformed scenario file (']' is missing)")
    if len(stack[0]) != 1:
        raise ValueError(f"Malformed scenario file (invalid value '{text.strip()}')")
    return stack[0][0]


def _to_int(value):
    """Convert integral numbers in nested lists to integers"""
    if isinstance(value, list):
        return [_to_int(item) for item in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_scenario(text: str) -> Scenario:
    """
    Parse a scenario from the text of a configuration file. Each line has a "key=value" pair, where the
    value is a number or a bracketed table. Lines starting with '#' are comments and keys are case
    insensitive. Unknown keys are ignored.
    :param text: The configuration text.
    :return: The scenario, with default values for the missing optional tables.
    :raises ValueError: When the text is malformed or mandatory keys are missing.
    """

    scenario_fields = {f.name for f in fields(Scenario)}
    data = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ValueError("Malformed scenario file ('=' is missing)")
        key, value = line.split("=", 1)
        key = key.strip().lower()
        if key not in scenario_fields:
            logging.warning("Unknown scenario key '%s' is ignored", key)
            continue
        value = _parse_value(value)
        if key in _SCALAR_KEYS or key in _COUNT_KEYS:
            value = _to_int(value)
        data[key] = value

    for key in scenario_fields:
        if key not in data and key not in _OPTIONAL_KEYS:
            raise ValueError(f"Missing scenario key '{key}'")
    return Scenario(**data)


def read_scenario_file(filename: str) -> Scenario:
    """
    Read a scenario from a configuration file.
    :param filename: Path to the file.
    :return: The scenario.
    :raises ValueError: When the file is malformed.
    """

    with open(filename, "r", encoding="utf-8") as file:
        return parse_scenario(file.read())


@dataclass
class ScenarioData:
    """Dataclass to store scenario information for serialization"""
    units: dict[str, str]
    scenario: dict
    version: str = model.__version__


class ScenarioSerializer:
    """Class to serialize and deserialize scenarios to dictionaries"""
    default_units_map: DefaultUnitsMap = [
        (Power, "power", "W"),
        (EnergyPrice, "energy_price", "usd/kWh"),
        (CurrencyPerTime, "cost/t", "usd/h"),
    ]

    # Dimensionality of the scenario fields with units
    field_units = {
        "pm_spec_min_powers": Power,
        "pm_spec_max_powers": Power,
        "cip_electricity_costs": EnergyPrice,
        "cip_revenues": CurrencyPerTime,
        "cip_pm_asleep_costs": CurrencyPerTime,
        "cip_pm_awake_costs": CurrencyPerTime,
        "cip_to_cip_vm_migration_costs": CurrencyPerTime,
    }

    def __init__(self, scenario: Scenario, default_units: DefaultUnitsMap = None):
        """Initialize the serializer with a scenario and a default units map

        default_units is a list of tuples with the following format:
            (unit_cls, name, unit_str), ...

        The generated dictionary contains a "units" field with pairs {"name": "unit_str"}
        and all the values with units are stored as magnitudes in those units. Scenarios
        always store powers in W, electricity costs in usd/kWh and the rest of costs
        and revenues in usd/h, which is the default units map.
        """
        self.scenario = scenario
        if default_units is None:
            default_units = ScenarioSerializer.default_units_map
        self.default_units_map = default_units
        self.name_units_dict = {name: unit for _, name, unit in default_units}
        self.cls_units_dict = {cls.__name__: unit for cls, _, unit in default_units}

    def as_dict(self) -> dict:
        """Generates a dictionary containing the definition of the scenario,
        suitable to serialize as JSON or YAML"""
        scenario = {}
        for _field in fields(Scenario):
            value = getattr(self.scenario, _field.name)
            unit_cls = ScenarioSerializer.field_units.get(_field.name)
            if unit_cls is not None:
                factor = self._factor(unit_cls, self.cls_units_dict[unit_cls.__name__], to_canonical=False)
                value = _scale(value, factor)
            scenario[_field.name] = _as_list(value)
        return asdict(ScenarioData(units=self.name_units_dict, scenario=scenario))

    @staticmethod
    def _factor(unit_cls, unit: str, to_canonical: bool) -> float:
        """Conversion factor between a unit and the canonical unit of its dimensionality"""
        canonical = {
            cls.__name__: canonical_unit for cls, _, canonical_unit in ScenarioSerializer.default_units_map
        }[unit_cls.__name__]
        try:
            if to_canonical:
                return unit_cls(f"1 {unit}").m_as(canonical)
            return unit_cls(f"1 {canonical}").m_as(unit)
        except (DimensionalityError, UndefinedUnitError):
            raise ValueError(f"Invalid unit '{unit}' for {unit_cls.__name__}") from None

    @classmethod
    def from_dict(cls, data: dict) -> Scenario:
        """Receives a dictionary as the one generated by ScenarioSerializer.as_dict()
        and uses it to create a Scenario

        The data dict must contain a "units" field specifying the units of the magnitudes
        with units, for example:

            "units": {
                "power": "kW",
                "energy_price": "usd/kWh",
                "cost/t": "usd/h"
            },

        Magnitudes are converted to the units used by scenarios.
        """
        name_units_map = data["units"]
        cls_units_map = {
            unit_cls.__name__: name_units_map[name]
            for unit_cls, name, _ in ScenarioSerializer.default_units_map
        }
        scenario = dict(data["scenario"])
        for name, unit_cls in cls.field_units.items():
            if scenario.get(name) is not None:
                factor = cls._factor(unit_cls, cls_units_map[unit_cls.__name__], to_canonical=True)
                scenario[name] = _scale(scenario[name], factor)
        return Scenario(**scenario)


def _scale(value, factor: float):
    if isinstance(value, (list, tuple)):
        return [_scale(item, factor) for item in value]
    if factor == 1:
        return value
    return value * factor


def _as_list(value):
    if isinstance(value, (list, tuple)):
        return [_as_list(item) for item in value]
    return value


def export_csv(filename: str, info: CoalitionFormationInfo, append: bool = False) -> None:
    """
    Export the payoffs of every coalition to a CSV file. Each row has the coalition identifier, the
    payoff of each provider (empty for non-members and unsolved coalitions) and the sum of the payoffs.
    :param filename: Path to the file.
    :param info: Result of the coalition formation analysis.
    :param append: Append the rows to the file, separated from previous rows by an empty row.
    """

    ncips = info.num_cips
    with open(filename, "a" if append else "w", encoding="utf-8", newline="") as file:
        writer = csv.writer(file, quoting=csv.QUOTE_MINIMAL)
        if append:
            writer.writerow([""] * (ncips + 1))
        else:
            writer.writerow(
                ["Coalition ID"] + [f"Payoff(CIP {cip})" for cip in range(ncips)] + ["Value(Coalition)"]
            )
        for cid, coalition in info.coalitions.items():
            payoffs = [coalition.payoffs.get(cip) for cip in range(ncips)]
            value = sum(payoff for payoff in payoffs if payoff is not None)
            writer.writerow(
                [cid.mask] + ["" if payoff is None else payoff for payoff in payoffs] + [value]
            )
