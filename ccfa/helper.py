"""
A bunch of auxiliary methods for the coalition formation analysis
"""

from collections.abc import Iterator, Sequence
from typing import TypeVar
from ccfa.model import CoalitionId, Scenario

T = TypeVar("T")


def _check_shape(table, shape: tuple[int, ...], message: str) -> None:
    """
    Check the dimensions of a nested table.
    :param table: Nested sequences.
    :param shape: Expected length at each nesting level.
    :param message: Error message.
    :raise ValueError: When the table does not have the expected shape.
    """

    if not isinstance(table, (tuple, list)) or len(table) != shape[0]:
        raise ValueError(message)
    if len(shape) > 1:
        for row in table:
            _check_shape(row, shape[1:], message)


def _flatten(table) -> list:
    if isinstance(table, (tuple, list)):
        return [value for row in table for value in _flatten(row)]
    return [table]


def _check_values(table, message: str, low: float = 0.0, high: float = None) -> None:
    """
    Check that all the numbers in a nested table are in the given range.
    :raise ValueError: When a value is not a number or is out of range.
    """

    for value in _flatten(table):
        if not isinstance(value, (int, float)) or value < low or (high is not None and value > high):
            raise ValueError(message)


def check_inputs(scenario: Scenario) -> None:
    """
    Check scenario correctness, which includes the dimensions and ranges of all the tables.
    :param scenario: The scenario to check.
    :raise ValueError: When a check fails.
    """
    # pylint: disable-msg=too-many-branches

    if not isinstance(scenario, Scenario):
        raise ValueError(f"Scenario must be a {Scenario.__name__}")

    # Mandatory information
    if scenario.num_cips <= 0:
        raise ValueError("Number of CIP must be a positive number")
    if scenario.num_pm_types <= 0:
        raise ValueError("Number of PM types must be a positive number")
    if scenario.num_vm_types <= 0:
        raise ValueError("Number of VM types must be a positive number")

    ncips = scenario.num_cips
    npm_types = scenario.num_pm_types
    nvm_types = scenario.num_vm_types

    # Consistency checks
    _check_shape(scenario.cip_revenues, (ncips, nvm_types), "Unexpected number of CIP revenues")
    _check_shape(scenario.cip_num_pms, (ncips, npm_types), "Unexpected number of CIP PMs")
    _check_shape(scenario.cip_num_vms, (ncips, nvm_types), "Unexpected number of CIP VMs")
    _check_shape(
        scenario.cip_electricity_costs, (ncips,), "Unexpected number of CIP electricity costs"
    )
    _check_shape(
        scenario.cip_pm_asleep_costs, (ncips, npm_types), "Unexpected number of CIP PM switch-off costs"
    )
    _check_shape(
        scenario.cip_pm_awake_costs, (ncips, npm_types), "Unexpected number of CIP PM switch-on costs"
    )
    _check_shape(
        scenario.pm_spec_min_powers,
        (npm_types,),
        "Unexpected number of PM minimum power consumption specifications",
    )
    _check_shape(
        scenario.pm_spec_max_powers,
        (npm_types,),
        "Unexpected number of PM maximum power consumption specifications",
    )
    _check_shape(
        scenario.vm_spec_cpus, (nvm_types, npm_types), "Unexpected number of VM CPU share requirements"
    )
    _check_shape(
        scenario.vm_spec_rams, (nvm_types, npm_types), "Unexpected number of VM RAM share requirements"
    )
    _check_shape(
        scenario.cip_to_cip_vm_migration_costs,
        (ncips, ncips, nvm_types),
        "Unexpected number of CIP-to-CIP VM migration costs",
    )

    # Counts must be non-negative integers
    for table, name in ((scenario.cip_num_pms, "PMs"), (scenario.cip_num_vms, "VMs")):
        if any(not isinstance(n, int) or n < 0 for n in _flatten(table)):
            raise ValueError(f"Number of CIP {name} must be non-negative integers")

    _check_shape(scenario.cip_pm_power_states, (ncips,), "Unexpected number of CIP PM power states")
    for cip in range(ncips):
        # Extra states at the end of a row are ignored
        if len(scenario.cip_pm_power_states[cip]) < sum(scenario.cip_num_pms[cip]):
            raise ValueError(f"Missing PM power states for CIP {cip}")

    # Value ranges
    _check_values(scenario.cip_revenues, "CIP revenues must be non-negative numbers")
    _check_values(
        scenario.cip_electricity_costs, "CIP electricity costs must be non-negative numbers"
    )
    _check_values(
        scenario.cip_pm_asleep_costs, "CIP PM switch-off costs must be non-negative numbers"
    )
    _check_values(scenario.cip_pm_awake_costs, "CIP PM switch-on costs must be non-negative numbers")
    _check_values(
        scenario.cip_to_cip_vm_migration_costs,
        "CIP-to-CIP VM migration costs must be non-negative numbers",
    )
    _check_values(scenario.pm_spec_min_powers, "PM power consumptions must be non-negative numbers")
    _check_values(scenario.pm_spec_max_powers, "PM power consumptions must be non-negative numbers")
    _check_values(scenario.vm_spec_cpus, "VM CPU share requirements must be in range [0, 1]", high=1.0)
    _check_values(scenario.vm_spec_rams, "VM RAM share requirements must be in range [0, 1]", high=1.0)
    for min_power, max_power in zip(scenario.pm_spec_min_powers, scenario.pm_spec_max_powers):
        if max_power < min_power:
            raise ValueError("PM maximum power consumption must not be lower than the minimum")


def coalition_ids(num_players: int) -> Iterator[CoalitionId]:
    """
    Generate the identifiers of all the non-empty coalitions of players in lexicographic order,
    so every coalition comes after all its subsets.
    :param num_players: Number of players.
    :return: A generator of 2^num_players - 1 coalition identifiers.
    """

    for mask in range(1, 1 << num_players):
        yield CoalitionId(mask)


def lexicographic_subsets(items: Sequence[T]) -> Iterator[tuple[T, ...]]:
    """
    Generate all the non-empty subsets of a sequence. Subset k contains the items whose positions
    are the bits set in k.
    :param items: Sequence of items.
    :return: A generator of tuples with the items of each subset, in the order of the sequence.
    """

    for mask in range(1, 1 << len(items)):
        yield tuple(item for i, item in enumerate(items) if mask >> i & 1)


def lexicographic_partitions(items: Sequence[T]) -> Iterator[list[tuple[T, ...]]]:
    """
    Generate all the partitions of a sequence in the lexicographic order of their restricted growth
    strings. The first partition has a single block with all the items and the last one has a block
    for each item. Blocks are sorted by their first item.
    :param items: Sequence of items.
    :return: A generator of lists of blocks.
    """

    n = len(items)
    if n == 0:
        return
    # Block of each item. Item i may go to any previous block or to a new one
    blocks = [0] * n
    while True:
        partition = [[] for _ in range(max(blocks) + 1)]
        for item, block in zip(items, blocks):
            partition[block].append(item)
        yield [tuple(block) for block in partition]

        # Find the last item that can move to the next block
        i = n - 1
        while i > 0 and blocks[i] > max(blocks[:i]):
            i -= 1
        if i == 0:
            return
        blocks[i] += 1
        for j in range(i + 1, n):
            blocks[j] = 0


def bell_number(n: int) -> int:
    """
    Number of partitions of a set with n elements.
    """

    # Bell triangle
    row = [1]
    for _ in range(n):
        new_row = [row[-1]]
        for value in row:
            new_row.append(new_row[-1] + value)
        row = new_row
    return row[0]
