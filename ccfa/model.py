"""
Data classes for providers, machines, coalitions and partitions of the Cloud Coalition Formation Analyzer (CCFA)
"""

from __future__ import annotations
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
import math
import pulp
from pulp import PULP_CBC_CMD
from ccfa.units import CurrencyPerTime, Power

__version__ = "0.1.0"

# Minimum difference so that two values are different
DELTA_VAL = 0.000001

# Value of coalitions whose allocation problem has no solution
INFEASIBLE_COALITION_VALUE = -math.inf


def _tolerance(val1: float, val2: float) -> float:
    return DELTA_VAL * max(1.0, abs(val1), abs(val2))


def are_val_equal(val1: float, val2: float) -> bool:
    """
    Compare two values for equality.
    :param val1: First value.
    :param val2: Second value.
    :return: True if both values are approximately equal and False otherwise.
    """

    if math.isinf(val1) or math.isinf(val2):
        return val1 == val2
    return abs(val1 - val2) <= _tolerance(val1, val2)


def definitely_greater(val1: float, val2: float) -> bool:
    """
    Check if a value is greater than another by more than the comparison tolerance.
    NaN values are never greater nor lower than any other value.
    :param val1: First value.
    :param val2: Second value.
    :return: True if val1 is definitely greater than val2.
    """

    if math.isinf(val1) or math.isinf(val2):
        return val1 > val2
    return val1 - val2 > _tolerance(val1, val2)


def definitely_less(val1: float, val2: float) -> bool:
    """
    Check if a value is lower than another by more than the comparison tolerance.
    :param val1: First value.
    :param val2: Second value.
    :return: True if val1 is definitely lower than val2.
    """

    return definitely_greater(val2, val1)


def delta_to_zero(val: float) -> float:
    """
    Round to zero values close to zero.
    :param val: value to round.
    :return: The value or zero, depending on its closeness to zero.
    """

    if abs(val) < DELTA_VAL:
        return 0.0
    return val


def pm_consumed_power(min_power: float, max_power: float, utilization: float) -> float:
    """
    Power consumed by a powered-on physical machine, linear in its CPU utilization.
    :param min_power: Power consumed by the idle machine.
    :param max_power: Power consumed by the fully utilized machine.
    :param utilization: CPU utilization in [0, 1].
    :return: The consumed power in the units of min_power and max_power.
    """

    return min_power + (max_power - min_power) * utilization


class AllocationStatus(Enum):
    """
    Status of allocation solutions.
    """

    OPTIMAL = 1  # Optimal solution
    FEASIBLE = 2  # Feasible but not optimal. After a timeout
    INVALID = 3  # Infeasible, unbounded or not solved

    @staticmethod
    def pulp_to_status(pulp_problem_status: int, pulp_solution_status: int) -> AllocationStatus:
        """
        Calculate an allocation status from status codes for an ILP problem and its solution.
        :param pulp_problem_status: PulP problem status.
        :param pulp_solution_status: PulP solution status.
        :return: An allocation status.
        """

        if pulp_problem_status == pulp.LpStatusOptimal:
            if pulp_solution_status == pulp.LpSolutionOptimal:
                res = AllocationStatus.OPTIMAL
            else:
                res = AllocationStatus.FEASIBLE
        else:
            res = AllocationStatus.INVALID
        return res

    @staticmethod
    def is_valid(status: AllocationStatus) -> bool:
        """
        Check if the status is OPTIMAL or FEASIBLE.
        :param status: An allocation status.
        :return: True if the status is OPTIMAL or FEASIBLE.
        """

        return status in (AllocationStatus.OPTIMAL, AllocationStatus.FEASIBLE)


class AllocationObjective(Enum):
    """
    Objective of the allocation problem.
    """

    MIN_COST = "cost"
    MIN_POWER = "power"


class PartitionFormation(Enum):
    """
    Criteria to select the best partitions of providers into coalitions.
    """

    MERGE_SPLIT = "merge-split"
    NASH = "nash"
    PARETO = "pareto"
    SOCIAL = "social"


class PayoffDivision(Enum):
    """
    Methods to divide the value of a coalition among its members.
    """

    BANZHAF = "banzhaf"
    NORM_BANZHAF = "norm-banzhaf"
    SHAPLEY = "shapley"


class AllocationSolverError(RuntimeError):
    """
    The solver failed while solving an allocation problem. It aborts the analysis.
    """


def _as_tuple(value):
    """
    Convert nested sequences to nested tuples.
    """

    if isinstance(value, (list, tuple)):
        return tuple(_as_tuple(item) for item in value)
    return value


@dataclass(frozen=True)
class Scenario:
    """
    Providers, machines and costs of a coalition formation problem. Powers are in watts, electricity
    costs in usd/kWh and the rest of costs and revenues in usd/hour.
    """

    # pylint: disable=too-many-instance-attributes

    num_cips: int
    num_pm_types: int
    num_vm_types: int
    # Revenue of each provider for each running VM of each type. Rows: providers, columns: VM types
    cip_revenues: tuple[tuple[float, ...], ...]
    # Idle and full-load power of each PM type
    pm_spec_min_powers: tuple[float, ...]
    pm_spec_max_powers: tuple[float, ...]
    # Number of PMs of each type owned by each provider
    cip_num_pms: tuple[tuple[int, ...], ...]
    # Number of VMs of each type requested to each provider
    cip_num_vms: tuple[tuple[int, ...], ...]
    cip_electricity_costs: tuple[float, ...]
    # CPU and RAM shares required by VMs. Rows: VM types, columns: PM types
    vm_spec_cpus: tuple[tuple[float, ...], ...]
    vm_spec_rams: tuple[tuple[float, ...], ...]
    # Current state of the PMs of each provider, sorted by PM type. Default: all off
    cip_pm_power_states: tuple[tuple[bool, ...], ...] = None
    # Switch-off and switch-on costs for each provider and PM type. Default: zero
    cip_pm_asleep_costs: tuple[tuple[float, ...], ...] = None
    cip_pm_awake_costs: tuple[tuple[float, ...], ...] = None
    # Migration cost of a VM of each type between providers [origin][destination][VM type]. Default: zero
    cip_to_cip_vm_migration_costs: tuple[tuple[tuple[float, ...], ...], ...] = None

    def __post_init__(self):
        """
        Store tables as tuples and fill optional tables with their default values.
        """

        for name in self.__dataclass_fields__:
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))

        try:
            if self.cip_pm_power_states is None:
                states = tuple(tuple(False for _ in range(sum(row))) for row in self.cip_num_pms)
            else:
                states = tuple(tuple(bool(s) for s in row) for row in self.cip_pm_power_states)
        except TypeError:
            raise ValueError("PM numbers and power states must be tables of integers") from None
        object.__setattr__(self, "cip_pm_power_states", states)

        if not isinstance(self.num_cips, int) or not isinstance(self.num_pm_types, int) or not isinstance(
            self.num_vm_types, int
        ):
            raise ValueError("Number of CIPs, PM types and VM types must be integers")
        zero_switch_costs = tuple(
            tuple(0.0 for _ in range(self.num_pm_types)) for _ in range(self.num_cips)
        )
        if self.cip_pm_asleep_costs is None:
            object.__setattr__(self, "cip_pm_asleep_costs", zero_switch_costs)
        if self.cip_pm_awake_costs is None:
            object.__setattr__(self, "cip_pm_awake_costs", zero_switch_costs)
        if self.cip_to_cip_vm_migration_costs is None:
            migration_costs = tuple(
                tuple(tuple(0.0 for _ in range(self.num_vm_types)) for _ in range(self.num_cips))
                for _ in range(self.num_cips)
            )
            object.__setattr__(self, "cip_to_cip_vm_migration_costs", migration_costs)

    def cip_revenue(self, cip: int) -> float:
        """
        Revenue of a provider from all its VMs.
        :param cip: Provider index.
        :return: Revenue in usd/hour.
        """

        return sum(
            self.cip_revenues[cip][vm_type] * self.cip_num_vms[cip][vm_type]
            for vm_type in range(self.num_vm_types)
        )

    def cip_pms(self, cip: int) -> list[Pm]:
        """
        Physical machines of a provider, sorted by PM type.
        :param cip: Provider index.
        :return: The list of PMs with their current power states.
        """

        pms = []
        for pm_type in range(self.num_pm_types):
            for _ in range(self.cip_num_pms[cip][pm_type]):
                # The power state list is indexed by the position of the PM in the provider
                powered_on = self.cip_pm_power_states[cip][len(pms)]
                pms.append(Pm(cip=cip, category=pm_type, powered_on=powered_on))
        return pms

    def cip_vms(self, cip: int) -> list[Vm]:
        """
        Virtual machines requested to a provider, sorted by VM type.
        :param cip: Provider index.
        :return: The list of VMs.
        """

        return [
            Vm(cip=cip, category=vm_type)
            for vm_type in range(self.num_vm_types)
            for _ in range(self.cip_num_vms[cip][vm_type])
        ]


@dataclass(frozen=True)
class Pm:
    """
    Physical machine owned by a provider.
    """

    cip: int
    category: int
    powered_on: bool = False  # Power state before the allocation


@dataclass(frozen=True)
class Vm:
    """
    Virtual machine requested to a provider, which is its origin.
    """

    cip: int
    category: int


@dataclass(frozen=True, order=True)
class CoalitionId:
    """
    Identifier of a set of providers. Bit i of the mask is set when provider i is a member, so the
    identifier does not depend on the order of the members and subsets always sort before their supersets.
    """

    mask: int

    def __post_init__(self):
        if not isinstance(self.mask, int) or self.mask < 0:
            raise ValueError("Coalition mask must be a non-negative integer")

    @classmethod
    def from_players(cls, players: Iterable[int]) -> CoalitionId:
        """
        Get the coalition identifier of a set of players.
        :param players: Provider indexes in any order.
        :return: The coalition identifier.
        """

        mask = 0
        for player in players:
            if player < 0:
                raise ValueError("Provider indexes must be non-negative")
            mask |= 1 << player
        return cls(mask)

    @classmethod
    def grand(cls, num_players: int) -> CoalitionId:
        """
        Get the coalition of all the players.
        """

        return cls((1 << num_players) - 1)

    @property
    def players(self) -> tuple[int, ...]:
        """
        Members of the coalition in increasing order.
        """

        return tuple(i for i in range(self.mask.bit_length()) if self.mask >> i & 1)

    def union(self, other: CoalitionId) -> CoalitionId:
        return CoalitionId(self.mask | other.mask)

    def issubset(self, other: CoalitionId) -> bool:
        return self.mask & other.mask == self.mask

    def __or__(self, other: CoalitionId) -> CoalitionId:
        return self.union(other)

    def __contains__(self, player: int) -> bool:
        return player >= 0 and bool(self.mask >> player & 1)

    def __iter__(self) -> Iterator[int]:
        return iter(self.players)

    def __len__(self) -> int:
        return bin(self.mask).count("1")

    def __str__(self) -> str:
        return "{" + ", ".join(str(player) for player in self.players) + "}"


@dataclass(frozen=True)
class OptimalAllocationInfo:
    """
    Solution of an allocation problem of VMs to PMs.
    """

    status: AllocationStatus = AllocationStatus.INVALID
    objective_value: None | float = None
    cost: None | CurrencyPerTime = None
    kwatt: None | Power = None
    # Power-on decision for each PM
    pm_power_states: tuple[bool, ...] = ()
    # Placement decision for each PM (rows) and VM (columns)
    pm_vm_allocations: tuple[tuple[bool, ...], ...] = ()

    @property
    def solved(self) -> bool:
        return AllocationStatus.is_valid(self.status)

    @property
    def optimal(self) -> bool:
        return self.status == AllocationStatus.OPTIMAL


@dataclass(frozen=True)
class CipAllocationInfo:
    """
    Diagnostic information of a provider in a solved coalition.
    """

    num_on_pms: int = 0  # Powered-on PMs
    num_vms: int = 0  # Hosted VMs
    watts: float = 0.0  # Consumed power


@dataclass(frozen=True)
class CoalitionInfo:
    """
    Information of a coalition after solving its allocation problem and dividing its value.
    """

    cid: CoalitionId
    optimal_allocation: OptimalAllocationInfo
    value: float = INFEASIBLE_COALITION_VALUE  # usd/hour
    core_empty: bool = True
    # Share of the value for each member. Empty when the allocation is not solved
    payoffs: dict[int, float] = field(default_factory=dict)
    payoffs_in_core: bool = False
    cip_allocations: dict[int, CipAllocationInfo] = field(default_factory=dict)

    @property
    def solved(self) -> bool:
        return self.optimal_allocation.solved


class CoalitionTable(Mapping):
    """
    Read-only table with the information of the visited coalitions, iterated by coalition identifier.
    """

    def __init__(self, num_players: int, infos: Iterable[CoalitionInfo]):
        self.num_players = num_players
        self._infos: dict[CoalitionId, CoalitionInfo] = {
            info.cid: info for info in sorted(infos, key=lambda info: info.cid)
        }

    def __getitem__(self, cid: CoalitionId) -> CoalitionInfo:
        return self._infos[cid]

    def __iter__(self) -> Iterator[CoalitionId]:
        return iter(self._infos)

    def __len__(self) -> int:
        return len(self._infos)

    def __repr__(self) -> str:
        return f"CoalitionTable(num_players={self.num_players}, coalitions={len(self)})"

    def value(self, cid: CoalitionId) -> None | float:
        """
        Value of a coalition.
        :param cid: Coalition identifier.
        :return: The coalition value or None if the coalition is not in the table.
        """

        info = self._infos.get(cid)
        if info is None:
            return None
        return info.value

    def payoff(self, cid: CoalitionId, player: int) -> None | float:
        """
        Payoff of a player in a coalition.
        :param cid: Coalition identifier.
        :param player: Provider index.
        :return: The payoff or None if the coalition is not in the table or it has no payoff for the player.
        """

        info = self._infos.get(cid)
        if info is None:
            return None
        return info.payoffs.get(player)


@dataclass(frozen=True)
class PartitionInfo:
    """
    Partition of the providers into disjoint coalitions.
    """

    coalitions: tuple[CoalitionId, ...]
    # Payoff of each provider in its coalition. NaN when the coalition has no payoffs
    payoffs: dict[int, float]
    # Sum of the values of the coalitions
    value: float

    def __str__(self) -> str:
        return "{" + ", ".join(str(cid) for cid in self.coalitions) + "}"


@dataclass(frozen=True)
class SolvingPars:
    """
    CCFA solving parameters.
    """

    # Relative gap of the allocation solver, in [0, 1]. Zero to use the solver default
    relative_gap: float = 0.0
    # Time limit in seconds for each allocation problem. Negative for no limit
    time_limit: float = -1
    formation: PartitionFormation = PartitionFormation.NASH
    payoff_division: PayoffDivision = PayoffDivision.SHAPLEY
    objective: AllocationObjective = AllocationObjective.MIN_COST
    # Number of concurrent allocation problems
    workers: int = 1
    # Configure the solver. When it is set to None it uses CBC with the gap and time limit
    solver: any = None

    def __post_init__(self):
        """
        Check the parameters and build the default solver.
        :raise ValueError: When parameters are invalid.
        """

        if not 0 <= self.relative_gap <= 1:
            raise ValueError("Relative gap must be in range [0, 1]")
        if not isinstance(self.formation, PartitionFormation):
            raise ValueError(f"Formation must be a {PartitionFormation.__name__}")
        if not isinstance(self.payoff_division, PayoffDivision):
            raise ValueError(f"Payoff division must be a {PayoffDivision.__name__}")
        if not isinstance(self.objective, AllocationObjective):
            raise ValueError(f"Objective must be an {AllocationObjective.__name__}")
        if not isinstance(self.workers, int) or self.workers < 1:
            raise ValueError("The number of workers must be a positive integer")
        if self.solver is None:
            solver = PULP_CBC_CMD(
                msg=0,
                gapRel=self.relative_gap if self.relative_gap > 0 else None,
                timeLimit=self.time_limit if self.time_limit > 0 else None,
            )
            object.__setattr__(self, "solver", solver)


@dataclass
class AnalysisStats:
    """
    Statistics of a coalition formation analysis.
    """

    # pylint: disable=too-many-instance-attributes

    solving_pars: None | SolvingPars = None

    # Number of visited coalitions
    num_coalitions: None | int = None

    # Coalitions without a solution to their allocation problem
    num_unsolved_coalitions: None | int = None

    # Coalitions with a feasible but not optimal allocation
    num_non_optimal_coalitions: None | int = None

    # Number of evaluated partitions
    num_partitions: None | int = None

    # Time spent solving the allocation problems
    allocation_seconds: None | float = None

    # Time spent calculating cores and payoffs
    game_seconds: None | float = None

    # Time spent selecting partitions
    selection_seconds: None | float = None

    total_seconds: None | float = None


@dataclass(frozen=True)
class CoalitionFormationInfo:
    """
    Result of a coalition formation analysis.
    """

    coalitions: CoalitionTable
    best_partitions: tuple[PartitionInfo, ...]
    statistics: AnalysisStats

    @property
    def num_cips(self) -> int:
        return self.coalitions.num_players

    def grand_coalition(self) -> CoalitionInfo:
        """
        Information of the coalition with all the providers.
        """

        return self.coalitions[CoalitionId.grand(self.num_cips)]

    def singleton_coalitions(self) -> list[CoalitionInfo]:
        """
        Information of the coalitions with only one provider, sorted by provider.
        """

        return [self.coalitions[CoalitionId.from_players([cip])] for cip in range(self.num_cips)]
