"""
This module provides ways of visualizing the scenarios and results of CCFA.
"""

import math
from rich.table import Table
from rich import print as print_rich
from .model import (
    CoalitionFormationInfo,
    CoalitionInfo,
    PartitionInfo,
    Scenario,
)


def _fmt(value: None | float, digits: int = 4) -> str:
    if value is None or math.isnan(value):
        return "-"
    if math.isinf(value):
        return "infeasible" if value < 0 else "inf"
    return f"{value:.{digits}f}"


def _increment(value: float, base: None | float) -> str:
    """Percentage increment of a value with respect to a base value"""
    if base is None or math.isnan(value) or math.isnan(base) or base == 0 or math.isinf(base):
        return "-"
    return f"{(value / base - 1) * 100:.2f}%"


class ScenarioPrinter:
    """
    Utility methods to create pretty presentations of scenarios.
    """

    def __init__(self, scenario: Scenario):
        self.scenario = scenario

    def print(self):
        """
        Print the scenario.
        """
        print_rich(self._get_cips_table())
        print_rich(self._get_pm_types_table())
        print_rich(self._get_vm_types_table())

    def _get_cips_table(self) -> Table:
        """
        Return a Rich table with information about the providers.
        :return: The provider table.
        """
        s = self.scenario
        table = Table(
            "CIP",
            "PMs",
            "PMs on",
            "VMs",
            "Revenue (usd/h)",
            "Electricity (usd/kWh)",
            title="Cloud infrastructure providers",
        )
        for cip in range(s.num_cips):
            table.add_row(
                str(cip),
                str(list(s.cip_num_pms[cip])),
                str(sum(s.cip_pm_power_states[cip])),
                str(list(s.cip_num_vms[cip])),
                _fmt(s.cip_revenue(cip)),
                _fmt(s.cip_electricity_costs[cip]),
            )
        return table

    def _get_pm_types_table(self) -> Table:
        """
        Return a Rich table with information about the PM types.
        :return: The PM type table.
        """
        s = self.scenario
        table = Table("PM type", "Min power (W)", "Max power (W)", title="PM types")
        for pm_type in range(s.num_pm_types):
            table.add_row(
                str(pm_type),
                _fmt(s.pm_spec_min_powers[pm_type], 1),
                _fmt(s.pm_spec_max_powers[pm_type], 1),
            )
        return table

    def _get_vm_types_table(self) -> Table:
        """
        Return a Rich table with the CPU and RAM shares of each VM type on each PM type.
        :return: The VM type table.
        """
        s = self.scenario
        table = Table(
            "VM type",
            *(f"CPU/RAM on PM {pm_type}" for pm_type in range(s.num_pm_types)),
            title="VM types",
        )
        for vm_type in range(s.num_vm_types):
            table.add_row(
                str(vm_type),
                *(
                    f"{s.vm_spec_cpus[vm_type][pm_type]:.3f}/{s.vm_spec_rams[vm_type][pm_type]:.3f}"
                    for pm_type in range(s.num_pm_types)
                ),
            )
        return table


class FormationPrinter:
    """
    Utility methods to create pretty presentations of coalition formation results.
    """

    def __init__(self, info: CoalitionFormationInfo):
        self._info = info
        self._grand = info.grand_coalition()
        self._singletons = info.singleton_coalitions()

    def print(self):
        """
        Print best partitions, the grand coalition, singleton coalitions and statistics.
        """

        if len(self._info.best_partitions) == 0:
            print_rich("[bold red]No partition satisfies the formation criterion[/bold red]")
        for i, partition in enumerate(self._info.best_partitions, start=1):
            print_rich(self._get_partition_table(i, partition))
        print_rich(self._get_coalitions_table("Grand coalition", [self._grand]))
        print_rich(self._get_coalitions_table("Singleton coalitions", self._singletons))
        self._print_statistics()

    def print_coalitions(self):
        """
        Print all the coalitions.
        """

        print_rich(self._get_coalitions_table("Coalitions", list(self._info.coalitions.values())))

    @staticmethod
    def _kwatt(coalition: CoalitionInfo) -> None | float:
        if coalition.optimal_allocation.kwatt is None:
            return None
        return coalition.optimal_allocation.kwatt.to("kW").magnitude

    def _get_partition_table(self, index: int, partition: PartitionInfo) -> Table:
        """
        Return a Rich table comparing a best partition with the grand coalition and singleton coalitions.
        :param index: Position of the partition in the list of best partitions.
        :param partition: The partition.
        :return: The partition table.
        """

        coalitions = [self._info.coalitions[cid] for cid in partition.coalitions]
        table = Table(
            "CIP",
            "Coalition",
            "Payoff (usd/h)",
            "vs grand coalition",
            "vs singleton",
            "Core exists",
            "Payoff in core",
            title=f"Best partition #{index}: {partition}",
        )
        for cip in range(self._info.num_cips):
            coalition = next((c for c in coalitions if cip in c.cid), None)
            payoff = partition.payoffs[cip]
            table.add_row(
                str(cip),
                str(coalition.cid) if coalition else "-",
                _fmt(payoff),
                _increment(payoff, self._grand.payoffs.get(cip)),
                _increment(payoff, self._singletons[cip].payoffs.get(cip)),
                str(not coalition.core_empty) if coalition else "-",
                str(coalition.payoffs_in_core) if coalition else "-",
            )

        value = sum(payoff for payoff in partition.payoffs.values() if not math.isnan(payoff))
        grand_value = sum(self._grand.payoffs.values()) if self._grand.payoffs else None
        singleton_value = sum(sum(c.payoffs.values()) for c in self._singletons if c.payoffs)
        kwatts = [self._kwatt(c) for c in coalitions]
        energy = sum(kwatt for kwatt in kwatts if kwatt is not None)
        singleton_kwatts = [self._kwatt(c) for c in self._singletons]
        singleton_energy = sum(kwatt for kwatt in singleton_kwatts if kwatt is not None)
        table.caption = (
            f"Value: {_fmt(value)} usd/h ({_increment(value, grand_value)} vs grand coalition, "
            f"{_increment(value, singleton_value)} vs singletons). "
            f"Energy: {_fmt(energy)} kW ({_increment(energy, singleton_energy)} vs singletons)"
        )
        return table

    def _get_coalitions_table(self, title: str, coalitions: list[CoalitionInfo]) -> Table:
        """
        Return a Rich table with information about coalitions.
        :param title: Title of the table.
        :param coalitions: The coalitions.
        :return: The coalition table.
        """

        table = Table(
            "Coalition",
            "Payoffs (usd/h)",
            "Value (usd/h)",
            "Energy (kW)",
            "Powered-on PMs",
            "Core exists",
            "Payoff in core",
            title=title,
        )
        for coalition in coalitions:
            payoffs = ", ".join(f"{cip}: {payoff:.4f}" for cip, payoff in coalition.payoffs.items())
            num_on_pms = sum(c.num_on_pms for c in coalition.cip_allocations.values())
            table.add_row(
                str(coalition.cid),
                payoffs or "-",
                _fmt(coalition.value),
                _fmt(self._kwatt(coalition)),
                str(num_on_pms) if coalition.solved else "-",
                str(not coalition.core_empty),
                str(coalition.payoffs_in_core),
            )
        return table

    def _print_statistics(self) -> None:
        """
        Print analysis statistics.
        """

        stats = self._info.statistics
        print("")
        print("Statistics")
        print("----------")
        if stats.solving_pars is not None:
            print(f"Formation: {stats.solving_pars.formation.value}")
            print(f"Payoff division: {stats.solving_pars.payoff_division.value}")
        print(f"Coalitions: {stats.num_coalitions}")
        print(f"Coalitions without allocation: {stats.num_unsolved_coalitions}")
        print(f"Coalitions with non-optimal allocation: {stats.num_non_optimal_coalitions}")
        print(f"Partitions: {stats.num_partitions}")
        if stats.allocation_seconds is not None:
            print(f"Time spent in allocation problems: {stats.allocation_seconds:.3f} seconds")
        if stats.game_seconds is not None:
            print(f"Time spent in cores and payoffs: {stats.game_seconds:.3f} seconds")
        if stats.selection_seconds is not None:
            print(f"Time spent selecting partitions: {stats.selection_seconds:.3f} seconds")
        if stats.total_seconds is not None:
            print(f"Total time: {stats.total_seconds:.3f} seconds")

