"""
Main module of the ccfa package. It defines class Ccfa for Cloud Coalition Formation Analysis
"""

from concurrent.futures import ThreadPoolExecutor
import logging
from time import time as current_time
from ccfa.allocation import OptimalAllocator
from ccfa.game import CooperativeGame
from ccfa.helper import check_inputs, coalition_ids
from ccfa.model import (
    AnalysisStats,
    CipAllocationInfo,
    CoalitionFormationInfo,
    CoalitionId,
    CoalitionInfo,
    CoalitionTable,
    OptimalAllocationInfo,
    Pm,
    Scenario,
    SolvingPars,
    Vm,
    delta_to_zero,
    pm_consumed_power,
)
from ccfa.partition import get_partition_selector


class Ccfa:
    """
    This class provides methods to analyze the coalitions that cloud infrastructure providers (CIPs)
    may form to share their physical machines.
    """

    def __init__(self, scenario: Scenario):
        """
        Constructor of Cloud Coalition Formation Analysis (CCFA).
        :param scenario: Providers, machines and costs.
        :raises ValueError: When some input check fails.
        """

        self._scenario = scenario

        # Check the scenario
        check_inputs(self._scenario)

        # Solving parameters
        self._solving_pars = None

        # Statistics of the analysis
        self._analysis_stats = AnalysisStats()

    @property
    def scenario(self) -> Scenario:
        return self._scenario

    def _coalition_machines(self, cid: CoalitionId) -> tuple[list[Pm], list[Vm]]:
        """
        Get the machines of the coalition members, sorted by provider and type.
        :param cid: Coalition identifier.
        :return: A tuple with the PMs and VMs of the coalition.
        """

        pms = []
        vms = []
        for cip in cid.players:
            pms.extend(self._scenario.cip_pms(cip))
            vms.extend(self._scenario.cip_vms(cip))
        return pms, vms

    def _solve_coalition(self, cid: CoalitionId) -> OptimalAllocationInfo:
        """
        Solve the allocation problem of a coalition.
        :param cid: Coalition identifier.
        :return: The optimal allocation.
        :raises AllocationSolverError: When the solver fails.
        """

        pms, vms = self._coalition_machines(cid)
        allocator = OptimalAllocator(self._scenario, pms, vms, name=f"coalition_{cid.mask}")
        return allocator.solve(self._solving_pars)

    def _solve_allocations(self, cids: list[CoalitionId]) -> dict[CoalitionId, OptimalAllocationInfo]:
        """
        Solve the allocation problems of all the coalitions. Problems are independent, so they are
        solved concurrently when there are several workers.
        :param cids: Coalition identifiers.
        :return: The optimal allocation of each coalition.
        :raises AllocationSolverError: When the solver fails for any coalition.
        """

        if self._solving_pars.workers == 1:
            return {cid: self._solve_coalition(cid) for cid in cids}

        with ThreadPoolExecutor(max_workers=self._solving_pars.workers) as executor:
            futures = {cid: executor.submit(self._solve_coalition, cid) for cid in cids}
            return {cid: future.result() for cid, future in futures.items()}

    def _cip_allocations(
        self, cid: CoalitionId, allocation: OptimalAllocationInfo
    ) -> dict[int, CipAllocationInfo]:
        """
        Get the powered-on PMs, hosted VMs and consumed power of each provider in a solved coalition.
        :param cid: Coalition identifier.
        :param allocation: Optimal allocation of the coalition.
        :return: The allocation information of each coalition member.
        """

        s = self._scenario
        pms, vms = self._coalition_machines(cid)
        num_on_pms = {cip: 0 for cip in cid.players}
        num_vms = {cip: 0 for cip in cid.players}
        watts = {cip: 0.0 for cip in cid.players}
        for h, pm in enumerate(pms):
            if not allocation.pm_power_states[h]:
                continue
            num_on_pms[pm.cip] += 1
            cpu_share = 0.0
            for v, vm in enumerate(vms):
                if allocation.pm_vm_allocations[h][v]:
                    num_vms[pm.cip] += 1
                    cpu_share += s.vm_spec_cpus[vm.category][pm.category]
            watts[pm.cip] += pm_consumed_power(
                s.pm_spec_min_powers[pm.category], s.pm_spec_max_powers[pm.category], cpu_share
            )
        return {
            cip: CipAllocationInfo(num_on_pms=num_on_pms[cip], num_vms=num_vms[cip], watts=watts[cip])
            for cip in cid.players
        }

    def _coalition_values(
        self, allocations: dict[CoalitionId, OptimalAllocationInfo]
    ) -> dict[CoalitionId, float]:
        """
        Value of each solved coalition: revenue of its VMs minus the cost of their allocation.
        """

        values = {}
        for cid, allocation in allocations.items():
            if allocation.solved:
                revenue = sum(self._scenario.cip_revenue(cip) for cip in cid.players)
                values[cid] = delta_to_zero(revenue - allocation.cost.to("usd/hour").magnitude)
        return values

    def _analyze_coalitions(
        self,
        allocations: dict[CoalitionId, OptimalAllocationInfo],
        values: dict[CoalitionId, float],
    ) -> CoalitionTable:
        """
        Check the core and divide the value of each coalition.
        :param allocations: The optimal allocation of each coalition.
        :param values: The value of each solved coalition.
        :return: The coalition table.
        :raises AllocationSolverError: When the solver fails.
        """

        # Coalitions that cannot allocate their VMs get nothing in the game
        game = CooperativeGame(
            range(self._scenario.num_cips), {cid: values.get(cid, 0.0) for cid in allocations}
        )

        infos = []
        for cid, allocation in allocations.items():
            if not allocation.solved:
                logging.debug("Coalition %s has no feasible allocation", cid)
                infos.append(CoalitionInfo(cid=cid, optimal_allocation=allocation))
                continue

            subgame = game.subgame(cid.players)
            core_empty = subgame.core_is_empty(self._solving_pars.solver)
            payoffs = {
                cip: delta_to_zero(payoff)
                for cip, payoff in subgame.divide(self._solving_pars.payoff_division).items()
            }
            payoffs_in_core = not core_empty and subgame.belongs_to_core(payoffs)
            logging.debug(
                "Coalition %s: value %f, empty core: %s, payoffs %s in core: %s",
                cid,
                values[cid],
                core_empty,
                payoffs,
                payoffs_in_core,
            )
            infos.append(
                CoalitionInfo(
                    cid=cid,
                    optimal_allocation=allocation,
                    value=values[cid],
                    core_empty=core_empty,
                    payoffs=payoffs,
                    payoffs_in_core=payoffs_in_core,
                    cip_allocations=self._cip_allocations(cid, allocation),
                )
            )
        return CoalitionTable(self._scenario.num_cips, infos)

    def analyze(self, solving_pars: SolvingPars = None) -> CoalitionFormationInfo:
        """
        Analyze all the coalitions of providers and select the best partitions of the providers into
        coalitions.
        :param solving_pars: Parameters of the analysis.
        :returns: The information of all the coalitions and the best partitions.
        :raises AllocationSolverError: When the solver fails. The analysis is aborted.
        """

        start_solving_time = current_time()
        self._analysis_stats = AnalysisStats()
        self._solving_pars = solving_pars
        if solving_pars is None:
            # Default solving parameters
            self._solving_pars = SolvingPars()
        self._analysis_stats.solving_pars = self._solving_pars

        # -----------------------------------------------------------
        # Allocation problem of every coalition
        # -----------------------------------------------------------
        cids = list(coalition_ids(self._scenario.num_cips))
        logging.info("Solving the allocation problems of %d coalitions", len(cids))
        allocations = self._solve_allocations(cids)
        self._analysis_stats.allocation_seconds = current_time() - start_solving_time
        self._analysis_stats.num_coalitions = len(allocations)
        self._analysis_stats.num_unsolved_coalitions = sum(
            1 for allocation in allocations.values() if not allocation.solved
        )
        self._analysis_stats.num_non_optimal_coalitions = sum(
            1 for allocation in allocations.values() if allocation.solved and not allocation.optimal
        )

        # -----------------------------------------------------------
        # Cores and payoffs
        # -----------------------------------------------------------
        start_time = current_time()
        values = self._coalition_values(allocations)
        coalitions = self._analyze_coalitions(allocations, values)
        self._analysis_stats.game_seconds = current_time() - start_time

        # -----------------------------------------------------------
        # Best partitions
        # -----------------------------------------------------------
        start_time = current_time()
        selector = get_partition_selector(self._solving_pars.formation, coalitions)
        best_partitions = selector.select()
        self._analysis_stats.num_partitions = selector.num_partitions
        self._analysis_stats.selection_seconds = current_time() - start_time

        self._analysis_stats.total_seconds = current_time() - start_solving_time
        logging.info(
            "Analysis finished in %.3f seconds with %d best partitions",
            self._analysis_stats.total_seconds,
            len(best_partitions),
        )
        return CoalitionFormationInfo(
            coalitions=coalitions,
            best_partitions=tuple(best_partitions),
            statistics=self._analysis_stats,
        )
