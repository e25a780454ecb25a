"""
Optimal allocation of the virtual machines of a coalition to its physical machines
"""

import logging
from pulp import (
    LpVariable,
    lpSum,
    LpProblem,
    LpMinimize,
    LpBinary,
    PulpSolverError,
)
from ccfa.model import (
    Scenario,
    Pm,
    Vm,
    AllocationObjective,
    AllocationSolverError,
    AllocationStatus,
    OptimalAllocationInfo,
    SolvingPars,
    pm_consumed_power,
)
from ccfa.units import CurrencyPerTime, Power


class OptimalAllocator:
    """
    This class builds and solves the ILP problem that allocates a set of VMs to a set of PMs, deciding
    which PMs are powered on.
    """

    # pylint: disable=too-many-instance-attributes

    def __init__(self, scenario: Scenario, pms: list[Pm], vms: list[Vm], name: str = "allocation"):
        """
        Constructor of the allocator.
        :param scenario: Scenario with PM and VM specifications and costs.
        :param pms: Physical machines available for the allocation.
        :param vms: Virtual machines to allocate.
        :param name: Name of the ILP problem.
        """

        self._scenario = scenario
        self._pms = pms
        self._vms = vms
        self._name = name

        self._lp_problem = None  # ILP problem
        self._x_vars = None  # PM h is powered on
        self._y_vars = None  # VM v is allocated to PM h
        self._s_vars = None  # CPU utilization of PM h

    def _create_vars(self) -> None:
        """
        Create the variables of the ILP problem.
        """

        pm_ids = range(len(self._pms))
        vm_ids = range(len(self._vms))
        self._x_vars = LpVariable.dicts(name="X", indices=pm_ids, cat=LpBinary)
        self._y_vars = LpVariable.dicts(
            name="Y", indices=[(v, h) for v in vm_ids for h in pm_ids], cat=LpBinary
        )
        self._s_vars = LpVariable.dicts(name="S", indices=pm_ids, lowBound=0, upBound=1)

        logging.info(
            "Problem %s has %d PM variables and %d VM-to-PM variables",
            self._name,
            len(self._x_vars),
            len(self._y_vars),
        )

    def _pm_power_expr(self, h: int):
        """
        Linear expression with the power consumed by a PM in watts.
        """

        pm_type = self._pms[h].category
        min_power = self._scenario.pm_spec_min_powers[pm_type]
        max_power = self._scenario.pm_spec_max_powers[pm_type]
        return self._x_vars[h] * min_power + (max_power - min_power) * self._s_vars[h]

    def _create_cost_objective(self) -> None:
        """
        Cost function: electricity, switch-on and switch-off costs of the PMs, plus the migration costs
        of the VMs allocated to PMs of other providers.
        """

        s = self._scenario
        terms = []
        for h, pm in enumerate(self._pms):
            # Watts to kilowatts
            terms.append(self._pm_power_expr(h) * s.cip_electricity_costs[pm.cip] * 1e-3)
            if pm.powered_on:
                terms.append((1 - self._x_vars[h]) * s.cip_pm_asleep_costs[pm.cip][pm.category])
            else:
                terms.append(self._x_vars[h] * s.cip_pm_awake_costs[pm.cip][pm.category])
            for v, vm in enumerate(self._vms):
                if vm.cip != pm.cip:
                    migration_cost = s.cip_to_cip_vm_migration_costs[vm.cip][pm.cip][vm.category]
                    if migration_cost != 0:
                        terms.append(self._y_vars[v, h] * migration_cost)
        self._lp_problem += lpSum(terms)

    def _create_power_objective(self) -> None:
        """
        Power function: watts consumed by the powered-on PMs.
        """

        logging.warning(
            "Power optimization does not work well when PM switch-on/off costs "
            "and VM migration costs are not zero"
        )
        self._lp_problem += lpSum(self._pm_power_expr(h) for h in range(len(self._pms)))

    def _create_constraints(self) -> None:
        """
        Add allocation, capacity and utilization constraints.
        """

        s = self._scenario
        nvms = len(self._vms)
        pm_ids = range(len(self._pms))

        # Each VM is allocated to exactly one PM
        for v in range(nvms):
            self._lp_problem += (
                lpSum(self._y_vars[v, h] for h in pm_ids) == 1,
                f"VM_{v}_allocated_once",
            )

        for h, pm in enumerate(self._pms):
            # VMs can only be allocated to powered-on PMs
            if nvms > 0:
                self._lp_problem += (
                    lpSum(self._y_vars[v, h] for v in range(nvms)) <= nvms * self._x_vars[h],
                    f"VMs_only_in_powered_on_pm_{h}",
                )
            # Enough memory
            self._lp_problem += (
                lpSum(
                    self._y_vars[v, h] * s.vm_spec_rams[vm.category][pm.category]
                    for v, vm in enumerate(self._vms)
                )
                <= self._x_vars[h],
                f"Enough_ram_in_pm_{h}",
            )
            # CPU utilization
            self._lp_problem += (
                lpSum(
                    self._y_vars[v, h] * s.vm_spec_cpus[vm.category][pm.category]
                    for v, vm in enumerate(self._vms)
                )
                == self._s_vars[h],
                f"Cpu_utilization_of_pm_{h}",
            )
            self._lp_problem += (
                self._s_vars[h] <= self._x_vars[h],
                f"No_utilization_in_powered_off_pm_{h}",
            )

    def _solve_ilp_problem(self, solving_pars: SolvingPars) -> AllocationStatus:
        """
        Solves the ILP problem.
        :param solving_pars: Solving parameters with the solver to use.
        :return: Status of the ILP problem solution.
        :raises AllocationSolverError: When the solver fails.
        """

        try:
            self._lp_problem.solve(solver=solving_pars.solver, use_mps=False)
        except PulpSolverError as ex:
            raise AllocationSolverError(f"Solver failed on problem {self._name}: {ex}") from ex
        status = AllocationStatus.pulp_to_status(self._lp_problem.status, self._lp_problem.sol_status)
        if status == AllocationStatus.FEASIBLE:
            logging.warning("Problem %s: the solution is feasible but not optimal", self._name)
        return status

    def _allocation_cost(self, pm_power_states: list[bool], cpu_shares: list[float]) -> float:
        """
        Electricity cost of the powered-on PMs, in usd/hour.
        """

        s = self._scenario
        cost = 0.0
        for h, pm in enumerate(self._pms):
            if pm_power_states[h]:
                watts = pm_consumed_power(
                    s.pm_spec_min_powers[pm.category], s.pm_spec_max_powers[pm.category], cpu_shares[h]
                )
                cost += watts * 1e-3 * s.cip_electricity_costs[pm.cip]
        return cost

    def solve(self, solving_pars: SolvingPars = None) -> OptimalAllocationInfo:
        """
        Solve the VM to PM allocation problem.
        :param solving_pars: Solving parameters. Default parameters when it is None.
        :return: Information of the optimal allocation, which is not solved when the problem is infeasible.
        :raises AllocationSolverError: When the solver fails.
        """

        if solving_pars is None:
            solving_pars = SolvingPars()
        npms = len(self._pms)
        nvms = len(self._vms)

        # Degenerate problems are not sent to the solver
        if npms == 0:
            if nvms > 0:
                logging.info("Problem %s has VMs but no PMs", self._name)
                return OptimalAllocationInfo(status=AllocationStatus.INVALID)
            return OptimalAllocationInfo(
                status=AllocationStatus.OPTIMAL,
                objective_value=0.0,
                cost=CurrencyPerTime("0 usd/hour"),
                kwatt=Power("0 kW"),
            )

        self._lp_problem = LpProblem(self._name, LpMinimize)
        self._create_vars()
        if solving_pars.objective == AllocationObjective.MIN_POWER:
            self._create_power_objective()
        else:
            self._create_cost_objective()
        self._create_constraints()

        status = self._solve_ilp_problem(solving_pars)
        if not AllocationStatus.is_valid(status):
            return OptimalAllocationInfo(status=status)

        pm_power_states = [round(self._x_vars[h].value() or 0) == 1 for h in range(npms)]
        pm_vm_allocations = [
            [round(self._y_vars[v, h].value() or 0) == 1 for v in range(nvms)] for h in range(npms)
        ]

        # CPU utilization from the allocated VMs
        s = self._scenario
        cpu_shares = [
            sum(
                s.vm_spec_cpus[vm.category][pm.category]
                for v, vm in enumerate(self._vms)
                if pm_vm_allocations[h][v]
            )
            for h, pm in enumerate(self._pms)
        ]
        watts = sum(
            pm_consumed_power(
                s.pm_spec_min_powers[pm.category], s.pm_spec_max_powers[pm.category], cpu_shares[h]
            )
            for h, pm in enumerate(self._pms)
            if pm_power_states[h]
        )

        objective_value = self._lp_problem.objective.value() or 0.0
        if solving_pars.objective == AllocationObjective.MIN_POWER:
            # Only electricity costs are considered
            cost = self._allocation_cost(pm_power_states, cpu_shares)
        else:
            cost = objective_value

        return OptimalAllocationInfo(
            status=status,
            objective_value=objective_value,
            cost=CurrencyPerTime(f"{cost} usd/hour"),
            kwatt=Power(f"{watts * 1e-3} kW"),
            pm_power_states=tuple(pm_power_states),
            pm_vm_allocations=tuple(tuple(row) for row in pm_vm_allocations),
        )
