"""
Random perturbation of scenarios for Monte-Carlo experiments
"""

from collections.abc import Iterator
from dataclasses import replace
import numpy as np
from ccfa.model import Scenario

DEFAULT_SEED = 5489

# Seconds in an hour
_NORM = 3600

# Switch-on/off time of PMs. Normal distribution with mean 300 and standard deviation 50 microseconds,
# as a fraction of an hour
_ON_OFF_TIME_MU = 3e-4 / _NORM
_ON_OFF_TIME_SIGMA = 5e-5 / _NORM

# Migration time of the smallest VM type. Normal distribution with mean 277 and standard deviation 61
# seconds, as a fraction of an hour. Parameters double for each larger VM type
_MIGRATION_TIME_MU = 277 / _NORM
_MIGRATION_TIME_SIGMA = 61 / _NORM

# Transfer cost rate in usd/hour: 1e-5 usd/MB at 12.5 MB/s, with an allocation every 12 hours
_TRANSFER_COST_RATE = 1e-5 * 12.5 * _NORM / 12


class ScenarioRandomizer:
    """
    Generator of random scenarios from a base scenario. Each perturbed element has its own random
    stream, so the values of an element do not depend on the rest of perturbations.
    """

    # pylint: disable=too-many-instance-attributes

    def __init__(
        self,
        scenario: Scenario,
        gen_vms: bool = False,
        gen_pm_power_states: bool = False,
        gen_pm_on_off_costs: bool = False,
        gen_vm_migration_costs: bool = False,
        seed: int = DEFAULT_SEED,
    ):
        """
        Constructor of the randomizer.
        :param scenario: Base scenario.
        :param gen_vms: Draw the number of VMs of each provider and type uniformly up to the base number.
        :param gen_pm_power_states: Draw the power state of each PM, on or off with the same probability.
        :param gen_pm_on_off_costs: Draw the switch-on/off cost of each provider and PM type.
        :param gen_vm_migration_costs: Draw the migration cost between providers of each VM type.
        :param seed: Seed of the random streams.
        """

        self._scenario = scenario
        self._gen_vms = gen_vms
        self._gen_pm_power_states = gen_pm_power_states
        self._gen_pm_on_off_costs = gen_pm_on_off_costs
        self._gen_vm_migration_costs = gen_vm_migration_costs

        ncips = scenario.num_cips
        vms_seq, states_seq, on_off_seq, migration_seq = np.random.SeedSequence(seed).spawn(4)
        self._rng_vms = [
            [np.random.default_rng(s) for s in cip_seq.spawn(scenario.num_vm_types)]
            for cip_seq in vms_seq.spawn(ncips)
        ]
        self._rng_pm_power_states = [
            [np.random.default_rng(s) for s in cip_seq.spawn(scenario.num_pm_types)]
            for cip_seq in states_seq.spawn(ncips)
        ]
        self._rng_pm_on_off_costs = [
            [np.random.default_rng(s) for s in cip_seq.spawn(scenario.num_pm_types)]
            for cip_seq in on_off_seq.spawn(ncips)
        ]
        self._rng_vm_migration_costs = [
            [
                [np.random.default_rng(s) for s in dst_seq.spawn(scenario.num_vm_types)]
                for dst_seq in src_seq.spawn(ncips)
            ]
            for src_seq in migration_seq.spawn(ncips)
        ]

    @property
    def enabled(self) -> bool:
        """
        True when some element of the scenario is perturbed.
        """

        return (
            self._gen_vms
            or self._gen_pm_power_states
            or self._gen_pm_on_off_costs
            or self._gen_vm_migration_costs
        )

    def _random_num_vms(self) -> list[list[int]]:
        s = self._scenario
        return [
            [
                int(self._rng_vms[c][v].integers(0, s.cip_num_vms[c][v], endpoint=True))
                for v in range(s.num_vm_types)
            ]
            for c in range(s.num_cips)
        ]

    def _random_pm_power_states(self) -> list[list[bool]]:
        s = self._scenario
        states = []
        for c in range(s.num_cips):
            cip_states = []
            for p in range(s.num_pm_types):
                rng = self._rng_pm_power_states[c][p]
                cip_states.extend(bool(rng.random() < 0.5) for _ in range(s.cip_num_pms[c][p]))
            states.append(cip_states)
        return states

    def _random_pm_on_off_costs(self) -> list[list[float]]:
        s = self._scenario
        costs = []
        for c in range(s.num_cips):
            cip_costs = []
            for p in range(s.num_pm_types):
                # Cost of the PM running at maximum power during the transition
                transition_cost_rate = s.pm_spec_max_powers[p] * 1e-3 * s.cip_electricity_costs[c]
                time = self._rng_pm_on_off_costs[c][p].normal(_ON_OFF_TIME_MU, _ON_OFF_TIME_SIGMA)
                cip_costs.append(max(float(time) * transition_cost_rate, 0.0))
            costs.append(cip_costs)
        return costs

    def _random_vm_migration_costs(self) -> list[list[list[float]]]:
        s = self._scenario
        costs = []
        for c1 in range(s.num_cips):
            src_costs = []
            for c2 in range(s.num_cips):
                if c1 == c2:
                    src_costs.append([0.0] * s.num_vm_types)
                    continue
                # VM types are sorted by increasing size
                mu, sigma = _MIGRATION_TIME_MU, _MIGRATION_TIME_SIGMA
                dst_costs = []
                for v in range(s.num_vm_types):
                    time = self._rng_vm_migration_costs[c1][c2][v].normal(mu, sigma)
                    dst_costs.append(max(float(time) * _TRANSFER_COST_RATE, 0.0))
                    mu *= 2
                    sigma *= 2
                src_costs.append(dst_costs)
            costs.append(src_costs)
        return costs

    def generate(self) -> Scenario:
        """
        Generate the next random scenario. Elements that are not perturbed keep their base values.
        :return: A new scenario.
        """

        changes = {}
        if self._gen_vms:
            changes["cip_num_vms"] = self._random_num_vms()
        if self._gen_pm_power_states:
            changes["cip_pm_power_states"] = self._random_pm_power_states()
        if self._gen_pm_on_off_costs:
            on_off_costs = self._random_pm_on_off_costs()
            changes["cip_pm_asleep_costs"] = on_off_costs
            changes["cip_pm_awake_costs"] = on_off_costs
        if self._gen_vm_migration_costs:
            changes["cip_to_cip_vm_migration_costs"] = self._random_vm_migration_costs()
        return replace(self._scenario, **changes)

    def scenarios(self, num_iterations: int) -> Iterator[Scenario]:
        """
        Generate the scenarios of an experiment. There is only one iteration, with the base scenario,
        when no element is perturbed.
        :param num_iterations: Number of scenarios.
        :return: A generator of scenarios.
        """

        if not self.enabled:
            yield self._scenario
            return
        for _ in range(max(1, num_iterations)):
            yield self.generate()
