"""
A simple example of how to use the Ccfa class
"""

import logging
import sys
from ccfa import Ccfa, Scenario, SolvingPars, PartitionFormation, PayoffDivision
from ccfa.serialization import ScenarioSerializer, export_csv
from ccfa.visualization import FormationPrinter, ScenarioPrinter

# Set logging level
logging.basicConfig(level=logging.INFO)

# Three providers with one PM type and two VM types. Powers are in watts, electricity costs in usd/kWh
# and the rest of costs and revenues in usd/hour.
scenario = Scenario(
    num_cips=3,
    num_pm_types=1,
    num_vm_types=2,
    cip_revenues=[[0.08, 0.16], [0.08, 0.16], [0.08, 0.16]],
    pm_spec_min_powers=[143.0],
    pm_spec_max_powers=[518.4],
    cip_num_pms=[[2], [1], [2]],
    cip_num_vms=[[3, 0], [1, 1], [0, 1]],
    cip_electricity_costs=[0.4, 0.3, 0.4],
    vm_spec_cpus=[[0.15], [0.3]],
    vm_spec_rams=[[0.03125], [0.0625]],
    # PMs that are currently powered on, for each provider
    cip_pm_power_states=[[True, False], [True], [False, False]],
    # Migrating a VM to another provider costs 0.002 usd/hour for small VMs and 0.004 for large ones
    cip_to_cip_vm_migration_costs=[
        [[0, 0], [0.002, 0.004], [0.002, 0.004]],
        [[0.002, 0.004], [0, 0], [0.002, 0.004]],
        [[0.002, 0.004], [0.002, 0.004], [0, 0]],
    ],
)
ScenarioPrinter(scenario).print()

# The formation criterion can be nash, pareto, social or merge-split. Coalition values can be divided
# with Shapley, Banzhaf or normalized Banzhaf values. A solver with options can be passed, or CBC is used
# with the given relative gap and time limit. For instance:
#             from pulp import PULP_CBC_CMD
#             solver = PULP_CBC_CMD(msg=0, timeLimit=10, gapRel=0.01, threads=8)
#             solving_pars = SolvingPars(solver=solver)
# Allocation problems of different coalitions can be solved concurrently with several workers.
solving_pars = SolvingPars(
    formation=PartitionFormation.NASH,
    payoff_division=PayoffDivision.SHAPLEY,
    relative_gap=0.01,
    workers=2,
)

# Analyze coalitions and select the best partitions
info = Ccfa(scenario).analyze(solving_pars)

# Print results
printer = FormationPrinter(info)
printer.print_coalitions()
printer.print()

if "csv" in sys.argv:
    export_csv("coalitions.csv", info)

if "json" in sys.argv:
    import json
    with open("scenario.json", "w") as file:
        file.write(json.dumps(ScenarioSerializer(scenario).as_dict(), indent=2))
