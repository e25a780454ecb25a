"""
Command line interface to run coalition formation experiments
"""

import argparse
import logging
from ccfa.ccfa import Ccfa
from ccfa.model import PartitionFormation, PayoffDivision, SolvingPars
from ccfa.randomization import DEFAULT_SEED, ScenarioRandomizer
from ccfa.serialization import export_csv, read_scenario_file
from ccfa.visualization import FormationPrinter, ScenarioPrinter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ccfa", description="Coalition formation analysis for cloud infrastructure providers"
    )
    parser.add_argument("--scenario", required=True, help="Path to the scenario file")
    parser.add_argument("--csv", default=None, help="Export all the analyzed coalitions to a CSV file")
    parser.add_argument(
        "--formation",
        choices=[f.value for f in PartitionFormation],
        default=PartitionFormation.NASH.value,
        help="Coalition formation criterion",
    )
    parser.add_argument(
        "--payoff",
        choices=[p.value for p in PayoffDivision],
        default=PayoffDivision.SHAPLEY.value,
        help="Method to divide the value of each coalition",
    )
    parser.add_argument(
        "--opt-relgap", type=float, default=0.0, help="Relative gap of the optimizer, in [0, 1]"
    )
    parser.add_argument(
        "--opt-tilim",
        type=float,
        default=-1,
        help="Time limit in seconds for each optimization problem. Negative for no limit",
    )
    parser.add_argument("--rnd-genvms", action="store_true", help="Generate random numbers of VMs")
    parser.add_argument(
        "--rnd-genpmsonoff", action="store_true", help="Generate random PM power states"
    )
    parser.add_argument(
        "--rnd-genpmsonoffcosts", action="store_true", help="Generate random PM switch-on/off costs"
    )
    parser.add_argument(
        "--rnd-genvmsmigrcosts", action="store_true", help="Generate random VM migration costs"
    )
    parser.add_argument(
        "--rnd-numit", type=int, default=1, help="Number of iterations with random scenarios"
    )
    parser.add_argument("--rnd-seed", type=int, default=DEFAULT_SEED, help="Seed of random scenarios")
    parser.add_argument(
        "--workers", type=int, default=1, help="Number of concurrent allocation problems"
    )
    parser.add_argument("--verbose", action="store_true", help="Log the analysis progress")
    return parser


def main(argv: list[str] = None) -> int:
    """
    Run a coalition formation experiment.
    :param argv: Command line arguments. sys.argv when it is None.
    :return: Exit code.
    """

    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    scenario = read_scenario_file(args.scenario)
    solving_pars = SolvingPars(
        relative_gap=args.opt_relgap,
        time_limit=args.opt_tilim,
        formation=PartitionFormation(args.formation),
        payoff_division=PayoffDivision(args.payoff),
        workers=args.workers,
    )
    randomizer = ScenarioRandomizer(
        scenario,
        gen_vms=args.rnd_genvms,
        gen_pm_power_states=args.rnd_genpmsonoff,
        gen_pm_on_off_costs=args.rnd_genpmsonoffcosts,
        gen_vm_migration_costs=args.rnd_genvmsmigrcosts,
        seed=args.rnd_seed,
    )

    for iteration, wrk_scenario in enumerate(randomizer.scenarios(args.rnd_numit), start=1):
        print(f"Iteration #{iteration}")
        ScenarioPrinter(wrk_scenario).print()
        info = Ccfa(wrk_scenario).analyze(solving_pars)
        FormationPrinter(info).print()
        if args.csv:
            export_csv(args.csv, info, append=iteration > 1)
    print("DONE!")
    return 0
