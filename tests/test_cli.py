"""Tests for the printers and the command line interface"""

import csv
import pytest
from ccfa.cli import build_parser, main
from ccfa.visualization import FormationPrinter, ScenarioPrinter
from ccfa import Ccfa, PartitionFormation, SolvingPars
from .examples import infeasible_example, two_cips_example


@pytest.mark.smoke
def test_print_scenario(capsys):
    """The scenario tables are printed"""
    ScenarioPrinter(two_cips_example()).print()
    out = capsys.readouterr().out
    assert "Cloud infrastructure providers" in out
    assert "PM types" in out
    assert "VM types" in out


def test_print_formation(two_cips_analysis, capsys):
    """Best partitions, reference coalitions and statistics are printed"""
    printer = FormationPrinter(two_cips_analysis)
    printer.print()
    out = capsys.readouterr().out
    assert "Best partition #1" in out
    assert "Grand coalition" in out
    assert "Singleton coalitions" in out
    assert "Formation: social" in out
    assert "Coalitions: 3" in out
    assert "Partitions: 2" in out

    printer.print_coalitions()
    out = capsys.readouterr().out
    assert "Coalitions" in out
    assert "infeasible" not in out


def test_print_formation_without_partitions(capsys):
    """A message is printed when no partition is selected"""
    info = Ccfa(infeasible_example()).analyze(SolvingPars(formation=PartitionFormation.SOCIAL))
    FormationPrinter(info).print()
    out = capsys.readouterr().out
    assert "No partition satisfies" in out
    assert "Coalitions without allocation: 3" in out


def test_parser_defaults():
    """Default options"""
    args = build_parser().parse_args(["--scenario", "file.cfg"])
    assert args.formation == "nash"
    assert args.payoff == "shapley"
    assert args.opt_relgap == 0
    assert args.opt_tilim == -1
    assert args.rnd_numit == 1
    assert not args.rnd_genvms


def test_parser_rejects_unknown_formation(capsys):
    """Only known formation criteria are accepted"""
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--scenario", "file.cfg", "--formation", "core"])
    assert "invalid choice" in capsys.readouterr().err


def test_main(examples_dir, tmp_path, capsys):
    """An experiment with a scenario file prints its results and exports them to CSV"""
    csv_file = tmp_path / "results.csv"
    exit_code = main(
        [
            "--scenario",
            str(examples_dir / "sample_scenario2.cfg"),
            "--formation",
            "social",
            "--csv",
            str(csv_file),
        ]
    )
    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Iteration #1" in out
    assert "DONE!" in out
    with open(csv_file, encoding="utf-8", newline="") as file:
        rows = list(csv.reader(file))
    assert len(rows) == 8
    assert rows[0][0] == "Coalition ID"


def test_main_random_iterations(examples_dir, tmp_path, capsys):
    """Random iterations append their results to the CSV file"""
    csv_file = tmp_path / "results.csv"
    main(
        [
            "--scenario",
            str(examples_dir / "sample_scenario2.cfg"),
            "--rnd-genvms",
            "--rnd-genpmsonoff",
            "--rnd-numit",
            "2",
            "--workers",
            "2",
            "--csv",
            str(csv_file),
        ]
    )
    out = capsys.readouterr().out
    assert "Iteration #2" in out
    with open(csv_file, encoding="utf-8", newline="") as file:
        rows = list(csv.reader(file))
    # Header, 7 coalitions, separator and 7 coalitions
    assert len(rows) == 16
