# pylint: disable=redefined-outer-name
"""Code for fixtures used among different test files"""

from pathlib import Path
import pytest
from ccfa import Ccfa, CoalitionFormationInfo, PartitionFormation, PayoffDivision, SolvingPars
from .examples import two_cips_example, three_cips_example


@pytest.fixture(scope="module")
def examples_dir() -> Path:
    """Path to the directory with example scenario files"""
    return Path(__file__).parent.parent / "examples"


@pytest.fixture(scope="module")
def two_cips_analysis() -> CoalitionFormationInfo:
    """Analysis of the two-provider example with social optimum and Shapley values"""
    solving_pars = SolvingPars(
        formation=PartitionFormation.SOCIAL, payoff_division=PayoffDivision.SHAPLEY
    )
    return Ccfa(two_cips_example()).analyze(solving_pars)


@pytest.fixture(scope="module")
def three_cips_analysis() -> CoalitionFormationInfo:
    """Analysis of the three-provider example with social optimum and Shapley values"""
    solving_pars = SolvingPars(
        formation=PartitionFormation.SOCIAL, payoff_division=PayoffDivision.SHAPLEY
    )
    return Ccfa(three_cips_example()).analyze(solving_pars)
