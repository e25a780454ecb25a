"""Top-level package for Cloud Coalition Formation Analyzer."""

from ccfa.model import (
    __version__,
    AllocationObjective,
    AllocationSolverError,
    AllocationStatus,
    CoalitionFormationInfo,
    CoalitionId,
    CoalitionInfo,
    CoalitionTable,
    OptimalAllocationInfo,
    PartitionFormation,
    PartitionInfo,
    PayoffDivision,
    Pm,
    Scenario,
    SolvingPars,
    Vm,
)
from ccfa.ccfa import Ccfa

__all__ = [
    "__version__",
    "AllocationObjective",
    "AllocationSolverError",
    "AllocationStatus",
    "Ccfa",
    "CoalitionFormationInfo",
    "CoalitionId",
    "CoalitionInfo",
    "CoalitionTable",
    "OptimalAllocationInfo",
    "PartitionFormation",
    "PartitionInfo",
    "PayoffDivision",
    "Pm",
    "Scenario",
    "SolvingPars",
    "Vm",
]
