"""
Transferable-utility cooperative games: core and payoff divisions
"""

from __future__ import annotations
from collections.abc import Iterable, Mapping
import logging
from math import factorial
from pulp import LpProblem, LpMinimize, LpVariable, lpSum, PulpSolverError, PULP_CBC_CMD
from ccfa.model import (
    AllocationSolverError,
    AllocationStatus,
    CoalitionId,
    PayoffDivision,
    are_val_equal,
    definitely_greater,
    definitely_less,
)


class CooperativeGame:
    """
    Cooperative game given by the value of each coalition of its players. The empty coalition has
    value zero.
    """

    def __init__(self, players: Iterable[int], values: Mapping[CoalitionId, float]):
        """
        Constructor of the game.
        :param players: Provider indexes.
        :param values: Value of the coalitions. It must include every non-empty coalition of the players.
        """

        self.players = tuple(sorted(set(players)))
        self.grand = CoalitionId.from_players(self.players)
        self._values = {
            cid: value for cid, value in values.items() if cid.mask and cid.issubset(self.grand)
        }

    def value(self, cid: CoalitionId) -> float:
        """
        Value of a coalition.
        :param cid: Coalition identifier.
        :return: The coalition value.
        :raises KeyError: When the coalition is not part of the game.
        """

        if cid.mask == 0:
            return 0.0
        return self._values[cid]

    def subgame(self, players: Iterable[int]) -> CooperativeGame:
        """
        Game restricted to a subset of the players.
        """

        return CooperativeGame(players, self._values)

    def _coalitions(self) -> list[CoalitionId]:
        """
        All the coalitions of the game, including the empty one. Coalition k has the players whose
        positions are the bits set in k.
        """

        return [
            CoalitionId.from_players(p for i, p in enumerate(self.players) if k >> i & 1)
            for k in range(1 << len(self.players))
        ]

    def _marginal_contributions(self) -> dict[int, list[tuple[int, float]]]:
        """
        Marginal contributions of each player to the coalitions without it.
        :return: A list of (coalition size, contribution) for each player.
        """

        coalitions = self._coalitions()
        values = [self.value(cid) for cid in coalitions]
        contributions = {}
        for i, player in enumerate(self.players):
            bit = 1 << i
            contributions[player] = [
                (bin(k).count("1"), values[k | bit] - values[k])
                for k in range(len(coalitions))
                if not k & bit
            ]
        return contributions

    def shapley_value(self) -> dict[int, float]:
        """
        Shapley value of each player.
        """

        n = len(self.players)
        weights = [factorial(s) * factorial(n - s - 1) / factorial(n) for s in range(n)]
        return {
            player: sum(weights[size] * contribution for size, contribution in contributions)
            for player, contributions in self._marginal_contributions().items()
        }

    def banzhaf_value(self) -> dict[int, float]:
        """
        Banzhaf value of each player, the average of its marginal contributions. It is not efficient.
        """

        n = len(self.players)
        return {
            player: sum(contribution for _, contribution in contributions) / 2 ** (n - 1)
            for player, contributions in self._marginal_contributions().items()
        }

    def normalized_banzhaf_value(self) -> dict[int, float]:
        """
        Banzhaf value scaled so that payoffs add up to the value of the grand coalition.
        When Banzhaf values add up to zero they cannot be scaled and they are returned unchanged.
        """

        banzhaf = self.banzhaf_value()
        total = sum(banzhaf.values())
        if are_val_equal(total, 0.0):
            logging.warning(
                "Banzhaf values of coalition %s add up to zero and cannot be normalized", self.grand
            )
            return banzhaf
        grand_value = self.value(self.grand)
        return {player: value * grand_value / total for player, value in banzhaf.items()}

    def divide(self, method: PayoffDivision) -> dict[int, float]:
        """
        Divide the value of the grand coalition among the players.
        :param method: Payoff division method.
        :return: The payoff of each player.
        """

        divisions = {
            PayoffDivision.BANZHAF: self.banzhaf_value,
            PayoffDivision.NORM_BANZHAF: self.normalized_banzhaf_value,
            PayoffDivision.SHAPLEY: self.shapley_value,
        }
        return divisions[method]()

    def core_is_empty(self, solver=None) -> bool:
        """
        Check if the core of the game is empty. The core is not empty when the minimum total payoff
        that satisfies the rationality of every coalition is not greater than the value of the grand
        coalition.
        :param solver: PuLP solver for the linear problem. CBC when it is None.
        :return: True if the core is empty.
        :raises AllocationSolverError: When the solver fails.
        """

        if solver is None:
            solver = PULP_CBC_CMD(msg=0)
        problem = LpProblem(f"core_{self.grand.mask}", LpMinimize)
        x_vars = LpVariable.dicts(name="x", indices=list(self.players))
        problem += lpSum(x_vars.values())
        for cid in self._coalitions():
            if cid.mask:
                problem += (
                    lpSum(x_vars[p] for p in cid.players) >= self.value(cid),
                    f"Rationality_of_coalition_{cid.mask}",
                )
        try:
            problem.solve(solver=solver, use_mps=False)
        except PulpSolverError as ex:
            raise AllocationSolverError(f"Solver failed on problem {problem.name}: {ex}") from ex
        status = AllocationStatus.pulp_to_status(problem.status, problem.sol_status)
        if not AllocationStatus.is_valid(status):
            logging.warning("The core problem of coalition %s has no solution", self.grand)
            return True
        min_total_payoff = problem.objective.value() or 0.0
        return definitely_greater(min_total_payoff, self.value(self.grand))

    def belongs_to_core(self, payoffs: Mapping[int, float]) -> bool:
        """
        Check if a payoff vector is in the core of the game: it must be efficient and no coalition
        can get more on its own.
        :param payoffs: The payoff of each player.
        :return: True if the payoff vector is in the core.
        """

        if set(payoffs) != set(self.players):
            return False
        if not are_val_equal(sum(payoffs.values()), self.value(self.grand)):
            return False
        for cid in self._coalitions():
            if cid.mask and definitely_less(sum(payoffs[p] for p in cid.players), self.value(cid)):
                return False
        return True
