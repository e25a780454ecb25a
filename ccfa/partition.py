"""
Selection of the best partitions of the providers into coalitions, according to different stability
and optimality criteria
"""

from functools import reduce
import logging
import math
from ccfa.helper import lexicographic_partitions, lexicographic_subsets
from ccfa.model import (
    CoalitionId,
    CoalitionTable,
    PartitionFormation,
    PartitionInfo,
    are_val_equal,
    definitely_greater,
    definitely_less,
)


class PartitionSelector:
    """
    Base class of partition selectors. All the partitions of the providers are generated in lexicographic
    order and those satisfying the selector criterion are kept. The coalition table is never modified.
    """

    def __init__(self, coalitions: CoalitionTable):
        """
        :param coalitions: Table with the information of all the coalitions.
        """

        self._coalitions = coalitions
        self.num_partitions = 0

    def _partition_info(self, blocks: list[CoalitionId]) -> PartitionInfo:
        """
        Build the information of a partition from the coalition table. Coalitions missing in the
        table are skipped and their players get NaN payoffs.
        :param blocks: Coalitions of the partition.
        :return: The partition information.
        """

        coalitions = []
        payoffs = {}
        value = 0.0
        for cid in blocks:
            info = self._coalitions.get(cid)
            for player in cid.players:
                payoffs[player] = math.nan if info is None else info.payoffs.get(player, math.nan)
            if info is None:
                continue
            coalitions.append(cid)
            value += info.value
        return PartitionInfo(
            coalitions=tuple(sorted(coalitions)), payoffs=dict(sorted(payoffs.items())), value=value
        )

    def _is_selected(self, partition: PartitionInfo, blocks: list[CoalitionId]) -> bool:
        raise NotImplementedError

    def _update(
        self, best_partitions: list[PartitionInfo], partition: PartitionInfo, blocks: list[CoalitionId]
    ) -> None:
        """
        Update the list of best partitions with a new partition.
        """

        if self._is_selected(partition, blocks):
            best_partitions.append(partition)

    def select(self) -> list[PartitionInfo]:
        """
        Select the best partitions.
        :return: The list of best partitions, in the order they were generated. It may be empty.
        """

        self.num_partitions = 0
        best_partitions = []
        for partition_players in lexicographic_partitions(range(self._coalitions.num_players)):
            self.num_partitions += 1
            blocks = [CoalitionId.from_players(players) for players in partition_players]
            partition = self._partition_info(blocks)
            self._update(best_partitions, partition, blocks)
        logging.info(
            "%s selected %d of %d partitions",
            type(self).__name__,
            len(best_partitions),
            self.num_partitions,
        )
        return best_partitions


class NashStableSelector(PartitionSelector):
    """
    A partition is Nash-stable when no provider gets a higher payoff by moving alone to another coalition
    of the partition or to a singleton coalition. Providers in unsolved coalitions are never stable,
    and unsolved coalitions do not attract providers.
    """

    def _is_selected(self, partition: PartitionInfo, blocks: list[CoalitionId]) -> bool:
        for player in range(self._coalitions.num_players):
            current_payoff = partition.payoffs[player]
            if math.isnan(current_payoff):
                # The coalition of the player is unsolved or unknown
                return False
            candidates = [cid | CoalitionId.from_players([player]) for cid in blocks if player not in cid]
            own_block = next(cid for cid in blocks if player in cid)
            if len(own_block) > 1:
                candidates.append(CoalitionId.from_players([player]))
            for cid in candidates:
                payoff = self._coalitions.payoff(cid, player)
                if payoff is None:
                    # Unknown or unsolved coalitions do not attract players
                    continue
                if definitely_greater(payoff, current_payoff):
                    logging.debug("Partition %s: provider %d prefers %s", partition, player, cid)
                    return False
        return True


class ParetoOptimalSelector(PartitionSelector):
    """
    Approximation of Pareto optimality. The best payoff of each provider is updated while partitions are
    generated, and a partition is selected when it improves the best payoff of every provider. Providers
    are checked in order and the check stops at the first provider without improvement, so the best
    payoffs of previous providers keep their update.
    """

    def __init__(self, coalitions: CoalitionTable):
        super().__init__(coalitions)
        self._best_payoffs = []

    def select(self) -> list[PartitionInfo]:
        self._best_payoffs = [math.nan] * self._coalitions.num_players
        return super().select()

    def _is_selected(self, partition: PartitionInfo, blocks: list[CoalitionId]) -> bool:
        for player in range(self._coalitions.num_players):
            payoff = partition.payoffs[player]
            best_payoff = self._best_payoffs[player]
            if math.isnan(best_payoff) or definitely_greater(payoff, best_payoff):
                self._best_payoffs[player] = payoff
            else:
                return False
        return True


class SocialOptimumSelector(PartitionSelector):
    """
    Select the partitions with the maximum total value. Partitions with unsolved coalitions are
    not candidates.
    """

    def __init__(self, coalitions: CoalitionTable):
        super().__init__(coalitions)
        self._best_value = None

    def select(self) -> list[PartitionInfo]:
        self._best_value = None
        return super().select()

    def _update(
        self, best_partitions: list[PartitionInfo], partition: PartitionInfo, blocks: list[CoalitionId]
    ) -> None:
        if not math.isfinite(partition.value):
            return
        if self._best_value is None or definitely_greater(partition.value, self._best_value):
            best_partitions.clear()
            best_partitions.append(partition)
            self._best_value = partition.value
        elif are_val_equal(partition.value, self._best_value):
            best_partitions.append(partition)


class MergeSplitStableSelector(PartitionSelector):
    """
    A partition is merge/split stable (D_hp-stable) when no coalition gets a higher value splitting into
    smaller coalitions and no group of coalitions gets a higher value merging into their union.
    Splits and merges involving coalitions missing in the table are not considered.
    """

    def _split_is_profitable(self, cid: CoalitionId, value: float) -> bool:
        for refinement in lexicographic_partitions(cid.players):
            if len(refinement) == 1:
                # The coalition itself
                continue
            values = [self._coalitions.value(CoalitionId.from_players(players)) for players in refinement]
            if None in values:
                continue
            if definitely_less(value, sum(values)):
                logging.debug("Coalition %s gets more splitting into %s", cid, refinement)
                return True
        return False

    def _merge_is_profitable(self, blocks: list[CoalitionId]) -> bool:
        known_blocks = [(cid, self._coalitions.value(cid)) for cid in blocks]
        for group in lexicographic_subsets(known_blocks):
            if len(group) < 2 or any(value is None for _, value in group):
                continue
            union = reduce(lambda cid1, cid2: cid1 | cid2, (cid for cid, _ in group))
            union_value = self._coalitions.value(union)
            if union_value is None:
                continue
            if definitely_less(sum(value for _, value in group), union_value):
                logging.debug("Coalitions %s get more merging", [str(cid) for cid, _ in group])
                return True
        return False

    def _is_selected(self, partition: PartitionInfo, blocks: list[CoalitionId]) -> bool:
        for cid in blocks:
            value = self._coalitions.value(cid)
            if value is not None and len(cid) > 1 and self._split_is_profitable(cid, value):
                return False
        return not self._merge_is_profitable(blocks)


_SELECTORS = {
    PartitionFormation.MERGE_SPLIT: MergeSplitStableSelector,
    PartitionFormation.NASH: NashStableSelector,
    PartitionFormation.PARETO: ParetoOptimalSelector,
    PartitionFormation.SOCIAL: SocialOptimumSelector,
}


def get_partition_selector(formation: PartitionFormation, coalitions: CoalitionTable) -> PartitionSelector:
    """
    Get the partition selector for a formation criterion.
    :param formation: Partition formation criterion.
    :param coalitions: Table with the information of all the coalitions.
    :return: The partition selector.
    :raises ValueError: When the formation criterion is unknown.
    """

    if formation not in _SELECTORS:
        raise ValueError(f"Unknown partition formation {formation}")
    return _SELECTORS[formation](coalitions)
