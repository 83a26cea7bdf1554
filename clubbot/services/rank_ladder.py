"""
Rank ladder and tier resolution.

The global ladder is every tier of every rank, ordered by minimum
experience. A player's tier is the highest threshold they meet; players
below every threshold get the lowest defined tier, and only an empty
ladder yields the Unranked sentinel.

Tiers sharing a threshold resolve in input order (stable sort). That order
is arbitrary, so duplicates are reported by ``RankLadder.validate``.
"""

from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from clubbot.config import Config
from clubbot.data_models.club import Rank, Tier
from clubbot.utils.exceptions import LadderConfigurationError, RankNotFoundError, ValidationError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)

UNRANKED_TIER = Tier(id='subrank_unranked', name='Unranked', min_experience=0)


def flatten_tiers(ranks: Iterable[Rank]) -> List[Tier]:
    return [tier for rank in ranks for tier in rank.tiers]


def resolve_tier(experience: int, ranks: Sequence[Rank]) -> Tier:
    """
    Resolve the tier for a cumulative experience value.

    Args:
        experience: Player's cumulative experience
        ranks: Every rank in the ladder

    Returns:
        Highest-threshold tier with ``min_experience <= experience``, the
        lowest tier if none qualify, or UNRANKED_TIER for an empty ladder
    """
    tiers = flatten_tiers(ranks)
    if not tiers:
        return UNRANKED_TIER

    ordered = sorted(tiers, key=lambda t: t.min_experience, reverse=True)
    for tier in ordered:
        if tier.min_experience <= experience:
            return tier
    return ordered[-1]


class RankLadder:
    """Immutable snapshot of the rank structure."""

    def __init__(self, ranks: Iterable[Rank] = (), strict: Optional[bool] = None):
        self.ranks = tuple(ranks)
        self.strict = Config.STRICT_RANK_LADDER if strict is None else strict

        duplicates = self.duplicate_thresholds()
        if duplicates:
            if self.strict:
                raise LadderConfigurationError(duplicates)
            logger.warning(
                f"Rank ladder has tiers sharing a threshold {duplicates}; "
                f"resolution falls back to definition order"
            )

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]], strict: Optional[bool] = None) -> 'RankLadder':
        return cls((Rank.from_dict(r) for r in records), strict=strict)

    @property
    def tiers(self) -> List[Tier]:
        """All tiers ascending by threshold."""
        return sorted(flatten_tiers(self.ranks), key=lambda t: t.min_experience)

    def resolve(self, experience: int) -> Tier:
        return resolve_tier(experience, self.ranks)

    def get_rank(self, rank_id: str) -> Rank:
        for rank in self.ranks:
            if rank.id == rank_id:
                return rank
        raise RankNotFoundError(rank_id)

    def rank_of_tier(self, tier_id: str) -> Optional[Rank]:
        for rank in self.ranks:
            if any(t.id == tier_id for t in rank.tiers):
                return rank
        return None

    def duplicate_thresholds(self) -> Dict[int, List[str]]:
        by_threshold = defaultdict(list)
        for tier in flatten_tiers(self.ranks):
            by_threshold[tier.min_experience].append(tier.id)
        return {threshold: ids for threshold, ids in by_threshold.items() if len(ids) > 1}

    def validate(self) -> None:
        """Raise LadderConfigurationError if any tiers share a threshold."""
        duplicates = self.duplicate_thresholds()
        if duplicates:
            raise LadderConfigurationError(duplicates)

    def delete_rank(self, rank_id: str) -> 'RankLadder':
        """
        Ladder without the given rank and all of its tiers.

        Players' cached ranks are left alone; they pick up the new ladder
        the next time their experience changes.
        """
        self.get_rank(rank_id)
        return RankLadder((r for r in self.ranks if r.id != rank_id), strict=False)

    def save_tier(self, rank_id: str, tier: Tier) -> 'RankLadder':
        """Ladder with ``tier`` added to, or replaced within, the given rank."""
        if tier.min_experience < 0:
            raise ValidationError('minExperience', "Tier minimum XP cannot be negative.")

        rank = self.get_rank(rank_id)
        if any(t.id == tier.id for t in rank.tiers):
            tiers = tuple(tier if t.id == tier.id else t for t in rank.tiers)
        else:
            tiers = rank.tiers + (tier,)
        tiers = tuple(sorted(tiers, key=lambda t: t.min_experience))
        updated = replace(rank, tiers=tiers)

        return RankLadder(
            (updated if r.id == rank_id else r for r in self.ranks),
            strict=self.strict
        )
