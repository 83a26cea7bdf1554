"""
Player progression outside event scoring: manual experience awards,
badge evaluation and legendary badge grants.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from clubbot.data_models.club import Badge, ExperienceAdjustment, Player
from clubbot.services.rank_ladder import RankLadder
from clubbot.utils.exceptions import ValidationError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)

NUMERIC_CRITERIA = {
    'kills': lambda p: p.stats.kills,
    'headshots': lambda p: p.stats.headshots,
    'gamesPlayed': lambda p: p.stats.games_played,
}


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def apply_experience_delta(player: Player, amount: int, ladder: RankLadder) -> None:
    """Change cumulative experience and recompute the cached rank in place."""
    player.stats.experience += amount
    player.rank = ladder.resolve(player.stats.experience)


def award_experience(
    player: Player,
    amount: int,
    reason: str,
    ladder: RankLadder,
    date: Optional[str] = None
) -> Player:
    """
    Manually adjust a player's experience.

    Args:
        player: Current player snapshot (not modified)
        amount: Signed experience delta
        reason: Shown in the player's adjustment history; required
        ladder: Rank ladder used to recompute the cached rank
        date: ISO timestamp, defaults to now

    Returns:
        Updated copy of the player
    """
    if not reason or not reason.strip():
        raise ValidationError('reason', "Please provide a reason for the XP adjustment.")
    if amount == 0:
        raise ValidationError('amount', "XP amount cannot be zero.")

    updated = player.copy()
    apply_experience_delta(updated, amount, ladder)
    updated.experience_adjustments.append(
        ExperienceAdjustment(amount=amount, reason=reason.strip(), date=date or utc_timestamp())
    )
    logger.info(f"Adjusted {player.id} by {amount} XP: {reason.strip()}")
    return updated


def badge_earned(player: Player, badge: Badge, ladder: RankLadder) -> bool:
    criteria = badge.criteria_type
    if criteria in NUMERIC_CRITERIA:
        try:
            threshold = int(badge.criteria_value)
        except (TypeError, ValueError):
            logger.warning(f"Badge '{badge.id}' has non-numeric criteria value {badge.criteria_value!r}")
            return False
        return NUMERIC_CRITERIA[criteria](player) >= threshold

    if criteria == 'rank':
        tier = player.rank or ladder.resolve(player.experience)
        rank = ladder.rank_of_tier(tier.id)
        return rank is not None and rank.name == badge.criteria_value

    # custom badges are only ever awarded by an admin
    return False


def evaluate_badges(player: Player, badges: Iterable[Badge], ladder: RankLadder) -> List[str]:
    """Append newly earned badge ids to ``player.badges`` and return them."""
    earned = []
    for badge in badges:
        if badge.id in player.badges:
            continue
        if badge_earned(player, badge, ladder):
            player.badges.append(badge.id)
            earned.append(badge.id)
    if earned:
        logger.info(f"{player.id} earned badges: {', '.join(earned)}")
    return earned


def grant_legendary_badges(player: Player, badge_ids: Iterable[str]) -> List[str]:
    added = []
    for badge_id in badge_ids:
        if badge_id not in player.legendary_badges:
            player.legendary_badges.append(badge_id)
            added.append(badge_id)
    return added
