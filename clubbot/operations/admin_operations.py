"""
Administrative Operations Module

Business logic for progression and ledger administration.

Key functionality:
- award_experience(): manual XP adjustment with reason and rank recompute
- award_legendary_badge(): grant an admin-only badge
- set_scoring_rule(): create or change a global scoring rule
- save_tier()/delete_rank(): edit the rank structure
- validate_rank_ladder(): report tiers sharing a threshold
- correct_transaction(): write a compensating ledger entry

Every action is written to the audit log.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from clubbot.data_models.club import Player, Rank, ScoringRule, Tier, Transaction
from clubbot.database.document_store import Collections
from clubbot.operations.event_operations import SnapshotLoader
from clubbot.services.ledger import build_correction
from clubbot.services.progression import award_experience
from clubbot.utils.exceptions import ClubOperationError, ValidationError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


class TransactionNotFoundError(ClubOperationError):
    """Raised when a ledger transaction to correct does not exist."""
    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction '{transaction_id}' not found",
            f"❌ Transaction `{transaction_id}` not found!"
        )


class AdminOperations(SnapshotLoader):
    """Administrative operations over players, ranks, rules and the ledger."""

    async def award_experience(self, player_id: str, amount: int, reason: str, admin_id: int) -> Player:
        player = await self.get_player(player_id)
        ladder = await self.load_rank_ladder()

        updated = award_experience(player, amount, reason, ladder)
        await self.store.update_record(Collections.PLAYERS, updated.to_dict())

        await self.record_audit(
            admin_id, 'award_xp', 'player', player_id,
            {'amount': amount, 'experience': updated.experience, 'tier': updated.rank.id if updated.rank else None},
            reason=reason
        )
        return updated

    async def award_legendary_badge(self, player_id: str, badge_id: str, admin_id: int) -> bool:
        """Grant a legendary badge; False if the player already holds it."""
        player = await self.get_player(player_id)
        if badge_id in player.legendary_badges:
            return False

        player.legendary_badges.append(badge_id)
        await self.store.update_record(Collections.PLAYERS, player.to_dict())
        await self.record_audit(admin_id, 'award_badge', 'player', player_id, {'badgeId': badge_id})
        return True

    async def set_scoring_rule(
        self,
        rule_id: str,
        experience: int,
        admin_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None
    ) -> ScoringRule:
        existing = await self.store.get_record(Collections.SCORING_RULES, rule_id)
        current = ScoringRule.from_dict(existing) if existing else None
        rule = ScoringRule(
            id=rule_id,
            name=name or (current.name if current else rule_id),
            experience=int(experience),
            description=description if description is not None else (current.description if current else ''),
        )
        await self.store.set_record(Collections.SCORING_RULES, rule_id, rule.to_dict())

        await self.record_audit(
            admin_id, 'scoring_rule_set', 'scoring_rule', rule_id,
            {'old': current.experience if current else None, 'new': rule.experience}
        )
        return rule

    async def save_tier(self, rank_id: str, tier_data: Dict[str, Any], admin_id: int) -> Rank:
        """Add or replace a tier inside a rank."""
        try:
            tier = Tier.from_dict(tier_data)
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError('tier', f"Invalid tier data: {e}")

        ladder = await self.load_rank_ladder(strict=False)
        updated = ladder.save_tier(rank_id, tier).get_rank(rank_id)
        await self.store.set_record(Collections.RANKS, rank_id, updated.to_dict())

        await self.record_audit(
            admin_id, 'tier_save', 'rank', rank_id,
            {'tierId': tier.id, 'minExperience': tier.min_experience}
        )
        return updated

    async def delete_rank(self, rank_id: str, admin_id: int) -> Rank:
        """
        Delete a rank and all of its tiers.

        Cached player ranks are not recomputed; they refresh the next time
        a player's experience changes.
        """
        ladder = await self.load_rank_ladder(strict=False)
        rank = ladder.get_rank(rank_id)
        remaining = ladder.delete_rank(rank_id)
        await self.store.delete_record(Collections.RANKS, rank_id)

        await self.record_audit(
            admin_id, 'rank_delete', 'rank', rank_id,
            {'name': rank.name, 'tiers': [t.id for t in rank.tiers], 'remainingTiers': len(remaining.tiers)}
        )
        self.logger.warning(f"Rank {rank_id} ({rank.name}) deleted with {len(rank.tiers)} tier(s)")
        return rank

    async def validate_rank_ladder(self) -> Dict[int, list]:
        """Tiers sharing a threshold, keyed by threshold; empty when valid."""
        ladder = await self.load_rank_ladder(strict=False)
        return ladder.duplicate_thresholds()

    async def correct_transaction(self, transaction_id: str, reason: str, admin_id: int) -> Transaction:
        data = await self.store.get_record(Collections.TRANSACTIONS, transaction_id)
        if data is None:
            raise TransactionNotFoundError(transaction_id)

        correction = build_correction(
            Transaction.from_dict(data), reason, datetime.now(timezone.utc).date().isoformat()
        )
        await self.store.set_record(Collections.TRANSACTIONS, correction.id, correction.to_dict())

        await self.record_audit(
            admin_id, 'transaction_correct', 'transaction', transaction_id,
            {'correctionId': correction.id, 'amount': correction.amount}, reason=reason
        )
        return correction
