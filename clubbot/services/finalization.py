"""
Event finalization engine.

Converts an event's live state into permanent progression and ledger
records:

1. No-shows are players with a signup who never checked in.
2. The no-show penalty comes from the global rule table; a value >= 0
   disables it.
3. Each roster player is either scored as an attendee, penalized as a
   no-show, or left untouched.
4. Rank is recomputed for every player whose experience changed.
5. Players, transactions and the completed event are written concurrently.
6. Every signup of the event is deleted; failures are collected.

Scoring rules, rank ladder, inventory and badges are snapshots passed in;
the engine never reads the store. A FinalizationRecord is written as
``started`` before any other write and flipped to ``completed`` at the end,
so a partial run is visible.

Transaction ids are deterministic, so a second run upserts the same
ledger rows. Experience is accumulated, so a second run applies it again
unless exactly-once mode is on, in which case players listed in the
previous record's ``appliedPlayers`` are skipped.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from clubbot.config import Config
from clubbot.data_models.club import (
    Badge, EventStatus, ExperienceAdjustment, FinalizationRecord, FinalizationStatus,
    GameEvent, InventoryItem, MatchRecord, Player, Signup, Transaction
)
from clubbot.database.document_store import Collections, DocumentStore
from clubbot.services.ledger import build_attendee_transactions
from clubbot.services.live_stats import LiveStatsTracker
from clubbot.services.progression import (
    apply_experience_delta, evaluate_badges, grant_legendary_badges
)
from clubbot.services.rank_ladder import RankLadder
from clubbot.services.scoring_rules import ScoringRuleTable
from clubbot.utils.logger import event_logger, setup_logger

logger = setup_logger(__name__)


@dataclass
class FinalizationResult:
    updated_players: List[Player]
    new_transactions: List[Transaction]
    updated_event: GameEvent
    no_show_ids: List[str]
    record: FinalizationRecord
    experience_gained: Dict[str, int] = field(default_factory=dict)
    penalized_ids: List[str] = field(default_factory=list)
    skipped_ids: List[str] = field(default_factory=list)
    missing_player_ids: List[str] = field(default_factory=list)
    deleted_signup_ids: List[str] = field(default_factory=list)
    failed_signup_deletions: Dict[str, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.record.status is FinalizationStatus.COMPLETED


class FinalizationEngine:
    """Scores an event and persists the outcome through a DocumentStore."""

    def __init__(self, store: DocumentStore, exactly_once: Optional[bool] = None):
        self.store = store
        self.exactly_once = Config.FINALIZATION_EXACTLY_ONCE if exactly_once is None else exactly_once

    def preview_finalization(
        self,
        event: GameEvent,
        players: Sequence[Player],
        signups: Iterable[Signup],
        scoring_rules: ScoringRuleTable,
        rank_ladder: RankLadder,
        inventory: Optional[Mapping[str, InventoryItem]] = None,
        badges: Iterable[Badge] = (),
        previous_record: Optional[FinalizationRecord] = None,
        finalized_at: Optional[str] = None
    ) -> FinalizationResult:
        """
        Compute the finalization outcome without writing anything.

        Inputs are not modified; players and the event in the result are
        updated copies.
        """
        now = finalized_at or datetime.now(timezone.utc).isoformat()
        inventory = inventory or {}
        badges = list(badges)

        updated_event = event.copy()
        attendee_ids = updated_event.attendee_ids
        attending = set(attendee_ids)

        signup_player_ids = []
        for signup in signups:
            if signup.event_id == event.id and signup.player_id not in signup_player_ids:
                signup_player_ids.append(signup.player_id)
        no_show_ids = [pid for pid in signup_player_ids if pid not in attending]
        no_shows = set(no_show_ids)

        penalty = scoring_rules.no_show_penalty()
        already_applied = set()
        if self.exactly_once and previous_record is not None:
            already_applied = set(previous_record.applied_players)

        tracker = LiveStatsTracker.for_event(updated_event)
        transaction_date = updated_event.date or now[:10]
        roster = {p.id: p for p in players}

        updated_players: List[Player] = []
        transactions: List[Transaction] = []
        gained: Dict[str, int] = {}
        penalized: List[str] = []
        skipped: List[str] = []

        for attendee in updated_event.attendees:
            transactions.extend(build_attendee_transactions(
                updated_event, attendee, roster.get(attendee.player_id), inventory, transaction_date
            ))

        missing = [pid for pid in attendee_ids if pid not in roster]
        event_log = event_logger(logger, event.id)
        for pid in missing:
            event_log.warning(f"Attendee {pid} has no player record; only billing applied")

        for player in players:
            if player.id not in attending and not (player.id in no_shows and penalty < 0):
                continue
            if player.id in already_applied:
                skipped.append(player.id)
                continue

            updated = player.copy()
            if player.id in attending:
                line = tracker.get(player.id)
                delta = scoring_rules.experience_for(
                    line, updated_event.participation_experience, updated_event.experience_overrides
                )
                updated.stats.kills += line.kills
                updated.stats.deaths += line.deaths
                updated.stats.headshots += line.headshots
                updated.stats.games_played += 1
                updated.match_history.append(MatchRecord(event_id=event.id, player_stats=line))
                grant_legendary_badges(updated, updated_event.awarded_badges.get(player.id, ()))
                if delta:
                    apply_experience_delta(updated, delta, rank_ladder)
                evaluate_badges(updated, badges, rank_ladder)
                gained[player.id] = delta
            else:
                apply_experience_delta(updated, penalty, rank_ladder)
                updated.experience_adjustments.append(ExperienceAdjustment(
                    amount=penalty,
                    reason=f"No-show penalty for event: {event.title or event.id}",
                    date=now,
                ))
                penalized.append(player.id)
            updated_players.append(updated)

        updated_event.status = EventStatus.COMPLETED
        updated_event.live_stats = tracker.snapshot()
        updated_event.finalization_sequence = event.finalization_sequence + 1

        applied = [p.id for p in updated_players]
        if self.exactly_once and previous_record is not None:
            applied = list(previous_record.applied_players) + applied

        record = FinalizationRecord(
            event_id=event.id,
            sequence=updated_event.finalization_sequence,
            status=FinalizationStatus.STARTED,
            started_at=now,
            scored_count=len(gained),
            penalized_count=len(penalized),
            transaction_count=len(transactions),
            applied_players=applied,
        )

        return FinalizationResult(
            updated_players=updated_players,
            new_transactions=transactions,
            updated_event=updated_event,
            no_show_ids=no_show_ids,
            record=record,
            experience_gained=gained,
            penalized_ids=penalized,
            skipped_ids=skipped,
            missing_player_ids=missing,
        )

    async def finalize(
        self,
        event: GameEvent,
        players: Sequence[Player],
        signups: Sequence[Signup],
        scoring_rules: ScoringRuleTable,
        rank_ladder: RankLadder,
        inventory: Optional[Mapping[str, InventoryItem]] = None,
        badges: Iterable[Badge] = (),
        previous_record: Optional[FinalizationRecord] = None
    ) -> FinalizationResult:
        """
        Finalize an event and persist the outcome.

        Store failures while writing players, transactions or the event are
        raised after every gathered write has settled; nothing is rolled
        back. Signup deletion failures are reported on the result instead.
        """
        result = self.preview_finalization(
            event, players, signups, scoring_rules, rank_ladder,
            inventory=inventory, badges=badges, previous_record=previous_record
        )
        record = result.record
        event_log = event_logger(logger, event.id)

        # Only players whose write lands count as applied
        record.applied_players = []
        if self.exactly_once and previous_record is not None:
            record.applied_players = list(previous_record.applied_players)
        await self.store.set_record(Collections.FINALIZATIONS, event.id, record.to_dict())
        event_log.info(
            f"Finalizing (sequence {record.sequence}): "
            f"{len(result.experience_gained)} scored, {len(result.penalized_ids)} no-show penalties, "
            f"{len(result.new_transactions)} transactions"
        )

        player_writes = [
            self.store.update_record(Collections.PLAYERS, p.to_dict()) for p in result.updated_players
        ]
        other_writes = [
            self.store.set_record(Collections.TRANSACTIONS, t.id, t.to_dict()) for t in result.new_transactions
        ]
        other_writes.append(self.store.update_record(Collections.EVENTS, result.updated_event.to_dict()))

        outcomes = await asyncio.gather(*player_writes, *other_writes, return_exceptions=True)
        player_outcomes = outcomes[:len(player_writes)]
        record.applied_players.extend(
            p.id for p, outcome in zip(result.updated_players, player_outcomes)
            if not isinstance(outcome, BaseException)
        )

        errors = [o for o in outcomes if isinstance(o, BaseException)]
        if errors:
            event_log.error(f"Finalization failed with {len(errors)} write error(s): {errors[0]}")
            try:
                await self.store.set_record(Collections.FINALIZATIONS, event.id, record.to_dict())
            except Exception as e:
                event_log.error(f"Could not record partial finalization: {e}")
            raise errors[0]

        await self._delete_signups(event.id, signups, result)

        record.status = FinalizationStatus.COMPLETED
        record.completed_at = datetime.now(timezone.utc).isoformat()
        record.deleted_signup_count = len(result.deleted_signup_ids)
        await self.store.set_record(Collections.FINALIZATIONS, event.id, record.to_dict())

        event_log.info(f"Finalized; {len(result.failed_signup_deletions)} signup deletion(s) failed")
        return result

    async def _delete_signups(self, event_id: str, signups: Sequence[Signup], result: FinalizationResult) -> None:
        event_log = event_logger(logger, event_id)
        signup_ids = []
        for signup in signups:
            if signup.event_id == event_id and signup.id not in signup_ids:
                signup_ids.append(signup.id)

        outcomes = await asyncio.gather(
            *(self.store.delete_record(Collections.SIGNUPS, sid) for sid in signup_ids),
            return_exceptions=True
        )
        for sid, outcome in zip(signup_ids, outcomes):
            if isinstance(outcome, BaseException):
                event_log.error(f"Failed to delete signup {sid}: {outcome}")
                result.failed_signup_deletions[sid] = str(outcome)
            else:
                result.deleted_signup_ids.append(sid)
