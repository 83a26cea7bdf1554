"""
Event Operations Module

Business logic for running a club event from check-in to finalization.

Key functionality:
- check_in()/check_out(): move a player between signups and attendees
- set_payment_status()/set_discount(): attendee billing state
- record_stat(): live kills/deaths/headshots counters
- update_event_settings()/set_rental_price_override()/set_experience_override()
- preview_finalization()/finalize_event(): score the event and write the ledger

Every state change writes an audit log entry. Snapshots of scoring rules,
ranks, inventory and badges are loaded here and handed to the engine.
"""

from typing import Any, Dict, List, Optional

from clubbot.config import Config
from clubbot.data_models.club import (
    Badge, EventStatus, FinalizationRecord, GameEvent, InventoryItem, Player, Signup, StatLine
)
from clubbot.database.document_store import Collections, DocumentStore
from clubbot.services.attendance import AttendanceReconciler, TransferResult
from clubbot.services.base import BaseService
from clubbot.services.finalization import FinalizationEngine, FinalizationResult
from clubbot.services.live_stats import LiveStatsTracker
from clubbot.services.rank_ladder import RankLadder
from clubbot.services.scoring_rules import ScoringRuleTable
from clubbot.utils.exceptions import EventNotFoundError, PlayerNotFoundError, ValidationError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


class SnapshotLoader(BaseService):
    """Reads documents from the store and builds engine snapshots."""

    def __init__(self, database, store: DocumentStore, config_service=None):
        super().__init__(database)
        self.store = store
        self.config_service = config_service
        self.logger = logger

    def _setting(self, key: str, default: Any) -> Any:
        if self.config_service is None:
            return default
        return self.config_service.get(key, default)

    async def get_event(self, event_id: str) -> GameEvent:
        data = await self.store.get_record(Collections.EVENTS, event_id)
        if data is None:
            raise EventNotFoundError(event_id)
        return GameEvent.from_dict(data)

    async def save_event(self, event: GameEvent) -> None:
        await self.store.update_record(Collections.EVENTS, event.to_dict())

    async def get_player(self, player_id: str) -> Player:
        data = await self.store.get_record(Collections.PLAYERS, player_id)
        if data is None:
            raise PlayerNotFoundError(player_id)
        return Player.from_dict(data)

    async def load_players(self) -> List[Player]:
        return [Player.from_dict(d) for d in await self.store.list_records(Collections.PLAYERS)]

    async def load_signups(self, event_id: str) -> List[Signup]:
        records = await self.store.list_records(Collections.SIGNUPS, eventId=event_id)
        return [Signup.from_dict(r) for r in records]

    async def load_scoring_rules(self) -> ScoringRuleTable:
        return ScoringRuleTable.from_records(await self.store.list_records(Collections.SCORING_RULES))

    async def load_rank_ladder(self, strict: Optional[bool] = None) -> RankLadder:
        """
        Build the rank ladder snapshot.

        ``strict`` defaults to the ``ranks.strict_ladder`` setting. Tools that
        inspect or repair the ladder pass ``strict=False`` so duplicate
        thresholds can still be loaded.
        """
        if strict is None:
            strict = self._setting('ranks.strict_ladder', Config.STRICT_RANK_LADDER)
        return RankLadder.from_records(await self.store.list_records(Collections.RANKS), strict=strict)

    async def load_inventory(self) -> Dict[str, InventoryItem]:
        records = await self.store.list_records(Collections.INVENTORY)
        return {r['id']: InventoryItem.from_dict(r) for r in records}

    async def load_badges(self) -> List[Badge]:
        return [Badge.from_dict(r) for r in await self.store.list_records(Collections.BADGES)]

    async def load_finalization_record(self, event_id: str) -> Optional[FinalizationRecord]:
        data = await self.store.get_record(Collections.FINALIZATIONS, event_id)
        return FinalizationRecord.from_dict(data) if data else None


class EventOperations(SnapshotLoader):
    """
    Business logic operations for club events.

    Wraps the attendance reconciler, live stats tracker and finalization
    engine; persists the event after in-memory changes and audits each action.
    """

    def __init__(self, database, store: DocumentStore, config_service=None, exactly_once: Optional[bool] = None):
        super().__init__(database, store, config_service)
        self.reconciler = AttendanceReconciler(store)
        if exactly_once is None:
            exactly_once = self._setting('finalization.exactly_once', Config.FINALIZATION_EXACTLY_ONCE)
        self.engine = FinalizationEngine(store, exactly_once=exactly_once)

    async def create_event(
        self,
        title: str,
        date: str,
        admin_id: int,
        game_fee: float = 0,
        participation_experience: Optional[int] = None,
        **details
    ) -> GameEvent:
        """Create an Upcoming event with a store-generated id."""
        if participation_experience is None:
            participation_experience = self._setting(
                'events.default_participation_xp', Config.DEFAULT_PARTICIPATION_XP
            )
        self._validate_event_numbers(game_fee, participation_experience)

        event = GameEvent(
            id='',
            title=title,
            date=date,
            game_fee=game_fee,
            participation_experience=participation_experience,
            type=details.pop('type', 'Mission'),
            start_time=details.pop('start_time', ''),
            location=details.pop('location', ''),
            extra=details,
        )
        data = event.to_dict()
        data.pop('id')
        event.id = await self.store.create_record(Collections.EVENTS, data)

        await self.record_audit(admin_id, 'event_create', 'event', event.id, {'title': title, 'date': date})
        self.logger.info(f"Created event {event.id} '{title}' on {date}")
        return event

    @staticmethod
    def _validate_event_numbers(game_fee: Optional[float], participation_experience: Optional[int]) -> None:
        if game_fee is not None and game_fee < 0:
            raise ValidationError('gameFee', "Game fee cannot be negative.")
        if participation_experience is not None and participation_experience < 0:
            raise ValidationError('participationExperience', "Participation XP cannot be negative.")

    async def update_event_settings(
        self,
        event_id: str,
        admin_id: int,
        game_fee: Optional[float] = None,
        participation_experience: Optional[int] = None,
        status: Optional[str] = None
    ) -> GameEvent:
        self._validate_event_numbers(game_fee, participation_experience)
        if status is not None:
            try:
                status = EventStatus(status)
            except ValueError:
                raise ValidationError('status', f"Unknown event status '{status}'.")

        event = await self.get_event(event_id)
        changes = {}
        if game_fee is not None:
            event.game_fee = game_fee
            changes['gameFee'] = game_fee
        if participation_experience is not None:
            event.participation_experience = participation_experience
            changes['participationExperience'] = participation_experience
        if status is not None:
            event.status = status
            changes['status'] = status.value

        await self.save_event(event)
        await self.record_audit(admin_id, 'event_update', 'event', event_id, changes)
        return event

    async def set_rental_price_override(self, event_id: str, item_id: str, price: Optional[float], admin_id: int) -> GameEvent:
        """Set (or clear with ``None``) an event-level rental price."""
        if price is not None and price < 0:
            raise ValidationError('rentalPriceOverride', "Rental price cannot be negative.")

        event = await self.get_event(event_id)
        if price is None:
            event.rental_price_overrides.pop(item_id, None)
        else:
            event.rental_price_overrides[item_id] = price

        await self.save_event(event)
        await self.record_audit(admin_id, 'rental_price_override', 'event', event_id, {'itemId': item_id, 'price': price})
        return event

    async def set_experience_override(self, event_id: str, rule_id: str, value: Optional[int], admin_id: int) -> GameEvent:
        """Set (or clear with ``None``) an event-level scoring rule value."""
        event = await self.get_event(event_id)
        if value is None:
            event.experience_overrides.pop(rule_id, None)
        else:
            event.experience_overrides[rule_id] = int(value)

        await self.save_event(event)
        await self.record_audit(admin_id, 'experience_override', 'event', event_id, {'ruleId': rule_id, 'value': value})
        return event

    async def check_in(self, event_id: str, player_id: str, admin_id: int) -> TransferResult:
        event = await self.get_event(event_id)
        result = await self.reconciler.check_in(event, player_id)
        if result.applied:
            await self.save_event(event)
            await self.record_audit(
                admin_id, 'event_checkin', 'event', event_id,
                {'playerId': player_id, 'phase': result.phase.value}
            )
        return result

    async def check_out(self, event_id: str, player_id: str, admin_id: int) -> TransferResult:
        event = await self.get_event(event_id)
        result = await self.reconciler.check_out(event, player_id)
        if result.applied:
            await self.save_event(event)
            await self.record_audit(
                admin_id, 'event_checkout', 'event', event_id,
                {'playerId': player_id, 'phase': result.phase.value}
            )
        return result

    async def set_payment_status(self, event_id: str, player_id: str, status: str, admin_id: int) -> bool:
        event = await self.get_event(event_id)
        if not self.reconciler.set_payment_status(event, player_id, status):
            self.logger.info(f"Payment status unchanged: {player_id} not attending {event_id}")
            return False

        await self.save_event(event)
        await self.record_audit(admin_id, 'event_payment', 'event', event_id, {'playerId': player_id, 'status': status})
        return True

    async def set_discount(self, event_id: str, player_id: str, amount: float, reason: Optional[str], admin_id: int) -> bool:
        event = await self.get_event(event_id)
        if not self.reconciler.set_discount(event, player_id, amount, reason):
            return False

        await self.save_event(event)
        await self.record_audit(
            admin_id, 'event_discount', 'event', event_id,
            {'playerId': player_id, 'amount': amount}, reason=reason
        )
        return True

    async def record_stat(
        self,
        event_id: str,
        player_id: str,
        stat: str,
        value: Optional[int] = None,
        delta: Optional[int] = None
    ) -> StatLine:
        """Set a live counter to ``value`` or move it by ``delta``."""
        if (value is None) == (delta is None):
            raise ValidationError('value', "Provide either a value or a delta.")

        event = await self.get_event(event_id)
        if event.find_attendee(player_id) is None:
            raise ValidationError('player', f"{player_id} is not checked in to this event.")

        tracker = LiveStatsTracker.for_event(event)
        if value is not None:
            tracker.set(player_id, stat, value)
        else:
            tracker.increment(player_id, stat, delta)
        event.live_stats = tracker.snapshot()

        await self.save_event(event)
        return tracker.get(player_id)

    async def _finalization_inputs(self, event_id: str) -> Dict[str, Any]:
        event = await self.get_event(event_id)
        return {
            'event': event,
            'players': await self.load_players(),
            'signups': await self.load_signups(event_id),
            'scoring_rules': await self.load_scoring_rules(),
            'rank_ladder': await self.load_rank_ladder(),
            'inventory': await self.load_inventory(),
            'badges': await self.load_badges(),
            'previous_record': await self.load_finalization_record(event_id),
        }

    async def preview_finalization(self, event_id: str) -> FinalizationResult:
        """Outcome of finalizing ``event_id`` now, with nothing written."""
        inputs = await self._finalization_inputs(event_id)
        return self.engine.preview_finalization(**inputs)

    async def finalize_event(self, event_id: str, admin_id: int) -> FinalizationResult:
        inputs = await self._finalization_inputs(event_id)
        event = inputs['event']
        if event.status is EventStatus.COMPLETED:
            self.logger.warning(
                f"Event {event_id} is already completed (sequence {event.finalization_sequence}); "
                f"finalizing again"
            )

        try:
            result = await self.engine.finalize(**inputs)
        except Exception as e:
            self.logger.error(f"Finalization of {event_id} by {admin_id} failed: {e}")
            await self.record_audit(
                admin_id, 'event_finalize_failed', 'event', event_id, {'error': str(e)}
            )
            raise

        await self.record_audit(
            admin_id, 'event_finalize', 'event', event_id,
            {
                'sequence': result.record.sequence,
                'experienceGained': result.experience_gained,
                'noShows': result.no_show_ids,
                'penalized': result.penalized_ids,
                'transactions': [t.id for t in result.new_transactions],
                'failedSignupDeletions': result.failed_signup_deletions,
            }
        )
        return result
