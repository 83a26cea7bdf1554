"""
Club data models for event finalization and player progression.

Documents are stored as camelCase dictionaries; these dataclasses are the
in-process shape. Every record round-trips through ``to_dict``/``from_dict``
and keeps unknown profile fields in ``extra`` so partial writes from admin
edits are never lost.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class PaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PAID_CARD = "Paid (Card)"
    PAID_CASH = "Paid (Cash)"

    @property
    def is_paid(self) -> bool:
        return self.value.startswith("Paid")


class EventStatus(str, Enum):
    UPCOMING = "Upcoming"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TransactionType(str, Enum):
    EVENT_REVENUE = "Event Revenue"
    RENTAL_REVENUE = "Rental Revenue"
    RETAIL_REVENUE = "Retail Revenue"
    EXPENSE = "Expense"
    CORRECTION = "Correction"


class FinalizationStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"


def signup_id(event_id: str, player_id: str) -> str:
    """Composite signup key, stable across check-out/check-in cycles."""
    return f"{event_id}_{player_id}"


@dataclass(frozen=True)
class StatLine:
    """Per-event raw counters for one player."""
    kills: int = 0
    deaths: int = 0
    headshots: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'StatLine':
        data = data or {}
        return cls(
            kills=int(data.get('kills') or 0),
            deaths=int(data.get('deaths') or 0),
            headshots=int(data.get('headshots') or 0),
        )

    def to_dict(self) -> Dict[str, int]:
        return {'kills': self.kills, 'deaths': self.deaths, 'headshots': self.headshots}


@dataclass
class PlayerStats:
    kills: int = 0
    deaths: int = 0
    headshots: int = 0
    games_played: int = 0
    experience: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PlayerStats':
        data = data or {}
        # Older documents store experience under "xp"
        experience = data.get('experience', data.get('xp', 0))
        return cls(
            kills=int(data.get('kills') or 0),
            deaths=int(data.get('deaths') or 0),
            headshots=int(data.get('headshots') or 0),
            games_played=int(data.get('gamesPlayed') or 0),
            experience=int(experience or 0),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            'kills': self.kills,
            'deaths': self.deaths,
            'headshots': self.headshots,
            'gamesPlayed': self.games_played,
            'experience': self.experience,
        }


@dataclass(frozen=True)
class Tier:
    id: str
    name: str
    min_experience: int
    perks: Tuple[str, ...] = ()
    icon_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Tier':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            min_experience=int(data.get('minExperience', data.get('minXp', 0)) or 0),
            perks=tuple(data.get('perks') or ()),
            icon_url=data.get('iconUrl', ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'minExperience': self.min_experience,
            'perks': list(self.perks),
            'iconUrl': self.icon_url,
        }


@dataclass(frozen=True)
class Rank:
    id: str
    name: str
    description: str = ""
    badge_url: str = ""
    tiers: Tuple[Tier, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Rank':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            description=data.get('description', ''),
            badge_url=data.get('rankBadgeUrl', ''),
            tiers=tuple(Tier.from_dict(t) for t in data.get('tiers') or () if t),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'rankBadgeUrl': self.badge_url,
            'tiers': [t.to_dict() for t in self.tiers],
        }


@dataclass(frozen=True)
class MatchRecord:
    """Single match history entry appended at finalization."""
    event_id: str
    player_stats: StatLine

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatchRecord':
        return cls(event_id=data['eventId'], player_stats=StatLine.from_dict(data.get('playerStats')))

    def to_dict(self) -> Dict[str, Any]:
        return {'eventId': self.event_id, 'playerStats': self.player_stats.to_dict()}


@dataclass(frozen=True)
class ExperienceAdjustment:
    """Audit entry for experience changed outside normal scoring."""
    amount: int
    reason: str
    date: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExperienceAdjustment':
        return cls(amount=int(data['amount']), reason=data.get('reason', ''), date=data.get('date', ''))

    def to_dict(self) -> Dict[str, Any]:
        return {'amount': self.amount, 'reason': self.reason, 'date': self.date}


_PLAYER_KEYS = {'id', 'name', 'callsign', 'stats', 'rank', 'matchHistory',
                'experienceAdjustments', 'badges', 'legendaryBadges'}


@dataclass
class Player:
    id: str
    name: str = ""
    callsign: str = ""
    stats: PlayerStats = field(default_factory=PlayerStats)
    rank: Optional[Tier] = None
    match_history: List[MatchRecord] = field(default_factory=list)
    experience_adjustments: List[ExperienceAdjustment] = field(default_factory=list)
    badges: List[str] = field(default_factory=list)
    legendary_badges: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def experience(self) -> int:
        return self.stats.experience

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        rank = data.get('rank')
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            callsign=data.get('callsign', ''),
            stats=PlayerStats.from_dict(data.get('stats')),
            rank=Tier.from_dict(rank) if rank else None,
            match_history=[MatchRecord.from_dict(m) for m in data.get('matchHistory') or []],
            experience_adjustments=[
                ExperienceAdjustment.from_dict(a) for a in data.get('experienceAdjustments') or []
            ],
            badges=list(data.get('badges') or []),
            legendary_badges=list(data.get('legendaryBadges') or []),
            extra={k: v for k, v in data.items() if k not in _PLAYER_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            'id': self.id,
            'name': self.name,
            'callsign': self.callsign,
            'stats': self.stats.to_dict(),
            'rank': self.rank.to_dict() if self.rank else None,
            'matchHistory': [m.to_dict() for m in self.match_history],
            'experienceAdjustments': [a.to_dict() for a in self.experience_adjustments],
            'badges': list(self.badges),
            'legendaryBadges': list(self.legendary_badges),
        })
        return data

    def copy(self) -> 'Player':
        return replace(
            self,
            stats=replace(self.stats),
            match_history=list(self.match_history),
            experience_adjustments=list(self.experience_adjustments),
            badges=list(self.badges),
            legendary_badges=list(self.legendary_badges),
            extra=dict(self.extra),
        )


@dataclass
class Attendee:
    """Checked-in, billable participant embedded in an event."""
    player_id: str
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    rented_item_ids: List[str] = field(default_factory=list)
    note: Optional[str] = None
    discount_amount: float = 0
    discount_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Attendee':
        return cls(
            player_id=data['playerId'],
            payment_status=PaymentStatus(data.get('paymentStatus', PaymentStatus.UNPAID.value)),
            rented_item_ids=list(data.get('rentedItemIds') or data.get('rentedGearIds') or []),
            note=data.get('note'),
            discount_amount=data.get('discountAmount') or 0,
            discount_reason=data.get('discountReason'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'playerId': self.player_id,
            'paymentStatus': self.payment_status.value,
            'rentedItemIds': list(self.rented_item_ids),
        }
        if self.note is not None:
            data['note'] = self.note
        if self.discount_amount:
            data['discountAmount'] = self.discount_amount
            data['discountReason'] = self.discount_reason
        return data


@dataclass
class Signup:
    """A player's recorded intent to attend, not yet checked in."""
    event_id: str
    player_id: str
    requested_item_ids: List[str] = field(default_factory=list)
    note: Optional[str] = None
    # Signups created by players may carry a store-generated id
    doc_id: Optional[str] = field(default=None, compare=False)

    @property
    def id(self) -> str:
        return self.doc_id or signup_id(self.event_id, self.player_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Signup':
        return cls(
            event_id=data['eventId'],
            player_id=data['playerId'],
            requested_item_ids=list(data.get('requestedItemIds') or data.get('requestedGearIds') or []),
            note=data.get('note'),
            doc_id=data.get('id'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'eventId': self.event_id,
            'playerId': self.player_id,
            'requestedItemIds': list(self.requested_item_ids),
        }
        if self.note is not None:
            data['note'] = self.note
        return data


_EVENT_KEYS = {'id', 'title', 'type', 'date', 'startTime', 'location', 'status',
               'participationExperience', 'gameFee', 'attendees', 'liveStats',
               'experienceOverrides', 'rentalPriceOverrides', 'gearForRent',
               'eventBadges', 'awardedBadges', 'finalizationSequence'}


@dataclass
class GameEvent:
    id: str
    title: str = ""
    type: str = "Mission"
    date: str = ""
    start_time: str = ""
    location: str = ""
    status: EventStatus = EventStatus.UPCOMING
    participation_experience: int = 0
    game_fee: float = 0
    attendees: List[Attendee] = field(default_factory=list)
    live_stats: Dict[str, Dict[str, int]] = field(default_factory=dict)
    experience_overrides: Dict[str, int] = field(default_factory=dict)
    rental_price_overrides: Dict[str, float] = field(default_factory=dict)
    gear_for_rent: List[str] = field(default_factory=list)
    event_badges: List[str] = field(default_factory=list)
    awarded_badges: Dict[str, List[str]] = field(default_factory=dict)
    finalization_sequence: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    def find_attendee(self, player_id: str) -> Optional[Attendee]:
        return next((a for a in self.attendees if a.player_id == player_id), None)

    @property
    def attendee_ids(self) -> List[str]:
        return [a.player_id for a in self.attendees]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameEvent':
        participation = data.get('participationExperience', data.get('participationXp', 0))
        return cls(
            id=data['id'],
            title=data.get('title', ''),
            type=data.get('type', 'Mission'),
            date=data.get('date', ''),
            start_time=data.get('startTime', ''),
            location=data.get('location', ''),
            status=EventStatus(data.get('status', EventStatus.UPCOMING.value)),
            participation_experience=int(participation or 0),
            game_fee=data.get('gameFee') or 0,
            attendees=[Attendee.from_dict(a) for a in data.get('attendees') or []],
            live_stats={pid: dict(s or {}) for pid, s in (data.get('liveStats') or {}).items()},
            experience_overrides=dict(data.get('experienceOverrides') or data.get('xpOverrides') or {}),
            rental_price_overrides=dict(data.get('rentalPriceOverrides') or {}),
            gear_for_rent=list(data.get('gearForRent') or []),
            event_badges=list(data.get('eventBadges') or []),
            awarded_badges={pid: list(b) for pid, b in (data.get('awardedBadges') or {}).items()},
            finalization_sequence=int(data.get('finalizationSequence') or 0),
            extra={k: v for k, v in data.items() if k not in _EVENT_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            'id': self.id,
            'title': self.title,
            'type': self.type,
            'date': self.date,
            'startTime': self.start_time,
            'location': self.location,
            'status': self.status.value,
            'participationExperience': self.participation_experience,
            'gameFee': self.game_fee,
            'attendees': [a.to_dict() for a in self.attendees],
            'liveStats': {pid: dict(s) for pid, s in self.live_stats.items()},
            'experienceOverrides': dict(self.experience_overrides),
            'rentalPriceOverrides': dict(self.rental_price_overrides),
            'gearForRent': list(self.gear_for_rent),
            'eventBadges': list(self.event_badges),
            'awardedBadges': {pid: list(b) for pid, b in self.awarded_badges.items()},
            'finalizationSequence': self.finalization_sequence,
        })
        return data

    def copy(self) -> 'GameEvent':
        return GameEvent.from_dict(self.to_dict())


@dataclass(frozen=True)
class Transaction:
    """Immutable ledger record."""
    id: str
    date: str
    type: TransactionType
    amount: float
    description: str
    related_event_id: Optional[str] = None
    related_player_id: Optional[str] = None
    related_inventory_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    corrects_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        status = data.get('paymentStatus')
        return cls(
            id=data['id'],
            date=data.get('date', ''),
            type=TransactionType(data['type']),
            amount=data.get('amount', 0),
            description=data.get('description', ''),
            related_event_id=data.get('relatedEventId'),
            related_player_id=data.get('relatedPlayerId'),
            related_inventory_id=data.get('relatedInventoryId'),
            payment_status=PaymentStatus(status) if status else None,
            corrects_id=data.get('correctsId'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'date': self.date,
            'type': self.type.value,
            'amount': self.amount,
            'description': self.description,
        }
        optional = {
            'relatedEventId': self.related_event_id,
            'relatedPlayerId': self.related_player_id,
            'relatedInventoryId': self.related_inventory_id,
            'paymentStatus': self.payment_status.value if self.payment_status else None,
            'correctsId': self.corrects_id,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass(frozen=True)
class InventoryItem:
    id: str
    name: str
    sale_price: float = 0
    is_rental: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InventoryItem':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            sale_price=data.get('salePrice') or 0,
            is_rental=bool(data.get('isRental', False)),
        )


@dataclass(frozen=True)
class ScoringRule:
    """Experience delta for a named rule; sign is significant."""
    id: str
    name: str
    experience: int
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoringRule':
        return cls(
            id=data['id'],
            name=data.get('name', data['id']),
            experience=int(data.get('experience', data.get('xp', 0)) or 0),
            description=data.get('description', ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'description': self.description, 'experience': self.experience}


@dataclass(frozen=True)
class Badge:
    """Automatically awarded badge with a single criterion."""
    id: str
    name: str
    criteria_type: str
    criteria_value: Any
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Badge':
        criteria = data.get('criteria') or {}
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            criteria_type=criteria.get('type', 'custom'),
            criteria_value=criteria.get('value'),
            description=data.get('description', ''),
        )


@dataclass
class FinalizationRecord:
    """Progress marker distinguishing partial from complete finalization."""
    event_id: str
    sequence: int
    status: FinalizationStatus = FinalizationStatus.STARTED
    started_at: str = ""
    completed_at: Optional[str] = None
    scored_count: int = 0
    penalized_count: int = 0
    transaction_count: int = 0
    deleted_signup_count: int = 0
    applied_players: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FinalizationRecord':
        return cls(
            event_id=data['eventId'],
            sequence=int(data.get('sequence') or 0),
            status=FinalizationStatus(data.get('status', FinalizationStatus.STARTED.value)),
            started_at=data.get('startedAt', ''),
            completed_at=data.get('completedAt'),
            scored_count=int(data.get('scoredCount') or 0),
            penalized_count=int(data.get('penalizedCount') or 0),
            transaction_count=int(data.get('transactionCount') or 0),
            deleted_signup_count=int(data.get('deletedSignupCount') or 0),
            applied_players=list(data.get('appliedPlayers') or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.event_id,
            'eventId': self.event_id,
            'sequence': self.sequence,
            'status': self.status.value,
            'startedAt': self.started_at,
            'completedAt': self.completed_at,
            'scoredCount': self.scored_count,
            'penalizedCount': self.penalized_count,
            'transactionCount': self.transaction_count,
            'deletedSignupCount': self.deleted_signup_count,
            'appliedPlayers': list(self.applied_players),
        }
