"""
Attendance reconciliation between Signups and Attendees.

Check-in and check-out move one player's record across two collections:
signups live in the store, attendees are embedded in the event. The event
in memory is updated first and the store write follows; the result names
the phase reached so the caller can reconcile a failed write. Persisting
the event itself is left to the caller.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from clubbot.data_models.club import Attendee, GameEvent, PaymentStatus, Signup
from clubbot.database.document_store import Collections, DocumentStore
from clubbot.utils.exceptions import ValidationError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


class TransferPhase(Enum):
    NOT_APPLICABLE = "not_applicable"
    COMPLETED = "completed"
    PERSIST_FAILED = "persist_failed"


@dataclass
class TransferResult:
    """Outcome of a check-in or check-out."""
    phase: TransferPhase
    player_id: str
    attendee: Optional[Attendee] = None
    signup: Optional[Signup] = None
    error: Optional[Exception] = None

    @property
    def applied(self) -> bool:
        """True when the in-memory event was changed."""
        return self.phase is not TransferPhase.NOT_APPLICABLE

    @property
    def ok(self) -> bool:
        return self.phase is TransferPhase.COMPLETED


class AttendanceReconciler:
    """Keeps a player in at most one of {Signup, Attendee} per event."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def find_signup(self, event_id: str, player_id: str) -> Optional[Signup]:
        records = await self.store.list_records(Collections.SIGNUPS, eventId=event_id, playerId=player_id)
        return Signup.from_dict(records[0]) if records else None

    async def check_in(self, event: GameEvent, player_id: str) -> TransferResult:
        """
        Turn the player's Signup into an unpaid Attendee.

        No-op when the player has no signup or is already checked in. The
        attendee is appended before the signup deletion is attempted and is
        kept even if that deletion fails.
        """
        if event.find_attendee(player_id):
            logger.info(f"Check-in skipped: {player_id} already attending {event.id}")
            return TransferResult(TransferPhase.NOT_APPLICABLE, player_id)

        signup = await self.find_signup(event.id, player_id)
        if signup is None:
            logger.info(f"Check-in skipped: no signup for {player_id} on {event.id}")
            return TransferResult(TransferPhase.NOT_APPLICABLE, player_id)

        attendee = Attendee(
            player_id=player_id,
            payment_status=PaymentStatus.UNPAID,
            rented_item_ids=list(signup.requested_item_ids),
            note=signup.note,
        )
        event.attendees.append(attendee)

        try:
            await self.store.delete_record(Collections.SIGNUPS, signup.id)
        except Exception as e:
            logger.error(f"Checked in {player_id} on {event.id} but signup {signup.id} was not deleted: {e}")
            return TransferResult(TransferPhase.PERSIST_FAILED, player_id, attendee, signup, e)

        logger.info(f"Checked in {player_id} on {event.id}")
        return TransferResult(TransferPhase.COMPLETED, player_id, attendee, signup)

    async def check_out(self, event: GameEvent, player_id: str) -> TransferResult:
        """
        Turn an Attendee back into a Signup keyed ``eventId_playerId``.

        No-op when the player is not attending. The attendee is removed from
        the event regardless of whether the signup write succeeds.
        """
        attendee = event.find_attendee(player_id)
        if attendee is None:
            logger.info(f"Check-out skipped: {player_id} not attending {event.id}")
            return TransferResult(TransferPhase.NOT_APPLICABLE, player_id)

        signup = Signup(
            event_id=event.id,
            player_id=player_id,
            requested_item_ids=list(attendee.rented_item_ids),
            note=attendee.note,
        )
        event.attendees.remove(attendee)

        try:
            await self.store.set_record(Collections.SIGNUPS, signup.id, signup.to_dict())
        except Exception as e:
            logger.error(f"Checked out {player_id} from {event.id} but signup was not written: {e}")
            return TransferResult(TransferPhase.PERSIST_FAILED, player_id, attendee, signup, e)

        logger.info(f"Checked out {player_id} from {event.id}")
        return TransferResult(TransferPhase.COMPLETED, player_id, attendee, signup)

    @staticmethod
    def set_payment_status(event: GameEvent, player_id: str, status: Union[PaymentStatus, str]) -> bool:
        """Update an attendee's payment status; False when not attending."""
        try:
            status = PaymentStatus(status)
        except ValueError:
            valid = ', '.join(s.value for s in PaymentStatus)
            raise ValidationError('paymentStatus', f"Unknown payment status '{status}'. Use one of: {valid}.")

        attendee = event.find_attendee(player_id)
        if attendee is None:
            return False
        attendee.payment_status = status
        return True

    @staticmethod
    def set_discount(event: GameEvent, player_id: str, amount: float, reason: Optional[str] = None) -> bool:
        """Set the fee discount for an attendee; False when not attending."""
        if amount < 0:
            raise ValidationError('discountAmount', "Discount cannot be negative.")

        attendee = event.find_attendee(player_id)
        if attendee is None:
            return False
        attendee.discount_amount = amount
        attendee.discount_reason = reason if amount else None
        return True
