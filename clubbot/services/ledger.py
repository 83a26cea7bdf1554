"""
Ledger transaction builders.

Fee and rental transaction ids are derived from event, player and item so
re-finalizing an event upserts the same records. Transactions are never
edited; a correction is a new transaction that negates the original.
"""

from typing import List, Mapping, Optional

from clubbot.config import Config
from clubbot.data_models.club import (
    Attendee, GameEvent, InventoryItem, Player, Transaction, TransactionType
)
from clubbot.utils.exceptions import ValidationError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


def fee_transaction_id(event_id: str, player_id: str) -> str:
    return f"fee_{event_id}_{player_id}"


def rental_transaction_id(event_id: str, player_id: str, item_id: str) -> str:
    return f"rental_{event_id}_{player_id}_{item_id}"


def correction_transaction_id(original_id: str) -> str:
    return f"correction_{original_id}"


def _money(amount: float) -> str:
    return f"{Config.CURRENCY_SYMBOL}{amount:.2f}"


def _player_label(player: Optional[Player], player_id: str) -> str:
    if player is None:
        return player_id
    return player.callsign or player.name or player_id


def rental_price(event: GameEvent, item_id: str, item: Optional[InventoryItem]) -> float:
    """Event-level override if present, else the catalog sale price."""
    override = event.rental_price_overrides.get(item_id)
    if override is not None:
        return override
    if item is None:
        logger.warning(f"Rental item '{item_id}' not in inventory and has no price override; charging 0")
        return 0
    return item.sale_price


def build_fee_transaction(event: GameEvent, attendee: Attendee, player: Optional[Player], date: str) -> Transaction:
    amount = max(0, event.game_fee - (attendee.discount_amount or 0))
    description = f"Game fee: {event.title} ({_player_label(player, attendee.player_id)})"
    if attendee.discount_amount:
        description += f", discount {_money(attendee.discount_amount)}"
        if attendee.discount_reason:
            description += f" ({attendee.discount_reason})"

    return Transaction(
        id=fee_transaction_id(event.id, attendee.player_id),
        date=date,
        type=TransactionType.EVENT_REVENUE,
        amount=amount,
        description=description,
        related_event_id=event.id,
        related_player_id=attendee.player_id,
        payment_status=attendee.payment_status,
    )


def build_rental_transactions(
    event: GameEvent,
    attendee: Attendee,
    player: Optional[Player],
    inventory: Mapping[str, InventoryItem],
    date: str
) -> List[Transaction]:
    transactions = []
    for item_id in attendee.rented_item_ids:
        item = inventory.get(item_id)
        item_name = item.name if item else item_id
        transactions.append(Transaction(
            id=rental_transaction_id(event.id, attendee.player_id, item_id),
            date=date,
            type=TransactionType.RENTAL_REVENUE,
            amount=rental_price(event, item_id, item),
            description=f"Rental: {item_name} for {event.title} ({_player_label(player, attendee.player_id)})",
            related_event_id=event.id,
            related_player_id=attendee.player_id,
            related_inventory_id=item_id,
            payment_status=attendee.payment_status,
        ))
    return transactions


def build_attendee_transactions(
    event: GameEvent,
    attendee: Attendee,
    player: Optional[Player],
    inventory: Mapping[str, InventoryItem],
    date: str
) -> List[Transaction]:
    """Fee plus one rental per item, only for paid attendees."""
    if not attendee.payment_status.is_paid:
        return []
    return [build_fee_transaction(event, attendee, player, date)] + \
        build_rental_transactions(event, attendee, player, inventory, date)


def build_correction(original: Transaction, reason: str, date: str) -> Transaction:
    """Compensating transaction that cancels ``original``."""
    if not reason or not reason.strip():
        raise ValidationError('reason', "A correction needs a reason.")
    if original.type is TransactionType.CORRECTION:
        raise ValidationError('transaction', "Corrections cannot themselves be corrected.")

    return Transaction(
        id=correction_transaction_id(original.id),
        date=date,
        type=TransactionType.CORRECTION,
        amount=-original.amount,
        description=f"Correction of {original.id}: {reason.strip()}",
        related_event_id=original.related_event_id,
        related_player_id=original.related_player_id,
        related_inventory_id=original.related_inventory_id,
        payment_status=original.payment_status,
        corrects_id=original.id,
    )
