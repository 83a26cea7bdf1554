"""
Custom exceptions for club event management with admin-friendly error messages.
"""

class ClubOperationError(Exception):
    """Base exception for club event and progression errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class ValidationError(ClubOperationError):
    """Raised when admin input is rejected before any state is changed."""
    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(
            f"Invalid {field}: {reason}",
            f"❌ {reason}"
        )

class EventNotFoundError(ClubOperationError):
    """Raised when an event document does not exist."""
    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(
            f"Event '{event_id}' not found",
            f"❌ Event `{event_id}` not found!"
        )

class PlayerNotFoundError(ClubOperationError):
    """Raised when a player document does not exist."""
    def __init__(self, player_id: str):
        self.player_id = player_id
        super().__init__(
            f"Player '{player_id}' not found",
            f"❌ Player `{player_id}` not found!"
        )

class RankNotFoundError(ClubOperationError):
    """Raised when a rank or tier is not part of the ladder."""
    def __init__(self, rank_id: str):
        self.rank_id = rank_id
        super().__init__(
            f"Rank or tier '{rank_id}' not found",
            f"❌ Rank `{rank_id}` not found!"
        )

class LadderConfigurationError(ClubOperationError):
    """Raised when the rank ladder has tiers sharing a threshold."""
    def __init__(self, duplicates: dict):
        self.duplicates = duplicates
        detail = ", ".join(
            f"{threshold} XP: {', '.join(tier_ids)}"
            for threshold, tier_ids in sorted(duplicates.items())
        )
        super().__init__(
            f"Duplicate tier thresholds: {detail}",
            "❌ Two or more tiers share the same minimum XP. Fix the rank structure first."
        )

class StoreError(ClubOperationError):
    """Raised when the document store rejects an operation."""
    def __init__(self, operation: str, details: str = None):
        self.operation = operation
        super().__init__(
            f"Store error during {operation}: {details}",
            "❌ Database error occurred. Please try again later."
        )

class RecordNotFoundError(StoreError):
    """Raised when a full-replace update targets a missing document."""
    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"update {collection}/{record_id}", "record does not exist")
