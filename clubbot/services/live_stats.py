"""Per-event live counters, folded into player stats once at finalization."""

from typing import Dict, Optional

from clubbot.data_models.club import StatLine
from clubbot.utils.exceptions import ValidationError

STAT_FIELDS = ('kills', 'deaths', 'headshots')


class LiveStatsTracker:
    """Mapping of player id to partial {kills, deaths, headshots} counters."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, int]]] = None):
        self._stats: Dict[str, Dict[str, int]] = {
            player_id: dict(counters or {}) for player_id, counters in (initial or {}).items()
        }

    @classmethod
    def for_event(cls, event) -> 'LiveStatsTracker':
        return cls(event.live_stats)

    def set(self, player_id: str, stat: str, value) -> int:
        """Set a counter, clamped to a non-negative integer."""
        if stat not in STAT_FIELDS:
            raise ValidationError('stat', f"Unknown stat '{stat}'. Use one of: {', '.join(STAT_FIELDS)}.")
        try:
            clamped = max(0, int(value))
        except (TypeError, ValueError):
            raise ValidationError('value', f"'{value}' is not a whole number.")
        self._stats.setdefault(player_id, {})[stat] = clamped
        return clamped

    def increment(self, player_id: str, stat: str, amount: int = 1) -> int:
        current = self._stats.get(player_id, {}).get(stat, 0)
        return self.set(player_id, stat, current + amount)

    def decrement(self, player_id: str, stat: str, amount: int = 1) -> int:
        return self.increment(player_id, stat, -amount)

    def get(self, player_id: str) -> StatLine:
        return StatLine.from_dict(self._stats.get(player_id))

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        return {player_id: dict(counters) for player_id, counters in self._stats.items()}
