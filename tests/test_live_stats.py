"""
Unit tests for live stat counters
"""

import pytest

from clubbot.data_models.club import StatLine
from clubbot.services.live_stats import LiveStatsTracker
from clubbot.utils.exceptions import ValidationError


class TestLiveStatsTracker:

    def test_absent_player_reads_zero(self):
        assert LiveStatsTracker().get('p1') == StatLine()

    def test_partial_counters_default_missing_fields(self):
        tracker = LiveStatsTracker({'p1': {'kills': 4}})
        assert tracker.get('p1') == StatLine(kills=4, deaths=0, headshots=0)

    def test_set_clamps_to_non_negative_int(self):
        tracker = LiveStatsTracker()
        assert tracker.set('p1', 'kills', -3) == 0
        assert tracker.set('p1', 'deaths', '2') == 2
        assert tracker.set('p1', 'headshots', 2.9) == 2

    def test_decrement_never_goes_negative(self):
        tracker = LiveStatsTracker({'p1': {'kills': 1}})
        tracker.decrement('p1', 'kills', 5)
        assert tracker.get('p1').kills == 0

    def test_increment(self):
        tracker = LiveStatsTracker()
        tracker.increment('p1', 'kills')
        tracker.increment('p1', 'kills', 2)
        assert tracker.get('p1').kills == 3

    def test_rejects_unknown_stat_and_bad_value(self):
        tracker = LiveStatsTracker()
        with pytest.raises(ValidationError):
            tracker.set('p1', 'assists', 1)
        with pytest.raises(ValidationError):
            tracker.set('p1', 'kills', 'lots')
        assert tracker.snapshot() == {}

    def test_snapshot_is_a_copy(self):
        tracker = LiveStatsTracker({'p1': {'kills': 1}})
        snapshot = tracker.snapshot()
        snapshot['p1']['kills'] = 99
        assert tracker.get('p1').kills == 1
