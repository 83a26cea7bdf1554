"""
Tests for manual experience awards and badge evaluation
"""

import pytest

from clubbot.data_models.club import Badge, PlayerStats
from clubbot.services.progression import award_experience, evaluate_badges
from clubbot.utils.exceptions import ValidationError


class TestAwardExperience:

    def test_award_logs_adjustment_and_recomputes_rank(self, make_player, rank_ladder):
        player = make_player('p1', experience=450)

        updated = award_experience(player, 100, 'Great sportsmanship', rank_ladder, date='2025-01-15T12:00:00Z')

        assert updated.experience == 550
        assert updated.rank.id == 'r_ii'
        assert len(updated.experience_adjustments) == 1
        adjustment = updated.experience_adjustments[0]
        assert (adjustment.amount, adjustment.reason) == (100, 'Great sportsmanship')
        # input snapshot untouched
        assert player.experience == 450
        assert player.experience_adjustments == []

    def test_reason_required(self, make_player, rank_ladder):
        with pytest.raises(ValidationError):
            award_experience(make_player('p1'), 10, '', rank_ladder)

    def test_zero_amount_rejected(self, make_player, rank_ladder):
        with pytest.raises(ValidationError):
            award_experience(make_player('p1'), 0, 'nothing', rank_ladder)


class TestBadgeEvaluation:

    @pytest.fixture
    def badges(self):
        return [
            Badge('b_kills', 'Marksman', 'kills', 10),
            Badge('b_games', 'Regular', 'gamesPlayed', 5),
            Badge('b_vet', 'Veteran Operator', 'rank', 'Veteran'),
            Badge('b_custom', 'Founder', 'custom', None),
        ]

    def test_numeric_criteria_use_greater_or_equal(self, make_player, rank_ladder, badges):
        player = make_player('p1')
        player.stats = PlayerStats(kills=10, games_played=4)

        assert evaluate_badges(player, badges, rank_ladder) == ['b_kills']
        assert player.badges == ['b_kills']

    def test_rank_criteria_matches_rank_name(self, make_player, rank_ladder, badges):
        player = make_player('p1', experience=1300)
        player.rank = rank_ladder.resolve(1300)
        assert 'b_vet' in evaluate_badges(player, badges, rank_ladder)

    def test_custom_never_awarded_and_held_badges_skipped(self, make_player, rank_ladder, badges):
        player = make_player('p1', badges=['b_kills'])
        player.stats = PlayerStats(kills=50, games_played=50, experience=5000)
        player.rank = rank_ladder.resolve(5000)

        earned = evaluate_badges(player, badges, rank_ladder)

        assert earned == ['b_games', 'b_vet']
        assert player.badges.count('b_kills') == 1
        assert 'b_custom' not in player.badges
