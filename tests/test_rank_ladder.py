"""
Unit tests for tier resolution and rank structure edits
"""

import pytest

from clubbot.data_models.club import Rank, Tier
from clubbot.services.rank_ladder import RankLadder, UNRANKED_TIER, resolve_tier
from clubbot.utils.exceptions import LadderConfigurationError, RankNotFoundError, ValidationError


class TestResolveTier:
    """Highest qualifying threshold, lowest tier fallback, Unranked only when empty"""

    def test_empty_ladder_is_unranked(self):
        assert resolve_tier(5000, []) == UNRANKED_TIER
        assert resolve_tier(0, [Rank(id='empty', name='Empty')]) == UNRANKED_TIER

    def test_below_every_threshold_gets_lowest_tier(self, rank_ladder):
        tier = rank_ladder.resolve(10)
        assert tier.id == 'r_i'
        assert tier != UNRANKED_TIER

    def test_negative_experience_still_gets_lowest_tier(self, rank_ladder):
        assert rank_ladder.resolve(-200).id == 'r_i'

    def test_threshold_is_inclusive(self, rank_ladder):
        assert rank_ladder.resolve(500).id == 'r_ii'
        assert rank_ladder.resolve(499).id == 'r_i'

    def test_highest_qualifying_tier_across_ranks(self, rank_ladder):
        assert rank_ladder.resolve(1100).id == 'v_i'
        assert rank_ladder.resolve(99999).id == 'v_ii'

    def test_rank_order_in_input_does_not_matter(self):
        high = Rank(id='high', name='High', tiers=(Tier('h', 'H', 1000),))
        low = Rank(id='low', name='Low', tiers=(Tier('l', 'L', 0),))
        assert resolve_tier(1500, [low, high]).id == 'h'
        assert resolve_tier(1500, [high, low]).id == 'h'

    def test_duplicate_thresholds_resolve_in_definition_order(self):
        rank = Rank(id='dup', name='Dup', tiers=(Tier('first', 'First', 100), Tier('second', 'Second', 100)))
        assert resolve_tier(150, [rank]).id == 'first'


class TestLadderValidation:
    """Duplicate thresholds are surfaced rather than silently accepted"""

    @pytest.fixture
    def duplicate_records(self):
        return [
            {'id': 'a', 'name': 'A', 'tiers': [{'id': 'a1', 'name': 'A1', 'minExperience': 100}]},
            {'id': 'b', 'name': 'B', 'tiers': [{'id': 'b1', 'name': 'B1', 'minExperience': 100}]},
        ]

    def test_valid_ladder_passes(self, rank_ladder):
        rank_ladder.validate()
        assert rank_ladder.duplicate_thresholds() == {}

    def test_non_strict_ladder_loads_and_reports(self, duplicate_records):
        ladder = RankLadder.from_records(duplicate_records, strict=False)
        assert ladder.duplicate_thresholds() == {100: ['a1', 'b1']}
        with pytest.raises(LadderConfigurationError) as exc_info:
            ladder.validate()
        assert exc_info.value.duplicates == {100: ['a1', 'b1']}

    def test_strict_ladder_refuses_to_load(self, duplicate_records):
        with pytest.raises(LadderConfigurationError):
            RankLadder.from_records(duplicate_records, strict=True)


class TestLadderEdits:
    """delete_rank and save_tier return new ladders"""

    def test_delete_rank_removes_all_its_tiers(self, rank_ladder):
        remaining = rank_ladder.delete_rank('rank_veteran')
        assert [t.id for t in remaining.tiers] == ['r_i', 'r_ii']
        assert remaining.resolve(5000).id == 'r_ii'
        # original snapshot untouched
        assert len(rank_ladder.tiers) == 4

    def test_delete_unknown_rank(self, rank_ladder):
        with pytest.raises(RankNotFoundError):
            rank_ladder.delete_rank('rank_missing')

    def test_save_tier_adds_in_threshold_order(self, rank_ladder):
        updated = rank_ladder.save_tier('rank_recruit', Tier('r_mid', 'Recruit Mid', 300))
        assert [t.id for t in updated.get_rank('rank_recruit').tiers] == ['r_i', 'r_mid', 'r_ii']
        assert updated.resolve(350).id == 'r_mid'

    def test_save_tier_replaces_existing(self, rank_ladder):
        updated = rank_ladder.save_tier('rank_recruit', Tier('r_ii', 'Recruit II', 600))
        tiers = updated.get_rank('rank_recruit').tiers
        assert [t.min_experience for t in tiers] == [100, 600]

    def test_save_tier_rejects_negative_threshold(self, rank_ladder):
        with pytest.raises(ValidationError):
            rank_ladder.save_tier('rank_recruit', Tier('bad', 'Bad', -1))

    def test_rank_of_tier(self, rank_ladder):
        assert rank_ladder.rank_of_tier('v_ii').name == 'Veteran'
        assert rank_ladder.rank_of_tier('nope') is None
