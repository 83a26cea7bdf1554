"""
Tests for the operations layer: snapshot loading, validation before
mutation, audit trail and admin workflows
"""

import logging

import pytest
from sqlalchemy import func, select

from clubbot.data_models.club import EventStatus, GameEvent, Player, TransactionType
from clubbot.database.document_store import Collections
from clubbot.database.models import AuditLog
from clubbot.operations.admin_operations import AdminOperations, TransactionNotFoundError
from clubbot.operations.event_operations import EventOperations
from clubbot.services.attendance import TransferPhase
from clubbot.services.configuration import ConfigurationService
from clubbot.services.seed_configurations import DEFAULT_SCORING_RULES, seed_defaults
from clubbot.utils.exceptions import (
    EventNotFoundError, LadderConfigurationError, RankNotFoundError, ValidationError
)

ADMIN_ID = 4242


async def audit_actions(database):
    async with database.get_session() as session:
        result = await session.execute(select(AuditLog.action).order_by(AuditLog.id))
        return list(result.scalars().all())


async def stored_event(store, event_id='ev001'):
    return GameEvent.from_dict(await store.get_record(Collections.EVENTS, event_id))


async def stored_player(store, player_id):
    return Player.from_dict(await store.get_record(Collections.PLAYERS, player_id))


@pytest.fixture
def event_ops(database, store):
    return EventOperations(database, store, exactly_once=False)


@pytest.fixture
def admin_ops(database, store):
    return AdminOperations(database, store)


class TestEventOperations:

    async def test_check_in_persists_event_and_audits(self, event_ops, store, database, seed, make_event, signup):
        await seed(store, events=[make_event()], signups=[signup('p1', items=['g1'])])

        result = await event_ops.check_in('ev001', 'p1', ADMIN_ID)

        assert result.phase is TransferPhase.COMPLETED
        assert (await stored_event(store)).attendee_ids == ['p1']
        assert await audit_actions(database) == ['event_checkin']

    async def test_no_op_check_out_is_not_audited(self, event_ops, store, database, seed, make_event):
        await seed(store, events=[make_event()])
        result = await event_ops.check_out('ev001', 'p1', ADMIN_ID)
        assert result.phase is TransferPhase.NOT_APPLICABLE
        assert await audit_actions(database) == []

    async def test_unknown_event(self, event_ops):
        with pytest.raises(EventNotFoundError):
            await event_ops.check_in('nope', 'p1', ADMIN_ID)

    async def test_negative_price_override_rejected_before_any_change(self, event_ops, store, seed, make_event):
        await seed(store, events=[make_event(rental_price_overrides={'g1': 30})])

        with pytest.raises(ValidationError):
            await event_ops.set_rental_price_override('ev001', 'g1', -10, ADMIN_ID)

        assert (await stored_event(store)).rental_price_overrides == {'g1': 30}

    async def test_negative_fee_and_participation_rejected(self, event_ops, store, seed, make_event):
        await seed(store, events=[make_event()])
        with pytest.raises(ValidationError):
            await event_ops.update_event_settings('ev001', ADMIN_ID, game_fee=-1)
        with pytest.raises(ValidationError):
            await event_ops.update_event_settings('ev001', ADMIN_ID, participation_experience=-5)
        event = await stored_event(store)
        assert (event.game_fee, event.participation_experience) == (150, 50)

    async def test_create_event_uses_default_participation(self, event_ops, store):
        event = await event_ops.create_event('Forest Raid', '2025-04-12', ADMIN_ID, game_fee=120, location='North Field')
        loaded = await stored_event(store, event.id)
        assert loaded.title == 'Forest Raid'
        assert loaded.participation_experience == 50
        assert loaded.location == 'North Field'
        assert loaded.status is EventStatus.UPCOMING

    async def test_record_stat_requires_attendee(self, event_ops, store, seed, make_event, paid):
        await seed(store, events=[make_event(attendees=[paid('p1')])])

        line = await event_ops.record_stat('ev001', 'p1', 'kills', delta=2)
        assert line.kills == 2
        line = await event_ops.record_stat('ev001', 'p1', 'kills', delta=-5)
        assert line.kills == 0
        with pytest.raises(ValidationError):
            await event_ops.record_stat('ev001', 'p9', 'kills', value=1)

        assert (await stored_event(store)).live_stats == {'p1': {'kills': 0}}

    async def test_payment_and_finalize_flow(self, event_ops, store, database, seed, make_event,
                                             make_player, signup):
        await seed(store, events=[make_event()], players=[make_player('p1'), make_player('p2', experience=30)],
                   signups=[signup('p1'), signup('p2')])
        await event_ops.check_in('ev001', 'p1', ADMIN_ID)
        await event_ops.set_payment_status('ev001', 'p1', 'Paid (Cash)', ADMIN_ID)
        await event_ops.record_stat('ev001', 'p1', 'kills', value=3)
        await event_ops.record_stat('ev001', 'p1', 'headshots', value=1)
        await event_ops.record_stat('ev001', 'p1', 'deaths', value=2)

        preview = await event_ops.preview_finalization('ev001')
        assert preview.experience_gained == {'p1': 95}
        assert (await stored_player(store, 'p1')).experience == 0

        result = await event_ops.finalize_event('ev001', ADMIN_ID)

        assert result.no_show_ids == ['p2']
        assert (await stored_player(store, 'p1')).experience == 95
        assert (await stored_player(store, 'p2')).experience == 15
        fee = await store.get_record(Collections.TRANSACTIONS, 'fee_ev001_p1')
        assert fee['paymentStatus'] == 'Paid (Cash)'
        assert (await audit_actions(database))[-1] == 'event_finalize'

    async def test_experience_override_applies_to_one_event(self, event_ops, store, seed, make_event,
                                                            make_player, paid):
        stats = {'p1': {'kills': 3}}
        await seed(store,
                   events=[make_event(attendees=[paid('p1')], live_stats=stats),
                           make_event('ev002', attendees=[paid('p1')], live_stats=stats)],
                   players=[make_player('p1')])

        await event_ops.set_experience_override('ev001', 'g_kill', 20, ADMIN_ID)

        assert (await event_ops.preview_finalization('ev001')).experience_gained == {'p1': 110}
        assert (await event_ops.preview_finalization('ev002')).experience_gained == {'p1': 80}

        await event_ops.set_experience_override('ev001', 'g_kill', None, ADMIN_ID)
        assert (await stored_event(store)).experience_overrides == {}

    async def test_discount_flows_into_fee(self, event_ops, store, seed, make_event, make_player, paid):
        await seed(store, events=[make_event(attendees=[paid('p1')])], players=[make_player('p1')])

        assert await event_ops.set_discount('ev001', 'p1', 40, 'volunteer marshal', ADMIN_ID)
        assert not await event_ops.set_discount('ev001', 'p9', 10, None, ADMIN_ID)
        await event_ops.finalize_event('ev001', ADMIN_ID)

        fee = await store.get_record(Collections.TRANSACTIONS, 'fee_ev001_p1')
        assert fee['amount'] == 110

    async def test_refinalizing_completed_event_warns(self, event_ops, store, seed, make_event, make_player,
                                                      paid, caplog):
        await seed(store, events=[make_event(attendees=[paid('p1')])], players=[make_player('p1')])
        await event_ops.finalize_event('ev001', ADMIN_ID)

        with caplog.at_level(logging.WARNING):
            await event_ops.finalize_event('ev001', ADMIN_ID)

        assert 'already completed' in caplog.text
        assert (await stored_player(store, 'p1')).experience == 100

    async def test_exactly_once_setting_from_configuration(self, database, store, seed, make_event,
                                                           make_player, paid):
        config_service = ConfigurationService(database)
        await config_service.set('finalization.exactly_once', True, ADMIN_ID)
        ops = EventOperations(database, store, config_service)
        await seed(store, events=[make_event(attendees=[paid('p1')])], players=[make_player('p1')])

        await ops.finalize_event('ev001', ADMIN_ID)
        second = await ops.finalize_event('ev001', ADMIN_ID)

        assert second.skipped_ids == ['p1']
        assert (await stored_player(store, 'p1')).experience == 50


class TestAdminOperations:

    async def test_award_experience_persists_and_audits(self, admin_ops, store, database, seed, make_player):
        await seed(store, players=[make_player('p1', experience=450)])

        updated = await admin_ops.award_experience('p1', 100, 'Marshal help', ADMIN_ID)

        loaded = await stored_player(store, 'p1')
        assert loaded.experience == 550
        assert loaded.rank.id == 'r_ii'
        assert loaded.experience_adjustments[0].reason == 'Marshal help'
        assert updated.experience == 550
        assert await audit_actions(database) == ['award_xp']

    async def test_empty_reason_rejected_without_write(self, admin_ops, store, seed, make_player):
        await seed(store, players=[make_player('p1', experience=450)])
        with pytest.raises(ValidationError):
            await admin_ops.award_experience('p1', 100, '   ', ADMIN_ID)
        assert (await stored_player(store, 'p1')).experience == 450

    async def test_rank_deletion_does_not_recompute_cached_ranks(self, admin_ops, store, seed, make_player,
                                                                 rank_ladder):
        veteran = make_player('p1', experience=1100)
        veteran.rank = rank_ladder.resolve(1100)
        await seed(store, players=[veteran])

        deleted = await admin_ops.delete_rank('rank_veteran', ADMIN_ID)

        assert [t.id for t in deleted.tiers] == ['v_i', 'v_ii']
        assert await store.get_record(Collections.RANKS, 'rank_veteran') is None
        assert (await stored_player(store, 'p1')).rank.id == 'v_i'

        await admin_ops.award_experience('p1', 5, 'Range day', ADMIN_ID)
        assert (await stored_player(store, 'p1')).rank.id == 'r_ii'

    async def test_delete_unknown_rank(self, admin_ops, store, seed):
        await seed(store)
        with pytest.raises(RankNotFoundError):
            await admin_ops.delete_rank('rank_missing', ADMIN_ID)

    async def test_save_tier_validates_threshold(self, admin_ops, store, seed):
        await seed(store)
        with pytest.raises(ValidationError):
            await admin_ops.save_tier('rank_recruit', {'id': 'r_bad', 'name': 'Bad', 'minExperience': -10}, ADMIN_ID)

        rank = await admin_ops.save_tier('rank_recruit', {'id': 'r_iii', 'name': 'Recruit III', 'minExperience': 800}, ADMIN_ID)
        assert [t.id for t in rank.tiers] == ['r_i', 'r_ii', 'r_iii']
        stored = await store.get_record(Collections.RANKS, 'rank_recruit')
        assert [t['id'] for t in stored['tiers']] == ['r_i', 'r_ii', 'r_iii']

    async def test_validate_rank_ladder_reports_duplicates(self, admin_ops, store, seed):
        await seed(store, ranks=[
            {'id': 'a', 'name': 'A', 'tiers': [{'id': 'a1', 'name': 'A1', 'minExperience': 0}]},
            {'id': 'b', 'name': 'B', 'tiers': [{'id': 'b1', 'name': 'B1', 'minExperience': 0}]},
        ])
        assert await admin_ops.validate_rank_ladder() == {0: ['a1', 'b1']}

    async def test_strict_ladder_can_still_be_inspected_and_repaired(self, database, store, seed, make_player):
        config_service = ConfigurationService(database)
        await config_service.set('ranks.strict_ladder', True, ADMIN_ID)
        ops = AdminOperations(database, store, config_service)
        await seed(store, players=[make_player('p1')], ranks=[
            {'id': 'a', 'name': 'A', 'tiers': [{'id': 'a1', 'name': 'A1', 'minExperience': 0}]},
            {'id': 'b', 'name': 'B', 'tiers': [{'id': 'b1', 'name': 'B1', 'minExperience': 0}]},
        ])

        with pytest.raises(LadderConfigurationError):
            await ops.award_experience('p1', 10, 'Range day', ADMIN_ID)
        assert await ops.validate_rank_ladder() == {0: ['a1', 'b1']}

        await ops.save_tier('b', {'id': 'b1', 'name': 'B1', 'minExperience': 500}, ADMIN_ID)
        assert await ops.validate_rank_ladder() == {}
        await ops.delete_rank('b', ADMIN_ID)

        updated = await ops.award_experience('p1', 10, 'Range day', ADMIN_ID)
        assert updated.rank.id == 'a1'

    async def test_legendary_badge_awarded_once(self, admin_ops, store, seed, make_player):
        await seed(store, players=[make_player('p1')])
        assert await admin_ops.award_legendary_badge('p1', 'lb_founder', ADMIN_ID) is True
        assert await admin_ops.award_legendary_badge('p1', 'lb_founder', ADMIN_ID) is False
        assert (await stored_player(store, 'p1')).legendary_badges == ['lb_founder']

    async def test_correct_transaction_writes_compensating_entry(self, admin_ops, store):
        await store.set_record(Collections.TRANSACTIONS, 'fee_ev001_p1', {
            'id': 'fee_ev001_p1', 'date': '2025-03-01', 'type': 'Event Revenue', 'amount': 150,
            'description': 'Game fee', 'relatedEventId': 'ev001', 'relatedPlayerId': 'p1',
        })

        correction = await admin_ops.correct_transaction('fee_ev001_p1', 'double charge', ADMIN_ID)

        assert correction.type is TransactionType.CORRECTION
        stored = await store.get_record(Collections.TRANSACTIONS, 'correction_fee_ev001_p1')
        assert stored['amount'] == -150
        assert stored['correctsId'] == 'fee_ev001_p1'
        original = await store.get_record(Collections.TRANSACTIONS, 'fee_ev001_p1')
        assert original['amount'] == 150

    async def test_correct_missing_transaction(self, admin_ops):
        with pytest.raises(TransactionNotFoundError):
            await admin_ops.correct_transaction('fee_nope', 'typo', ADMIN_ID)

    async def test_set_scoring_rule_keeps_existing_name(self, admin_ops, store, seed):
        await seed(store)
        rule = await admin_ops.set_scoring_rule('g_kill', 12, ADMIN_ID)
        assert (rule.name, rule.experience) == ('Kill', 12)
        assert (await admin_ops.load_scoring_rules()).get('g_kill').experience == 12


class TestConfiguration:

    async def test_set_get_and_audit(self, database):
        service = ConfigurationService(database)
        await service.load_all()
        await service.set('events.default_participation_xp', 75, ADMIN_ID)
        await service.set('events.default_participation_xp', 80, ADMIN_ID)

        assert service.get('events.default_participation_xp') == 80
        assert service.get_by_category('events') == {'default_participation_xp': 80}
        assert await audit_actions(database) == ['config_set', 'config_set']

        reloaded = ConfigurationService(database)
        await reloaded.load_all()
        assert reloaded.list_all() == {'events.default_participation_xp': 80}

    async def test_seed_defaults_is_idempotent(self, database, store):
        service = ConfigurationService(database)
        await service.load_all()

        first = await seed_defaults(service, store)
        second = await seed_defaults(service, store)

        assert first['scoring_rules'] == len(DEFAULT_SCORING_RULES)
        assert second == {'configs': 0, 'scoring_rules': 0}
        rules = {r['id']: r['experience'] for r in await store.list_records(Collections.SCORING_RULES)}
        assert rules['g_no_show_penalty'] == -50
        async with database.get_session() as session:
            count = await session.scalar(select(func.count(AuditLog.id)))
        assert count == first['configs']
