"""
Pytest configuration and fixtures for the club event bot tests

Every test gets its own SQLite file so the real SqlDocumentStore is exercised.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from clubbot.data_models.club import (
    Attendee, GameEvent, PaymentStatus, Player, PlayerStats, Signup
)
from clubbot.database.database import Database
from clubbot.database.document_store import Collections, SqlDocumentStore
from clubbot.services.rank_ladder import RankLadder
from clubbot.services.scoring_rules import ScoringRuleTable
from clubbot.utils.exceptions import StoreError


RANK_RECORDS = [
    {
        'id': 'rank_recruit',
        'name': 'Recruit',
        'tiers': [
            {'id': 'r_i', 'name': 'Recruit I', 'minExperience': 100},
            {'id': 'r_ii', 'name': 'Recruit II', 'minExperience': 500},
        ],
    },
    {
        'id': 'rank_veteran',
        'name': 'Veteran',
        'tiers': [
            {'id': 'v_i', 'name': 'Veteran I', 'minExperience': 1001},
            {'id': 'v_ii', 'name': 'Veteran II', 'minExperience': 1201},
        ],
    },
]

SCORING_RULE_RECORDS = [
    {'id': 'g_kill', 'name': 'Kill', 'experience': 10},
    {'id': 'g_headshot', 'name': 'Headshot', 'experience': 25},
    {'id': 'g_death', 'name': 'Death', 'experience': -5},
    {'id': 'g_no_show_penalty', 'name': 'No-Show Penalty', 'experience': -15},
]


class FailingStore(SqlDocumentStore):
    """SqlDocumentStore that rejects selected writes.

    ``fail_on`` holds ``(method, collection)`` or ``(method, collection, id)``
    tuples, with method one of 'set', 'update', 'delete'.
    """

    def __init__(self, database, fail_on=()):
        super().__init__(database)
        self.fail_on = set(fail_on)

    def _check(self, method, collection, record_id):
        if (method, collection) in self.fail_on or (method, collection, record_id) in self.fail_on:
            raise StoreError(f"{method} {collection}/{record_id}", "simulated outage")

    async def set_record(self, collection, record_id, data):
        self._check('set', collection, record_id)
        await super().set_record(collection, record_id, data)

    async def update_record(self, collection, record):
        self._check('update', collection, record.get('id'))
        await super().update_record(collection, record)

    async def delete_record(self, collection, record_id):
        self._check('delete', collection, record_id)
        await super().delete_record(collection, record_id)


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'club_test.db'}")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def store(database):
    return SqlDocumentStore(database)


@pytest.fixture
def failing_store(database):
    """Factory: failing_store({('set', 'transactions')})"""
    def build(fail_on):
        return FailingStore(database, fail_on)
    return build


@pytest.fixture
def rank_ladder():
    return RankLadder.from_records(RANK_RECORDS, strict=False)


@pytest.fixture
def scoring_rules():
    return ScoringRuleTable.from_records(SCORING_RULE_RECORDS)


@pytest.fixture
def make_player():
    def build(player_id, experience=0, **kwargs):
        return Player(
            id=player_id,
            name=kwargs.pop('name', player_id.upper()),
            callsign=kwargs.pop('callsign', f"cs_{player_id}"),
            stats=PlayerStats(experience=experience, **kwargs.pop('stats', {})),
            **kwargs
        )
    return build


@pytest.fixture
def make_event():
    def build(event_id='ev001', attendees=(), **kwargs):
        kwargs.setdefault('title', 'Night Ops')
        kwargs.setdefault('date', '2025-03-01')
        kwargs.setdefault('participation_experience', 50)
        kwargs.setdefault('game_fee', 150)
        return GameEvent(id=event_id, attendees=list(attendees), **kwargs)
    return build


@pytest.fixture
def paid():
    def build(player_id, **kwargs):
        return Attendee(player_id=player_id, payment_status=PaymentStatus.PAID_CARD, **kwargs)
    return build


@pytest.fixture
def seed():
    """Write events, players, signups and reference data straight into a store."""
    async def write(store, events=(), players=(), signups=(), rules=None, ranks=None, inventory=(), badges=()):
        for event in events:
            await store.set_record(Collections.EVENTS, event.id, event.to_dict())
        for player in players:
            await store.set_record(Collections.PLAYERS, player.id, player.to_dict())
        for signup in signups:
            await store.set_record(Collections.SIGNUPS, signup.id, signup.to_dict())
        for rule in (SCORING_RULE_RECORDS if rules is None else rules):
            await store.set_record(Collections.SCORING_RULES, rule['id'], rule)
        for rank in (RANK_RECORDS if ranks is None else ranks):
            await store.set_record(Collections.RANKS, rank['id'], rank)
        for item in inventory:
            await store.set_record(Collections.INVENTORY, item['id'], item)
        for badge in badges:
            await store.set_record(Collections.BADGES, badge['id'], badge)
    return write


@pytest.fixture
def signup():
    def build(player_id, event_id='ev001', items=(), note=None):
        return Signup(event_id=event_id, player_id=player_id, requested_item_ids=list(items), note=note)
    return build
