"""
Seed data for a fresh club database.

Runtime configuration defaults go to the ``configurations`` table; the
default scoring rules go to the ``gamificationSettings`` collection of the
document store. Existing values are never overwritten.
"""

from clubbot.config import Config
from clubbot.database.document_store import Collections
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)

INITIAL_CONFIGS = {
    'events.default_participation_xp': Config.DEFAULT_PARTICIPATION_XP,
    'events.default_game_fee': 0,
    'finalization.exactly_once': Config.FINALIZATION_EXACTLY_ONCE,
    'ranks.strict_ladder': Config.STRICT_RANK_LADDER,
    'ledger.currency_symbol': Config.CURRENCY_SYMBOL,
}

DEFAULT_SCORING_RULES = [
    {'id': 'g_kill', 'name': 'Standard Kill',
     'description': 'XP awarded for a standard elimination.', 'experience': 10},
    {'id': 'g_headshot', 'name': 'Headshot',
     'description': 'Bonus XP for a headshot elimination.', 'experience': 5},
    {'id': 'g_death', 'name': 'Death',
     'description': 'XP deducted upon being eliminated.', 'experience': -2},
    {'id': 'g_objective', 'name': 'Objective Captured',
     'description': 'XP for capturing a primary objective.', 'experience': 50},
    {'id': 'g_no_show_penalty', 'name': 'No-Show Penalty',
     'description': 'XP deducted for signing up but not attending an event.', 'experience': -50},
]


async def seed_defaults(config_service, store, user_id: int = 0) -> dict:
    """
    Insert missing configuration values and scoring rules.

    Returns:
        Counts of seeded configuration keys and scoring rules
    """
    seeded_configs = 0
    for key, value in INITIAL_CONFIGS.items():
        if config_service.get(key) is None:
            await config_service.set(key, value, user_id)
            seeded_configs += 1

    seeded_rules = 0
    for rule in DEFAULT_SCORING_RULES:
        if await store.get_record(Collections.SCORING_RULES, rule['id']) is None:
            await store.set_record(Collections.SCORING_RULES, rule['id'], rule)
            seeded_rules += 1

    logger.info(f"Seeded {seeded_configs} configuration values and {seeded_rules} scoring rules")
    return {'configs': seeded_configs, 'scoring_rules': seeded_rules}
