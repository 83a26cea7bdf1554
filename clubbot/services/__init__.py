"""
Services package for the club event bot.

Leaf services (scoring rules, rank ladder, live stats, ledger) are pure;
attendance and finalization talk to the document store.
"""

from .base import BaseService
from .scoring_rules import ScoringRuleTable, RuleKind, RuleLookup
from .rank_ladder import RankLadder, UNRANKED_TIER, resolve_tier
from .live_stats import LiveStatsTracker
from .attendance import AttendanceReconciler, TransferPhase, TransferResult
from .finalization import FinalizationEngine, FinalizationResult

__all__ = [
    'BaseService',
    'ScoringRuleTable', 'RuleKind', 'RuleLookup',
    'RankLadder', 'UNRANKED_TIER', 'resolve_tier',
    'LiveStatsTracker',
    'AttendanceReconciler', 'TransferPhase', 'TransferResult',
    'FinalizationEngine', 'FinalizationResult',
]
