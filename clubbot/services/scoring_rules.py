"""
Scoring rule table.

Maps rule identifiers to signed experience deltas. Finalization resolves a
rule by preferring the event's override, then the global rule; lookups
report whether anything was found so a missing rule is visible instead of
silently scoring zero.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from clubbot.config import Config
from clubbot.data_models.club import ScoringRule, StatLine
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


class RuleKind(Enum):
    """Rule kinds the engine knows about; anything else is CUSTOM."""
    KILL = "kill"
    HEADSHOT = "headshot"
    DEATH = "death"
    NO_SHOW = "no_show"
    CUSTOM = "custom"


KNOWN_RULE_IDS = {
    RuleKind.KILL: Config.KILL_RULE_ID,
    RuleKind.HEADSHOT: Config.HEADSHOT_RULE_ID,
    RuleKind.DEATH: Config.DEATH_RULE_ID,
    RuleKind.NO_SHOW: Config.NO_SHOW_RULE_ID,
}

# Stat counter -> rule kind scored at finalization
STAT_RULES = (
    ('kills', RuleKind.KILL),
    ('headshots', RuleKind.HEADSHOT),
    ('deaths', RuleKind.DEATH),
)


@dataclass(frozen=True)
class RuleLookup:
    rule_id: str
    value: int
    found: bool
    source: str  # "override", "global" or "missing"


class ScoringRuleTable:
    """Immutable snapshot of the global scoring rules."""

    def __init__(self, rules: Iterable[ScoringRule] = ()):
        self._rules: Mapping[str, ScoringRule] = MappingProxyType({r.id: r for r in rules})

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> 'ScoringRuleTable':
        return cls(ScoringRule.from_dict(r) for r in records)

    @classmethod
    def from_values(cls, values: Mapping[str, int]) -> 'ScoringRuleTable':
        """Build a table from a plain ``{rule_id: experience}`` mapping."""
        return cls(ScoringRule(id=k, name=k, experience=int(v)) for k, v in values.items())

    def get(self, rule_id: str) -> Optional[ScoringRule]:
        return self._rules.get(rule_id)

    @staticmethod
    def kind_of(rule_id: str) -> RuleKind:
        for kind, known_id in KNOWN_RULE_IDS.items():
            if known_id == rule_id:
                return kind
        return RuleKind.CUSTOM

    @staticmethod
    def rule_id_for(kind: RuleKind) -> str:
        if kind is RuleKind.CUSTOM:
            raise ValueError("Custom rules have no fixed identifier")
        return KNOWN_RULE_IDS[kind]

    def lookup(self, rule_id: str, overrides: Optional[Mapping[str, Any]] = None) -> RuleLookup:
        """
        Resolve a rule value with event-level override precedence.

        Args:
            rule_id: Rule identifier (e.g. 'g_kill')
            overrides: Event ``experienceOverrides`` mapping, if any

        Returns:
            RuleLookup with ``found=False`` and value 0 when neither the
            override nor the global table has the rule
        """
        if overrides and overrides.get(rule_id) is not None:
            return RuleLookup(rule_id, int(overrides[rule_id]), True, "override")
        rule = self._rules.get(rule_id)
        if rule is not None:
            return RuleLookup(rule_id, rule.experience, True, "global")
        return RuleLookup(rule_id, 0, False, "missing")

    def value(self, rule_id: str, overrides: Optional[Mapping[str, Any]] = None) -> int:
        """Rule value for scoring; a missing rule scores 0 and is logged."""
        result = self.lookup(rule_id, overrides)
        if not result.found:
            logger.warning(f"Scoring rule '{rule_id}' not found; scoring it as 0")
        return result.value

    def no_show_penalty(self) -> int:
        """
        Global no-show penalty.

        Returns the configured (negative) delta, or 0 when the rule is
        missing or non-negative, which disables the penalty.
        """
        result = self.lookup(KNOWN_RULE_IDS[RuleKind.NO_SHOW])
        if not result.found:
            logger.info("No-show penalty rule not configured; penalty disabled")
            return 0
        return result.value if result.value < 0 else 0

    def breakdown(self, stats: StatLine, overrides: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Per-stat scoring lines used by previews."""
        lines = []
        for stat_name, kind in STAT_RULES:
            rule_id = KNOWN_RULE_IDS[kind]
            per_unit = self.value(rule_id, overrides)
            count = getattr(stats, stat_name)
            lines.append({
                'stat': stat_name,
                'ruleId': rule_id,
                'count': count,
                'value': per_unit,
                'experience': count * per_unit,
            })
        return lines

    def experience_for(
        self,
        stats: StatLine,
        participation_experience: int,
        overrides: Optional[Mapping[str, Any]] = None
    ) -> int:
        """Base participation plus count x resolved value for each scored stat."""
        return participation_experience + sum(line['experience'] for line in self.breakdown(stats, overrides))
