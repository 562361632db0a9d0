"""
Priority-ordered rule tables.

A rule is a (priority, condition, generate) triple. Rules are sorted once by
priority (lower = more important; ties keep declaration order) and
evaluated in that order.

Conditions answer with a tri-state:

  True   → the rule matches
  False  → the rule does not match
  None   → the rule does not apply because data it needs is missing

A condition or generator that raises is treated like None: the rule is
skipped with a warning and evaluation moves on. Rule tables end with a
catch-all whose condition is always True, so a result is always produced.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Hashable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

C = TypeVar("C")
T = TypeVar("T")


class Outcome(Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    INAPPLICABLE = "inapplicable"


@dataclass(frozen=True)
class Rule(Generic[C, T]):
    id: str
    priority: int
    condition: Callable[[C], Optional[bool]]
    generate: Callable[[C], T]


class RuleTable(Generic[C, T]):
    """An immutable, priority-sorted list of rules."""

    def __init__(self, rules: Iterable[Rule]):
        self.rules: List[Rule] = sorted(rules, key=lambda r: r.priority)

    def evaluate(self, rule: Rule, ctx: C) -> Outcome:
        try:
            result = rule.condition(ctx)
        except Exception as exc:
            logger.warning("Rule %s condition failed: %s", rule.id, exc)
            return Outcome.INAPPLICABLE
        if result is None:
            return Outcome.INAPPLICABLE
        return Outcome.MATCH if result else Outcome.NO_MATCH

    def _build(self, rule: Rule, ctx: C) -> Optional[T]:
        try:
            return rule.generate(ctx)
        except Exception as exc:
            logger.warning("Rule %s generator failed: %s", rule.id, exc)
            return None

    def first(self, ctx: C) -> Optional[T]:
        """Output of the highest-priority matching rule."""
        for rule in self.rules:
            if self.evaluate(rule, ctx) is not Outcome.MATCH:
                continue
            output = self._build(rule, ctx)
            if output is not None:
                return output
        return None

    def top(
        self,
        ctx: C,
        limit: int,
        dedupe_key: Callable[[T], Optional[Hashable]] = lambda out: None,
    ) -> List[T]:
        """
        Outputs of the first `limit` matching rules.

        An output whose dedupe_key equals one already selected is dropped;
        outputs with a None key are never considered duplicates.
        """
        outputs: List[T] = []
        seen = set()
        for rule in self.rules:
            if len(outputs) >= limit:
                break
            if self.evaluate(rule, ctx) is not Outcome.MATCH:
                continue
            output = self._build(rule, ctx)
            if output is None:
                continue
            key = dedupe_key(output)
            if key is not None:
                if key in seen:
                    continue
                seen.add(key)
            outputs.append(output)
        return outputs


def at_least(value: Optional[float], threshold: float) -> Optional[bool]:
    """value >= threshold, or None when value is missing."""
    return None if value is None else value >= threshold


def at_most(value: Optional[float], threshold: float) -> Optional[bool]:
    """value <= threshold, or None when value is missing."""
    return None if value is None else value <= threshold


def below(value: Optional[float], threshold: float) -> Optional[bool]:
    """value < threshold, or None when value is missing."""
    return None if value is None else value < threshold


def between(value: Optional[float], low: float, high: float) -> Optional[bool]:
    """low <= value < high, or None when value is missing."""
    return None if value is None else low <= value < high
