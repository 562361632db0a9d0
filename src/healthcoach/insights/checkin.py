"""
Context-aware check-in prompts.

Picks a question and 2-3 response options from today's snapshot, the
streak, the time of day and how long the user has been away.
"""
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from healthcoach.insights.context import HealthSnapshot
from healthcoach.insights.rules import Rule, RuleTable, at_least, below

MORNING = "morning"
AFTERNOON = "afternoon"
EVENING = "evening"
NIGHT = "night"

RETURNING_AFTER_DAYS = 3


@dataclass
class CheckInOption:
    label: str
    value: str
    emoji: Optional[str] = None


@dataclass
class CheckInContext:
    question: str
    options: List[CheckInOption] = field(default_factory=list)
    context_type: str = "default"


@dataclass
class CheckInInput:
    metrics: Optional[HealthSnapshot]
    streak: int
    time_of_day: str
    days_since_last_check_in: Optional[int]

    def today(self, attr: str):
        return getattr(self.metrics, attr) if self.metrics else None


def time_of_day(now: Optional[datetime] = None) -> str:
    hour = (now or datetime.now()).hour
    if 5 <= hour < 12:
        return MORNING
    if 12 <= hour < 17:
        return AFTERNOON
    if 17 <= hour < 21:
        return EVENING
    return NIGHT


def days_since_last_check_in(
    last_check_in: Optional[datetime], now: Optional[datetime] = None
) -> Optional[int]:
    """Whole days elapsed since the last check-in, None if there never was one."""
    if last_check_in is None:
        return None
    now = now or datetime.now(last_check_in.tzinfo)
    return (now - last_check_in).days


def _options(*triples) -> List[CheckInOption]:
    return [CheckInOption(label, value, emoji) for label, value, emoji in triples]


def _label(inp: CheckInInput) -> str:
    return inp.metrics.recovery.label or "Recovery"


def _score(inp: CheckInInput) -> str:
    return f"{inp.metrics.recovery.score:g}"


def _moderate_recovery(inp: CheckInInput) -> Optional[bool]:
    score = inp.today("recovery_score")
    return None if score is None else 50 <= score < 90


def _great_sleep(inp: CheckInInput) -> Optional[bool]:
    sleep = inp.today("sleep")
    if sleep is None:
        return None
    return sleep.last_night_hours >= 7.5 and sleep.quality == "excellent"


def _high_stress(inp: CheckInInput) -> Optional[bool]:
    category = inp.today("stress_category")
    return None if category is None else category == "high"


def _returning(inp: CheckInInput) -> Optional[bool]:
    return at_least(inp.days_since_last_check_in, RETURNING_AFTER_DAYS)


CHECK_IN_RULES = RuleTable([
    Rule(
        id="streak-7",
        priority=1,
        condition=lambda inp: inp.streak == 7,
        generate=lambda inp: CheckInContext(
            question="Day 7! How's the momentum?",
            options=_options(
                ("Strong", "strong", "💪"),
                ("Building", "building", "📈"),
                ("Wavering", "wavering", "🤔"),
            ),
            context_type="streak-milestone",
        ),
    ),
    Rule(
        id="streak-14",
        priority=1,
        condition=lambda inp: inp.streak == 14,
        generate=lambda inp: CheckInContext(
            question="Two weeks in! How are you feeling about your progress?",
            options=_options(
                ("Great", "great", "🎉"),
                ("Steady", "steady", "✨"),
                ("Mixed", "mixed", "🤷"),
            ),
            context_type="streak-milestone",
        ),
    ),
    Rule(
        id="returning-user",
        priority=5,
        condition=_returning,
        generate=lambda inp: CheckInContext(
            question="Good to see you back! How are things?",
            options=_options(
                ("Good", "good", "😊"),
                ("Busy", "busy", "🏃"),
                ("Rough", "rough", "😔"),
            ),
            context_type="returning",
        ),
    ),
    Rule(
        id="recovery-high",
        priority=10,
        condition=lambda inp: at_least(inp.today("recovery_score"), 90),
        generate=lambda inp: CheckInContext(
            question=f"{_label(inp)} at {_score(inp)}. Feeling energized?",
            options=_options(
                ("Energized", "energized", "⚡"),
                ("Normal", "normal", "😊"),
                ("Tired", "tired", "😴"),
            ),
            context_type="recovery-high",
        ),
    ),
    Rule(
        id="recovery-moderate",
        priority=15,
        condition=_moderate_recovery,
        generate=lambda inp: CheckInContext(
            question=f"{_label(inp)} at {_score(inp)}. How's your energy?",
            options=_options(
                ("Good", "good", "👍"),
                ("Okay", "okay", "😐"),
                ("Low", "low", "😔"),
            ),
            context_type="recovery-moderate",
        ),
    ),
    Rule(
        id="recovery-low",
        priority=10,
        condition=lambda inp: below(inp.today("recovery_score"), 50),
        generate=lambda inp: CheckInContext(
            question=f"{_label(inp)} is low ({_score(inp)}). How are you holding up?",
            options=_options(
                ("Managing", "managing", "💪"),
                ("Struggling", "struggling", "😓"),
                ("Need rest", "need-rest", "🛌"),
            ),
            context_type="recovery-low",
        ),
    ),
    Rule(
        id="sleep-poor",
        priority=10,
        condition=lambda inp: below(inp.today("sleep_hours"), 6),
        generate=lambda inp: CheckInContext(
            question=f"Rough night ({inp.metrics.sleep.last_night_hours:g}h). How are you holding up?",
            options=_options(
                ("Managing", "managing", "💪"),
                ("Struggling", "struggling", "😓"),
                ("Need coffee", "need-coffee", "☕"),
            ),
            context_type="sleep-poor",
        ),
    ),
    Rule(
        id="sleep-great",
        priority=15,
        condition=_great_sleep,
        generate=lambda inp: CheckInContext(
            question=f"Great sleep ({inp.metrics.sleep.last_night_hours:g}h). Feeling refreshed?",
            options=_options(
                ("Refreshed", "refreshed", "🌟"),
                ("Pretty good", "pretty-good", "😊"),
                ("Still tired", "still-tired", "🥱"),
            ),
            context_type="sleep-great",
        ),
    ),
    Rule(
        id="stress-high",
        priority=10,
        condition=_high_stress,
        generate=lambda inp: CheckInContext(
            question="Stress is elevated today. How's your head?",
            options=_options(
                ("Clear", "clear", "🧘"),
                ("Foggy", "foggy", "🌫️"),
                ("Overwhelmed", "overwhelmed", "😰"),
            ),
            context_type="stress-high",
        ),
    ),
    Rule(
        id="morning",
        priority=50,
        condition=lambda inp: inp.time_of_day == MORNING,
        generate=lambda inp: CheckInContext(
            question="Good morning! How are you starting the day?",
            options=_options(
                ("Energized", "energized", "⚡"),
                ("Okay", "okay", "😊"),
                ("Groggy", "groggy", "😴"),
            ),
            context_type="time-morning",
        ),
    ),
    Rule(
        id="evening",
        priority=50,
        condition=lambda inp: inp.time_of_day in (EVENING, NIGHT),
        generate=lambda inp: CheckInContext(
            question="How was your day?",
            options=_options(
                ("Great", "great", "🌟"),
                ("Okay", "okay", "😊"),
                ("Tough", "tough", "😓"),
            ),
            context_type="time-evening",
        ),
    ),
    Rule(
        id="default",
        priority=100,
        condition=lambda inp: True,
        generate=lambda inp: _default_context("default"),
    ),
])


def _default_context(context_type: str) -> CheckInContext:
    return CheckInContext(
        question="How's your energy today?",
        options=_options(
            ("High", "high", "⚡"),
            ("Medium", "medium", "😊"),
            ("Low", "low", "😔"),
        ),
        context_type=context_type,
    )


def generate_check_in_context(
    metrics: Optional[HealthSnapshot],
    streak: int,
    last_check_in: Optional[datetime],
    now: Optional[datetime] = None,
    rules: RuleTable = CHECK_IN_RULES,
) -> CheckInContext:
    inp = CheckInInput(
        metrics=metrics,
        streak=streak,
        time_of_day=time_of_day(now),
        days_since_last_check_in=days_since_last_check_in(last_check_in, now),
    )
    return rules.first(inp) or _default_context("error-fallback")


# ─── Acknowledgements ─────────────────────────────────────────────────────────

_RESPONSE_POOLS = [
    (
        {"energized", "strong", "great", "refreshed", "good", "high"},
        [
            "That's great to hear! Make the most of it.",
            "Awesome! Keep that energy going.",
            "Love to hear it! You're on a roll.",
        ],
    ),
    (
        {"okay", "normal", "building", "steady", "medium", "pretty-good", "managing", "busy"},
        [
            "Thanks for checking in. I'm here if you want to talk more.",
            "Steady days matter too. Keep it up!",
            "Every day counts. You're doing great.",
        ],
    ),
    (
        {
            "tired", "low", "struggling", "wavering", "groggy", "foggy",
            "still-tired", "need-coffee", "rough", "tough",
        },
        [
            "Thanks for being honest. Take it easy today if you can.",
            "Listen to your body. Rest is productive too.",
            "I hear you. Let's focus on small wins today.",
        ],
    ),
    (
        {"need-rest", "overwhelmed", "mixed"},
        [
            "That's okay. Recovery is part of the journey.",
            "Take the time you need. I'm here when you're ready.",
            "Thanks for sharing. Sometimes we just need a reset.",
        ],
    ),
]

DEFAULT_RESPONSE = "Thanks for checking in. I'm here if you want to talk more."


def check_in_response(value: str) -> str:
    """A short acknowledgement for a check-in answer. Phrasing varies at random."""
    for values, responses in _RESPONSE_POOLS:
        if value in values:
            return random.choice(responses)
    return DEFAULT_RESPONSE
