"""
Daily insight selection.

One rule table over today's snapshot, week-over-week trends and the user's
streak. `generate_daily_insight` returns the best match; the catch-all at
the bottom of the table means it always returns something.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from healthcoach.analysis.trends import MetricTrend
from healthcoach.insights.context import HealthSnapshot
from healthcoach.insights.rules import Rule, RuleTable, at_least, at_most, below

SENTIMENT_POSITIVE = "positive"
SENTIMENT_NEUTRAL = "neutral"
SENTIMENT_ATTENTION = "attention"


@dataclass
class DailyInsight:
    id: str
    text: str
    sentiment: str
    metric: Optional[str] = None
    learn_more_context: Optional[str] = None


@dataclass
class InsightContext:
    metrics: Optional[HealthSnapshot]
    trends: Optional[Dict[str, MetricTrend]]
    streak: int
    days_on_platform: int

    def change(self, key: str) -> Optional[float]:
        if not self.trends or key not in self.trends:
            return None
        return self.trends[key].change

    def today(self, attr: str):
        return getattr(self.metrics, attr) if self.metrics else None


def _num(value: float) -> str:
    return f"{value:g}"


def _recovery_label(ctx: InsightContext) -> str:
    return ctx.metrics.recovery.label or "Recovery"


def _good_recovery(ctx: InsightContext) -> Optional[bool]:
    score = ctx.today("recovery_score")
    return None if score is None else 70 <= score < 90


def _great_sleep(ctx: InsightContext) -> Optional[bool]:
    sleep = ctx.today("sleep")
    if sleep is None:
        return None
    return sleep.last_night_hours >= 7.5 and sleep.quality == "excellent"


def _stress_is(category: str):
    def condition(ctx: InsightContext) -> Optional[bool]:
        current = ctx.today("stress_category")
        return None if current is None else current == category

    return condition


INSIGHT_RULES = RuleTable([
    # ─── Streak milestones ───
    Rule(
        id="streak-7",
        priority=1,
        condition=lambda ctx: ctx.streak == 7,
        generate=lambda ctx: DailyInsight(
            id="streak-7",
            text="7-day streak! Consistency is your superpower.",
            sentiment=SENTIMENT_POSITIVE,
            learn_more_context="I just hit a 7-day streak! What habits should I focus on to keep this momentum?",
        ),
    ),
    Rule(
        id="streak-14",
        priority=1,
        condition=lambda ctx: ctx.streak == 14,
        generate=lambda ctx: DailyInsight(
            id="streak-14",
            text="Two weeks strong. You're building real habits.",
            sentiment=SENTIMENT_POSITIVE,
            learn_more_context="I've maintained a 14-day streak. How are habits typically formed and what can I do to make them stick?",
        ),
    ),
    Rule(
        id="streak-30",
        priority=1,
        condition=lambda ctx: ctx.streak == 30,
        generate=lambda ctx: DailyInsight(
            id="streak-30",
            text="30 days! You're in the top 5% of users.",
            sentiment=SENTIMENT_POSITIVE,
            learn_more_context="I just completed a 30-day streak! What's the next level of health optimization I should consider?",
        ),
    ),

    # ─── Week-over-week trends ───
    Rule(
        id="rhr-dropped",
        priority=10,
        condition=lambda ctx: at_most(ctx.change("rhr"), -3),
        generate=lambda ctx: DailyInsight(
            id="rhr-dropped",
            text=f"RHR dropped {_num(abs(ctx.change('rhr')))}bpm this week. Great recovery sign.",
            sentiment=SENTIMENT_POSITIVE,
            metric="rhr",
            learn_more_context="My resting heart rate dropped significantly this week. What does this mean for my health?",
        ),
    ),
    Rule(
        id="rhr-elevated",
        priority=15,
        condition=lambda ctx: at_least(ctx.change("rhr"), 5),
        generate=lambda ctx: DailyInsight(
            id="rhr-elevated",
            text=f"RHR up {_num(ctx.change('rhr'))}bpm from last week. Keep an eye on stress and rest.",
            sentiment=SENTIMENT_ATTENTION,
            metric="rhr",
            learn_more_context="My resting heart rate increased this week. What could be causing this?",
        ),
    ),
    Rule(
        id="sleep-improved",
        priority=10,
        condition=lambda ctx: at_least(ctx.change("sleep"), 0.5),
        generate=lambda ctx: DailyInsight(
            id="sleep-improved",
            text=f"Sleeping {ctx.change('sleep'):.1f}h more than last week. Nice.",
            sentiment=SENTIMENT_POSITIVE,
            metric="sleep",
            learn_more_context="I'm sleeping more this week. How can I maintain this improvement?",
        ),
    ),
    Rule(
        id="steps-up",
        priority=10,
        condition=lambda ctx: at_least(ctx.change("steps"), 2000),
        generate=lambda ctx: DailyInsight(
            id="steps-up",
            text=f"{ctx.change('steps'):,.0f} more steps daily than last week.",
            sentiment=SENTIMENT_POSITIVE,
            metric="steps",
            learn_more_context="I've been walking more this week. What are the benefits of increased daily steps?",
        ),
    ),
    Rule(
        id="hrv-improved",
        priority=10,
        condition=lambda ctx: at_least(ctx.change("hrv"), 5),
        generate=lambda ctx: DailyInsight(
            id="hrv-improved",
            text=f"HRV up {_num(ctx.change('hrv'))}ms. Your body is adapting well.",
            sentiment=SENTIMENT_POSITIVE,
            metric="hrv",
            learn_more_context="My HRV improved this week. What does this indicate about my recovery?",
        ),
    ),

    # ─── Today's values ───
    Rule(
        id="recovery-high",
        priority=20,
        condition=lambda ctx: at_least(ctx.today("recovery_score"), 90),
        generate=lambda ctx: DailyInsight(
            id="recovery-high",
            text=f"{_recovery_label(ctx)} at {_num(ctx.metrics.recovery.score)}. Prime day for a challenge.",
            sentiment=SENTIMENT_POSITIVE,
            metric="recovery",
            learn_more_context="My recovery is very high today. What kind of workout should I do?",
        ),
    ),
    Rule(
        id="recovery-good",
        priority=25,
        condition=_good_recovery,
        generate=lambda ctx: DailyInsight(
            id="recovery-good",
            text=f"{_recovery_label(ctx)} at {_num(ctx.metrics.recovery.score)}. Good day for steady effort.",
            sentiment=SENTIMENT_POSITIVE,
            metric="recovery",
            learn_more_context="My recovery is good today. What activities are appropriate?",
        ),
    ),
    Rule(
        id="recovery-low",
        priority=20,
        condition=lambda ctx: at_most(ctx.today("recovery_score"), 30),
        generate=lambda ctx: DailyInsight(
            id="recovery-low",
            text=f"Low energy today ({_num(ctx.metrics.recovery.score)}). Listen to your body.",
            sentiment=SENTIMENT_ATTENTION,
            metric="recovery",
            learn_more_context="My recovery is low today. What should I do to recover?",
        ),
    ),
    Rule(
        id="sleep-short",
        priority=20,
        condition=lambda ctx: below(ctx.today("sleep_hours"), 6),
        generate=lambda ctx: DailyInsight(
            id="sleep-short",
            text=f"Short night ({_num(ctx.metrics.sleep.last_night_hours)}h). Go easy on yourself today.",
            sentiment=SENTIMENT_ATTENTION,
            metric="sleep",
            learn_more_context="I didn't sleep well last night. How should I adjust my day?",
        ),
    ),
    Rule(
        id="sleep-great",
        priority=25,
        condition=_great_sleep,
        generate=lambda ctx: DailyInsight(
            id="sleep-great",
            text=f"Great sleep last night ({_num(ctx.metrics.sleep.last_night_hours)}h, excellent quality).",
            sentiment=SENTIMENT_POSITIVE,
            metric="sleep",
            learn_more_context="I slept great last night. What factors contribute to excellent sleep?",
        ),
    ),
    Rule(
        id="stress-high",
        priority=20,
        condition=_stress_is("high"),
        generate=lambda ctx: DailyInsight(
            id="stress-high",
            text="Stress elevated today. Time for a breather?",
            sentiment=SENTIMENT_ATTENTION,
            metric="stress",
            learn_more_context="My stress levels are high. What are some quick ways to reduce stress?",
        ),
    ),
    Rule(
        id="stress-low",
        priority=25,
        condition=_stress_is("rest"),
        generate=lambda ctx: DailyInsight(
            id="stress-low",
            text="Stress levels are calm today. Enjoy the balance.",
            sentiment=SENTIMENT_POSITIVE,
            metric="stress",
            learn_more_context="My stress is low today. How can I maintain this state?",
        ),
    ),
    Rule(
        id="steps-10k",
        priority=25,
        condition=lambda ctx: at_least(ctx.today("steps"), 10000),
        generate=lambda ctx: DailyInsight(
            id="steps-10k",
            text=f"{ctx.metrics.steps:,} steps. You hit 10K today!",
            sentiment=SENTIMENT_POSITIVE,
            metric="steps",
            learn_more_context="I hit 10,000 steps today! What are the health benefits?",
        ),
    ),

    # ─── Fallbacks ───
    Rule(
        id="has-data",
        priority=100,
        condition=lambda ctx: ctx.metrics is not None and len(ctx.metrics.available()) > 1,
        generate=lambda ctx: DailyInsight(
            id="has-data",
            text="Your data is syncing. Check back for personalized insights.",
            sentiment=SENTIMENT_NEUTRAL,
            learn_more_context="How do you generate insights from my health data?",
        ),
    ),
    Rule(
        id="fallback",
        priority=999,
        condition=lambda ctx: True,
        generate=lambda ctx: DailyInsight(
            id="fallback",
            text="Keep checking in to unlock personalized insights.",
            sentiment=SENTIMENT_NEUTRAL,
            learn_more_context="How can I get more personalized health insights?",
        ),
    ),
])


def generate_daily_insight(
    metrics: Optional[HealthSnapshot],
    trends: Optional[Dict[str, MetricTrend]],
    streak: int,
    days_on_platform: int,
    rules: RuleTable = INSIGHT_RULES,
) -> DailyInsight:
    """Highest-priority insight for today."""
    ctx = InsightContext(metrics, trends, streak, days_on_platform)
    insight = rules.first(ctx)
    if insight is None:
        return DailyInsight(
            id="error-fallback",
            text="Keep checking in to unlock personalized insights.",
            sentiment=SENTIMENT_NEUTRAL,
        )
    return insight


def generate_multiple_insights(
    metrics: Optional[HealthSnapshot],
    trends: Optional[Dict[str, MetricTrend]],
    streak: int,
    days_on_platform: int,
    limit: int = 3,
    rules: RuleTable = INSIGHT_RULES,
) -> List[DailyInsight]:
    """Up to `limit` insights in priority order, at most one per metric."""
    ctx = InsightContext(metrics, trends, streak, days_on_platform)
    return rules.top(ctx, limit, dedupe_key=lambda insight: insight.metric)
