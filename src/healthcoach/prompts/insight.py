"""
Proactive insight prompt builder.

Renders one MetricComparison into a short brief for Claude. The reply is
expected to be the finished 1-2 sentence comment, mentioning both the
change since yesterday and the change against the 7-day baseline.
"""
from typing import Optional

from healthcoach.insights.comparison import MetricComparison
from healthcoach.models.common import MetricType

SYSTEM_PROMPT = (
    "You are a health coach who texts short, specific observations about a "
    "client's wearable data. You never diagnose and never ask questions."
)

_METRIC_LABELS = {
    MetricType.STEPS: ("steps", ""),
    MetricType.SLEEP_HOURS: ("sleep", "h"),
    MetricType.HRV: ("HRV", " ms"),
    MetricType.RHR: ("resting heart rate", " bpm"),
    MetricType.RECOVERY: ("recovery", ""),
    MetricType.WEIGHT: ("weight", " kg"),
}


def _fmt(value: Optional[float], unit: str) -> str:
    if value is None:
        return "n/a"
    return f"{value:,.1f}".rstrip("0").rstrip(".") + unit


def _pct(pct: Optional[int], direction: Optional[str]) -> str:
    if pct is None:
        return "no comparison available"
    return f"{pct:+d}% ({direction})"


def build_insight_prompt(user_name: str, comparison: MetricComparison) -> str:
    """
    Build the user-turn prompt for one proactive insight.

    Args:
        user_name: Display name, "there" when unknown.
        comparison: The single most notable metric of the new data.

    Returns:
        Plain-text prompt to send as the user message to Claude.
    """
    label, unit = _METRIC_LABELS.get(comparison.metric, (comparison.metric.value, ""))
    lines = [
        f"Write a SINGLE brief comment (1-2 sentences max) for {user_name} about their {label}.",
        "",
        f"TODAY: {_fmt(comparison.today, unit)}",
        f"YESTERDAY: {_fmt(comparison.yesterday, unit)} → "
        f"{_pct(comparison.pct_vs_yesterday, comparison.direction_vs_yesterday)}",
        f"7-DAY BASELINE: {_fmt(comparison.baseline_7day, unit)} → "
        f"{_pct(comparison.pct_vs_baseline, comparison.direction_vs_baseline)}",
        f"INSIGHT TYPE: {comparison.insight_type.value}",
        "",
        "Guidelines:",
        "- Mention both the change since yesterday and the change against the baseline when both exist",
        "- Sound like a knowledgeable friend texting, not an alert system",
        "- Be specific about the numbers",
        "- For concerns, be matter-of-fact without being alarming",
        "- For positive changes, acknowledge without over-celebrating",
        "- Don't ask questions",
        "",
        "Examples of good tone:",
        '- "RHR jumped 8 bpm overnight and sits 12% above your week. Could be stress or dehydration."',
        '- "7.9h of sleep, an hour more than last night and well above your weekly average."',
        "",
        "Generate ONLY the comment, nothing else:",
    ]
    return "\n".join(lines)
