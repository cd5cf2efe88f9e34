"""Pure helpers that turn tracker data into prompt text and back into UI text."""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional

SYSTEM_PROMPT = (
    "You are an enthusiastic and supportive health coach. Provide personalized, "
    "encouraging feedback based on the user's health data. Be specific, positive, "
    "and motivating. Keep responses concise (3-5 sentences)."
)

GENERIC_PROMPT = (
    "You are a supportive health coach. Provide a brief, encouraging tip tailored "
    "for a typical adult to stay active today (3-5 sentences). Include one actionable "
    "step and a gentle motivational note."
)

PROMPT_HEADER = "Here is the user's health data for today:\n\n"
PROMPT_FOOTER = (
    "\nProvide encouraging and personalized feedback on their progress. Highlight "
    "what they're doing well and offer gentle motivation for improvement."
)

# One worked example so the model keeps the expected length and tone.
FEW_SHOT = [
    {
        "role": "user",
        "content": (
            PROMPT_HEADER
            + "- Steps: 8,400 / 10,000 (84% of goal)\n"
            + "- Active minutes: 35\n"
            + "- Sleep: 7h 5m\n"
            + PROMPT_FOOTER
        ),
    },
    {
        "role": "assistant",
        "content": (
            "Great work today! You're at 84% of your step goal, so a short evening walk "
            "will take you over the line. Your 35 active minutes already beat the daily "
            "recommendation, and 7 hours of sleep gives you a solid base for recovery. "
            "Keep this rhythm going tomorrow."
        ),
    },
]

DEFAULT_STEP_GOAL = 10000

_EMOJI_RE = re.compile(
    "["
    "\U0001F1E6-\U0001F1FF"  # flags
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F680-\U0001F6FF"  # transport & map
    "\U0001F700-\U0001F77F"
    "\U0001F780-\U0001F7FF"
    "\U0001F800-\U0001F8FF"
    "\U0001F900-\U0001F9FF"
    "\U0001FA00-\U0001FAFF"
    "\U00002600-\U000027BF"  # misc symbols & dingbats
    "\U00002B00-\U00002BFF"
    "\U0000FE0F"             # variation selector-16
    "\U0000200D"             # zero-width joiner
    "]+"
)


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _num(value: Any) -> Optional[float]:
    """Tracker fields as a finite number; strings like "5000" count, anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _summary(data: Any) -> Dict[str, Any]:
    return _dict(_dict(_dict(data).get("activities")).get("summary"))


def _fmt_number(value: float) -> str:
    if not float(value).is_integer():
        return f"{value:,}"
    return f"{int(value):,}"


def _steps(data: Any) -> Optional[Dict[str, Any]]:
    steps = _num(_summary(data).get("steps"))
    if not steps:
        return None
    goals = _dict(_dict(_dict(data).get("activities")).get("goals"))
    goal = _num(goals.get("steps")) or DEFAULT_STEP_GOAL
    return {"steps": steps, "goal": goal, "pct": f"{steps / goal * 100:.0f}"}


def _active_minutes(data: Any) -> Optional[str]:
    summary = _summary(data)
    if "fairlyActiveMinutes" not in summary and "veryActiveMinutes" not in summary:
        return None
    total = (_num(summary.get("fairlyActiveMinutes")) or 0) + (_num(summary.get("veryActiveMinutes")) or 0)
    return _fmt_number(total)


def _distance(data: Any) -> Optional[str]:
    distances = _list(_summary(data).get("distances"))
    if not distances:
        return None
    value = _num(_dict(distances[0]).get("distance"))
    return f"{value:.2f}" if value else None


def _resting_hr(data: Any) -> Optional[str]:
    entries = _list(_dict(_dict(data).get("heart")).get("activities-heart"))
    if not entries:
        return None
    rhr = _num(_dict(_dict(entries[0]).get("value")).get("restingHeartRate"))
    return _fmt_number(rhr) if rhr else None


def _sleep(data: Any) -> Optional[str]:
    minutes = _num(_dict(_dict(_dict(data).get("sleep")).get("summary")).get("totalMinutesAsleep"))
    if not minutes:
        return None
    minutes = int(minutes)
    return f"{minutes // 60}h {minutes % 60}m"


def _calories(data: Any) -> Optional[str]:
    calories = _num(_summary(data).get("caloriesOut"))
    return _fmt_number(calories) if calories else None


def build_coaching_prompt(data: Optional[Dict[str, Any]]) -> str:
    """Render one day of tracker data as the user prompt.

    With no data at all, a generic "stay active" prompt is returned.
    Only fields that are present produce a line.
    """
    if not data:
        return GENERIC_PROMPT

    lines: List[str] = []

    steps = _steps(data)
    if steps:
        lines.append(
            f"- Steps: {_fmt_number(steps['steps'])} / {_fmt_number(steps['goal'])} "
            f"({steps['pct']}% of goal)"
        )

    calories = _calories(data)
    if calories:
        lines.append(f"- Calories burned: {calories}")

    active = _active_minutes(data)
    if active is not None:
        lines.append(f"- Active minutes: {active}")

    distance = _distance(data)
    if distance:
        lines.append(f"- Distance: {distance} miles")

    rhr = _resting_hr(data)
    if rhr:
        lines.append(f"- Resting heart rate: {rhr} bpm")

    sleep = _sleep(data)
    if sleep:
        lines.append(f"- Sleep: {sleep}")

    body = "\n".join(lines) + "\n" if lines else ""
    return PROMPT_HEADER + body + PROMPT_FOOTER


def data_synopsis(data: Optional[Dict[str, Any]]) -> Optional[str]:
    """One-line summary of the data behind a coaching message, or None."""
    if not data:
        return None

    parts: List[str] = []
    steps = _steps(data)
    if steps:
        parts.append(f"steps {_fmt_number(steps['steps'])} ({steps['pct']}% of goal)")
    calories = _calories(data)
    if calories:
        parts.append(f"calories {calories}")
    active = _active_minutes(data)
    if active is not None:
        parts.append(f"active {active} min")
    distance = _distance(data)
    if distance:
        parts.append(f"distance {distance} mi")
    rhr = _resting_hr(data)
    if rhr:
        parts.append(f"resting HR {rhr} bpm")
    sleep = _sleep(data)
    if sleep:
        parts.append(f"sleep {sleep}")

    if not parts:
        return None
    return "Data used: " + " · ".join(parts)


def clean_message(text: str) -> str:
    """Drop emoji and collapse the whitespace they leave behind."""
    text = _EMOJI_RE.sub("", text or "")
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.replace("\r", "").split("\n")]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def build_messages(prompt: str) -> List[Dict[str, str]]:
    return [{"role": "system", "content": SYSTEM_PROMPT}, *FEW_SHOT, {"role": "user", "content": prompt}]
