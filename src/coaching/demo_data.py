"""Canned tracker payloads used when demo mode is on or no session exists."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional


def demo_profile(now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    member_since = now - timedelta(days=365)
    return {
        "user": {
            "displayName": "Demo User",
            "fullName": "Demo User",
            "memberSince": member_since.isoformat(),
            "avatar": "",
        }
    }


def demo_activities(day: Optional[date] = None) -> Dict[str, Any]:
    today = (day or date.today()).isoformat()
    return {
        "activities": {
            "summary": {
                "steps": 7321,
                "caloriesOut": 2150,
                "fairlyActiveMinutes": 28,
                "veryActiveMinutes": 12,
                "distances": [{"activity": "total", "distance": 3.85}],
            },
            "goals": {
                "steps": 10000,
                "activeMinutes": 30,
            },
        },
        "heart": {
            "activities-heart": [
                {"dateTime": today, "value": {"restingHeartRate": 62}},
            ]
        },
        "sleep": {
            "summary": {"totalMinutesAsleep": 412},
        },
        "date": today,
    }
