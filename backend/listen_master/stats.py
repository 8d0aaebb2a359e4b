from __future__ import annotations
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence

from .models import UserActivity


RECENT_WINDOW = timedelta(days=7)
RECENT_LIST_SIZE = 10


def compute_user_stats(activities: Sequence[UserActivity], now: datetime | None = None) -> Dict[str, Any]:
    """Summarize a user's practice history.

    ``activities`` are expected newest first; the recent list keeps that order.
    """
    now = now or datetime.utcnow()
    total = len(activities)
    correct = sum(1 for a in activities if a.is_correct)
    accuracy = round(correct / total * 100, 1) if total else 0

    timed = [a.time_spent for a in activities if a.time_spent]
    total_time = sum(timed)
    # Halves round up
    average_time = math.floor(total_time / len(timed) + 0.5) if timed else 0

    threshold = now - RECENT_WINDOW
    recent_count = sum(1 for a in activities if a.created_at >= threshold)

    daily: Dict[str, Dict[str, int]] = {}
    for a in activities:
        day = daily.setdefault(a.created_at.date().isoformat(), {"total": 0, "correct": 0})
        day["total"] += 1
        if a.is_correct:
            day["correct"] += 1

    recent_list: List[Dict[str, Any]] = []
    for a in activities[:RECENT_LIST_SIZE]:
        audio = a.audio
        recent_list.append(
            {
                "id": a.id,
                "is_correct": a.is_correct,
                "time_spent": a.time_spent,
                "created_at": a.created_at.isoformat(),
                "audio_name": audio.file_name if audio else "unknown audio",
                "folder_name": audio.folder_name if audio else "unknown folder",
                "original_text": (audio.original_text or "") if audio else "",
            }
        )

    return {
        "summary": {
            "total_activities": total,
            "correct_activities": correct,
            "accuracy": accuracy,
            "total_time_spent": total_time,
            "average_time_spent": average_time,
            "recent_activities_count": recent_count,
        },
        "daily_stats": daily,
        "recent_activity_list": recent_list,
    }
