"""
Practice Router

Serves cloze listening exercises and grades submissions.

- ``GET /test/random`` picks a clip that has a masked transcript, the original
  transcript and a translation, so the learner can listen and fill the blanks.
- ``POST /test/grade`` grades the learner's answers against the original
  transcript and records the attempt as a user activity.
"""

from __future__ import annotations
import logging
import random
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .. import grader
from ..db import get_db
from ..models import Audio, User, UserActivity
from ..settings import Settings
from .audio import AudioRecord
from .auth import get_current_user, get_settings

router = APIRouter(prefix="/test", tags=["practice"])

logger = logging.getLogger(__name__)


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class GradeRequest(BaseModel):
    """
    A learner's submission for one clip.

    Attributes:
        audio_id: Clip being answered
        answers: One answer per blank, left to right
        time_spent: Seconds spent on the exercise, if the client tracked it
    """
    audio_id: str
    answers: List[str]
    time_spent: Optional[int] = Field(default=None, ge=0)


class GradeResponse(BaseModel):
    audio_id: str
    results: List[bool]
    summary: grader.GradeSummary
    correct_answers: List[str]
    activity_id: str


# ============================================================================
# API ENDPOINTS
# ============================================================================

def _practice_ready(query):
    return query.filter(
        Audio.miss_text.isnot(None),
        Audio.original_text.isnot(None),
        Audio.chinese.isnot(None),
    )


@router.get("/random")
async def random_test(db: Session = Depends(get_db)):
    """
    Return a random clip ready for practice.

    Raises:
        HTTPException: 404 when no clip has all three transcripts
    """
    ids = [row.id for row in _practice_ready(db.query(Audio.id)).all()]
    if not ids:
        raise HTTPException(status_code=404, detail="No tests available")
    row = db.get(Audio, random.choice(ids))
    return {"test": AudioRecord.from_row(row)}


@router.post("/grade", response_model=GradeResponse)
async def grade_submission(
    req: GradeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Grade a submission and store it as an activity.

    The attempt counts as correct only when every blank is right.

    Raises:
        HTTPException: 404 for an unknown clip, 400 when the clip has no
            transcripts or the submission cannot be aligned with them
    """
    audio = db.get(Audio, req.audio_id)
    if not audio:
        raise HTTPException(status_code=404, detail="audio not found")
    if audio.miss_text is None or audio.original_text is None:
        raise HTTPException(status_code=400, detail="audio has no cloze transcript")

    masked = grader.tokenize(audio.miss_text)
    original = grader.tokenize(audio.original_text)
    try:
        results = grader.grade(masked, original, req.answers, strict=settings.strict_answer_count)
        key = grader.blank_answers(masked, original)
    except grader.GradingError as e:
        logger.warning("Cannot grade %s for user %s: %s", audio.id, user.id, e)
        raise HTTPException(status_code=400, detail=str(e))
    summary = grader.summarize(results)

    activity = UserActivity(
        user_id=user.id,
        audio_id=audio.id,
        is_correct=summary.passed,
        user_answer=" ".join(req.answers),
        correct_answer=" ".join(key),
        completed_at=datetime.utcnow(),
        time_spent=req.time_spent,
    )
    db.add(activity)
    db.commit()
    logger.info("User %s scored %d/%d on %s", user.id, summary.correct, summary.total, audio.id)

    return GradeResponse(
        audio_id=audio.id,
        results=results,
        summary=summary,
        correct_answers=key,
        activity_id=activity.id,
    )
