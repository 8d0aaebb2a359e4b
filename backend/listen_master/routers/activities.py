from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Audio, User, UserActivity
from .auth import get_current_user

router = APIRouter(prefix="/user-activities", tags=["activities"])

logger = logging.getLogger(__name__)


class CreateActivityRequest(BaseModel):
	audio_id: str
	is_correct: bool
	user_answer: Optional[str] = None
	correct_answer: Optional[str] = None
	completed_at: Optional[datetime] = None
	time_spent: Optional[int] = Field(default=None, ge=0)


def _activity_json(row: UserActivity) -> Dict[str, Any]:
	audio = row.audio
	return {
		"id": row.id,
		"user_id": row.user_id,
		"audio_id": row.audio_id,
		"is_correct": row.is_correct,
		"user_answer": row.user_answer,
		"correct_answer": row.correct_answer,
		"completed_at": row.completed_at.isoformat() if row.completed_at else None,
		"time_spent": row.time_spent,
		"created_at": row.created_at.isoformat(),
		"audio": {
			"id": audio.id,
			"file_name": audio.file_name,
			"folder_name": audio.folder_name,
			"miss_text": audio.miss_text,
			"original_text": audio.original_text,
		} if audio else None,
	}


@router.post("")
async def create_activity(req: CreateActivityRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if not req.audio_id:
		raise HTTPException(status_code=400, detail="audio_id is required")
	if db.get(Audio, req.audio_id) is None:
		raise HTTPException(status_code=404, detail="audio not found")
	row = UserActivity(
		user_id=user.id,
		audio_id=req.audio_id,
		is_correct=req.is_correct,
		user_answer=req.user_answer,
		correct_answer=req.correct_answer,
		completed_at=req.completed_at,
		time_spent=req.time_spent,
	)
	db.add(row)
	db.commit()
	db.refresh(row)
	return {"ok": True, "activity": _activity_json(row)}


@router.get("")
async def list_activities(
	limit: int = Query(default=50, ge=1, le=500),
	offset: int = Query(default=0, ge=0),
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	query = db.query(UserActivity).filter(UserActivity.user_id == user.id)
	total = query.count()
	rows = query.order_by(UserActivity.created_at.desc()).offset(offset).limit(limit).all()
	return {
		"activities": [_activity_json(r) for r in rows],
		"total": total,
		"limit": limit,
		"offset": offset,
	}
