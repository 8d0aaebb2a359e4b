from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Audio, User
from ..storage import LocalAudioStorage, StorageError
from .auth import require_admin

router = APIRouter(prefix="/audio", tags=["audio"])

logger = logging.getLogger(__name__)


class AudioRecord(BaseModel):
	id: str
	text: Optional[str] = None
	audio_path: str
	file_size: int
	folder_name: str
	file_name: str
	miss_text: Optional[str] = None
	chinese: Optional[str] = None
	original_text: Optional[str] = None
	created_at: datetime

	@classmethod
	def from_row(cls, row: Audio) -> "AudioRecord":
		return cls(
			id=row.id,
			text=row.text,
			audio_path=row.audio_path,
			file_size=row.file_size,
			folder_name=row.folder_name,
			file_name=row.file_name,
			miss_text=row.miss_text,
			chinese=row.chinese,
			original_text=row.original_text,
			created_at=row.created_at,
		)


class UpdateAudioRequest(BaseModel):
	id: str
	miss_text: Optional[str] = None
	chinese: Optional[str] = None
	original_text: Optional[str] = None


def get_storage(request: Request) -> LocalAudioStorage:
	return request.app.state.storage


@router.get("")
async def list_audio(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	rows = db.query(Audio).order_by(Audio.created_at.desc()).all()
	files: List[AudioRecord] = [AudioRecord.from_row(r) for r in rows]
	return {"files": files}


@router.post("/update")
async def update_audio(req: UpdateAudioRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	changes = req.model_dump(exclude={"id"}, exclude_none=True)
	if not changes:
		raise HTTPException(status_code=400, detail="no fields to update")
	row = db.get(Audio, req.id)
	if not row:
		raise HTTPException(status_code=404, detail="audio not found")
	for field, value in changes.items():
		setattr(row, field, value)
	db.commit()
	return {"ok": True, "file": AudioRecord.from_row(row)}


@router.delete("/{audio_id}")
async def delete_audio(
	audio_id: str,
	admin: User = Depends(require_admin),
	db: Session = Depends(get_db),
	storage: LocalAudioStorage = Depends(get_storage),
):
	row = db.get(Audio, audio_id)
	if not row:
		raise HTTPException(status_code=404, detail="audio not found")
	key = storage.key_for_url(row.audio_path)
	db.delete(row)
	db.commit()
	if key:
		try:
			storage.delete(key)
		except StorageError as e:
			# Record is already gone; a stray file is harmless
			logger.warning("Could not remove stored file for %s: %s", audio_id, e)
	return {"ok": True}
