from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..listing import listing_field, parse_listing
from ..models import Audio, User
from ..storage import LocalAudioStorage, StorageError
from .audio import get_storage
from .auth import require_admin

router = APIRouter(prefix="/upload", tags=["upload"])

logger = logging.getLogger(__name__)


def _parse_json_map(name: str, raw: Optional[str]) -> Dict[str, str]:
	if not raw:
		return {}
	try:
		data = json.loads(raw)
	except json.JSONDecodeError:
		raise HTTPException(status_code=400, detail=f"{name} must be a JSON object")
	if not isinstance(data, dict):
		raise HTTPException(status_code=400, detail=f"{name} must be a JSON object")
	return {str(k): str(v) for k, v in data.items() if v is not None}


def _is_audio(upload: UploadFile) -> bool:
	content_type = upload.content_type or ""
	return content_type.startswith("audio/") or (upload.filename or "").lower().endswith(".flac")


def _split_path(filename: str, default_folder: Optional[str]) -> tuple[str, str]:
	parts = [p for p in filename.replace("\\", "/").split("/") if p]
	name = parts[-1] if parts else filename
	folder = parts[-2] if len(parts) > 1 else (default_folder or "unknown")
	return folder, name


@router.post("")
async def upload_audio(
	folder: List[UploadFile] = File(...),
	text: Optional[str] = Form(None),
	chinese: Optional[str] = Form(None),
	miss_text: Optional[str] = Form(None),
	folder_name: Optional[str] = Form(None),
	admin: User = Depends(require_admin),
	db: Session = Depends(get_db),
	storage: LocalAudioStorage = Depends(get_storage),
):
	texts: Dict[str, Dict[str, str]] = {
		"text": _parse_json_map("text", text),
		"chinese": _parse_json_map("chinese", chinese),
		"miss_text": _parse_json_map("miss_text", miss_text),
	}

	# Listing files (original.txt, chinese.txt, misstext.txt) fill in what the JSON maps left out
	audio_files: List[UploadFile] = []
	for upload in folder:
		name = upload.filename or ""
		if name.lower().endswith(".txt"):
			field = listing_field(name)
			if field is None:
				logger.info("Ignoring text file %s", name)
				continue
			content = (await upload.read()).decode("utf-8-sig", errors="replace")
			for item_id, value in parse_listing(content).items():
				texts[field].setdefault(item_id, value)
		elif _is_audio(upload):
			audio_files.append(upload)

	results: List[Dict[str, Any]] = []
	for upload in audio_files:
		folder_part, filename = _split_path(upload.filename or "", folder_name)
		unique_id = f"{folder_part}_{filename}"
		file_id = filename.split(".")[0]
		try:
			data = await upload.read()
			url = storage.save(f"audioFiles/{folder_part}/{filename}", data)
			values = {
				"text": texts["text"].get(file_id),
				"audio_path": url,
				"file_size": len(data),
				"folder_name": folder_part,
				"file_name": filename,
				"miss_text": texts["miss_text"].get(file_id),
				"chinese": texts["chinese"].get(file_id),
				"original_text": texts["text"].get(file_id),
			}
			row = db.get(Audio, unique_id)
			if row is None:
				row = Audio(id=unique_id, **values)
				db.add(row)
			else:
				for field, value in values.items():
					setattr(row, field, value)
			db.commit()
			results.append({"success": True, "file": filename, "id": unique_id, "url": url})
		except (StorageError, SQLAlchemyError) as e:
			db.rollback()
			logger.error("Error processing file %s: %s", upload.filename, e)
			results.append({"success": False, "file": filename, "error": str(e)})

	stored = sum(1 for r in results if r["success"])
	logger.info("Admin %s uploaded %d/%d audio files", admin.id, stored, len(results))
	return {"ok": True, "results": results, "message": f"Processed {stored} audio files"}
