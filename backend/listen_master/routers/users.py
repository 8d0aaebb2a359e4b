from __future__ import annotations
import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from ..db import get_db
from ..mailer import MailError, ResendMailer, get_mailer
from ..models import User, UserActivity, ROLES, ROLE_USER
from ..settings import Settings
from ..stats import compute_user_stats
from .auth import (
	EMAIL_PATTERN,
	PublicUser,
	get_current_user,
	get_settings,
	hash_password,
	new_verification_token,
	require_admin,
	send_verification_mail,
)

router = APIRouter(prefix="/users", tags=["users"])

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def _clean_name(v: str) -> str:
	v = v.strip()
	if not v:
		raise ValueError("name must not be blank")
	return v


def _clean_email(v: str) -> str:
	v = v.strip()
	if not _EMAIL_RE.match(v):
		raise ValueError("invalid email address")
	return v


class RegisterRequest(BaseModel):
	name: str
	email: str
	password: str

	@field_validator("name")
	@classmethod
	def _name(cls, v: str) -> str:
		return _clean_name(v)

	@field_validator("email")
	@classmethod
	def _email(cls, v: str) -> str:
		return _clean_email(v)

	@field_validator("password")
	@classmethod
	def _password(cls, v: str) -> str:
		if len(v) < 6:
			raise ValueError("password must be at least 6 characters")
		return v


class UpdateUserRequest(BaseModel):
	id: str
	name: Optional[str] = None
	email: Optional[str] = None
	role: Optional[str] = None

	@field_validator("name")
	@classmethod
	def _name(cls, v: Optional[str]) -> Optional[str]:
		return None if v is None else _clean_name(v)

	@field_validator("email")
	@classmethod
	def _email(cls, v: Optional[str]) -> Optional[str]:
		return None if v is None else _clean_email(v)

	@field_validator("role")
	@classmethod
	def _role(cls, v: Optional[str]) -> Optional[str]:
		if v is not None and v not in ROLES:
			raise ValueError(f"role must be one of {list(ROLES)}")
		return v


@router.post("/register", status_code=201)
async def register(
	req: RegisterRequest,
	request: Request,
	db: Session = Depends(get_db),
	mailer: ResendMailer = Depends(get_mailer),
	settings: Settings = Depends(get_settings),
):
	existing = db.query(User).filter(User.email == req.email).first()
	if existing:
		raise HTTPException(status_code=409, detail="email already registered")
	token, expires = new_verification_token(settings)
	row = User(
		name=req.name,
		email=req.email,
		password_hash=hash_password(req.password),
		role=ROLE_USER,
		verification_token=token,
		verification_expires=expires,
	)
	db.add(row)
	db.commit()
	logger.info("Registered user %s", row.id)
	try:
		await send_verification_mail(request, mailer, settings, row)
	except MailError as e:
		logger.error("Registered %s but verification mail failed: %s", row.email, e)
		raise HTTPException(status_code=500, detail="Registered, but the verification email could not be sent")
	return {"ok": True, "message": "Registered, check your inbox for the verification email"}


@router.get("", response_model=List[PublicUser])
async def list_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	rows = db.query(User).order_by(User.created_at.desc()).all()
	return [PublicUser.from_row(r) for r in rows]


@router.post("/update")
async def update_user(req: UpdateUserRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	changes = req.model_dump(exclude={"id"}, exclude_none=True)
	if not changes:
		raise HTTPException(status_code=400, detail="no fields to update")
	row = db.get(User, req.id)
	if not row:
		raise HTTPException(status_code=404, detail="user not found")
	if "email" in changes and changes["email"] != row.email:
		clash = db.query(User).filter(User.email == changes["email"]).first()
		if clash:
			raise HTTPException(status_code=409, detail="email already registered")
	for field, value in changes.items():
		setattr(row, field, value)
	db.commit()
	logger.info("Admin %s updated user %s: %s", admin.id, row.id, sorted(changes))
	return {"ok": True, "user": PublicUser.from_row(row)}


@router.get("/stats")
async def user_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	activities = (
		db.query(UserActivity)
		.filter(UserActivity.user_id == user.id)
		.order_by(UserActivity.created_at.desc())
		.all()
	)
	stats = compute_user_stats(activities)
	stats["user"] = {
		"id": user.id,
		"name": user.name,
		"email": user.email,
		"role": user.role,
		"created_at": user.created_at.isoformat(),
	}
	return {"stats": stats}
