from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from .db import Base


ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


def _new_id() -> str:
	return uuid.uuid4().hex


class User(Base):
	__tablename__ = "users"
	id = Column(String(32), primary_key=True, default=_new_id)
	name = Column(String(128), nullable=True)
	email = Column(String(256), unique=True, index=True, nullable=False)
	password_hash = Column(String(256), nullable=True)
	role = Column(String(16), default=ROLE_USER, nullable=False)
	# Set once the e-mail link has been followed
	email_verified_at = Column(DateTime, nullable=True)
	verification_token = Column(String(64), nullable=True, index=True)
	verification_expires = Column(DateTime, nullable=True)
	image = Column(String(512), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	activities = relationship("UserActivity", back_populates="user", cascade="all, delete-orphan")

	@property
	def is_verified(self) -> bool:
		return self.email_verified_at is not None

	@property
	def is_admin(self) -> bool:
		return self.role == ROLE_ADMIN


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# JWT id (jti); deleting the row revokes the token
	session_id = Column(String(64), primary_key=True)
	user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Audio(Base):
	__tablename__ = "audio"
	# "<folder>_<file name>", stable across re-uploads of the same file
	id = Column(String(256), primary_key=True)
	text = Column(Text, nullable=True)
	audio_path = Column(String(1024), nullable=False)
	file_size = Column(Integer, default=0, nullable=False)
	folder_name = Column(String(256), nullable=False)
	file_name = Column(String(256), nullable=False)
	miss_text = Column(Text, nullable=True)  # masked transcript, blanks are "***"
	chinese = Column(Text, nullable=True)
	original_text = Column(Text, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	activities = relationship("UserActivity", back_populates="audio", cascade="all, delete-orphan")


class UserActivity(Base):
	__tablename__ = "user_activities"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
	audio_id = Column(String(256), ForeignKey("audio.id", ondelete="CASCADE"), index=True, nullable=False)
	is_correct = Column(Boolean, default=False, nullable=False)
	user_answer = Column(Text, nullable=True)
	correct_answer = Column(Text, nullable=True)
	completed_at = Column(DateTime, nullable=True)
	time_spent = Column(Integer, nullable=True)  # seconds
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

	user = relationship("User", back_populates="activities")
	audio = relationship("Audio", back_populates="activities")
