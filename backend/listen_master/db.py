from __future__ import annotations
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base


DEFAULT_DATABASE_URL = "sqlite:///./app.db"

Base = declarative_base()


class Database:
	"""Engine and session factory owned by the running app.

	Built once by ``create_app`` and kept on ``app.state.database``; route
	handlers get per-request sessions through :func:`get_db`.
	"""

	def __init__(self, url: str | None = None) -> None:
		self.url = url or DEFAULT_DATABASE_URL
		connect_args = {"check_same_thread": False} if self.url.startswith("sqlite") else {}
		self.engine: Engine = create_engine(self.url, connect_args=connect_args, future=True)
		self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, future=True)

	def create_all(self) -> None:
		# Import registers the mapped classes on Base.metadata
		from . import models  # noqa: F401
		Base.metadata.create_all(bind=self.engine)

	def session(self) -> Session:
		return self.session_factory()

	def dispose(self) -> None:
		self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
	db = request.app.state.database.session()
	try:
		yield db
	finally:
		db.close()
