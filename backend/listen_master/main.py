import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.responses import RedirectResponse

from .db import Database
from .mailer import ResendMailer
from .settings import Settings, settings as default_settings
from .storage import LocalAudioStorage
from .routers import activities
from .routers import audio
from .routers import auth
from .routers import practice
from .routers import upload
from .routers import users

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
	settings = settings or default_settings
	logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

	database = Database(settings.database_url)
	storage = LocalAudioStorage(settings.media_root, settings.media_url)
	mailer = ResendMailer.from_settings(settings)

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		# Initialize DB schema, media directory and the seed admin
		storage.ensure_root()
		database.create_all()
		db = database.session()
		try:
			auth.ensure_seed_admin(db, settings)
		finally:
			db.close()
		if not mailer.configured:
			logger.warning("Mail is not configured; verification emails will fail")
		if not settings.public_base_url:
			logger.warning("PUBLIC_BASE_URL is not set; verification links use the request's Origin/Host headers")
		yield
		database.dispose()

	app = FastAPI(title="Listen Master API", lifespan=lifespan)
	app.state.settings = settings
	app.state.database = database
	app.state.storage = storage
	app.state.mailer = mailer

	app.include_router(auth.router)
	app.include_router(users.router)
	app.include_router(audio.router)
	app.include_router(upload.router)
	app.include_router(practice.router)
	app.include_router(activities.router)

	# Uploaded audio; the directory is created at startup
	app.mount(settings.media_url, StaticFiles(directory=storage.root, check_dir=False), name="media")

	@app.get("/", include_in_schema=False)
	async def redirect_root_to_docs():
		return RedirectResponse(url="/docs")

	@app.get("/info")
	def info():
		return {"status": "ok", "mail_configured": mailer.configured}

	return app


app = create_app()
