from datetime import datetime, timedelta, timezone
from typing import Optional
import html
import logging
import secrets
import uuid

from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, field_validator

from ..settings import Settings
from sqlalchemy.orm import Session
from ..db import get_db
from ..mailer import MailError, ResendMailer, get_mailer, verification_email
from ..models import AuthSession, User, ROLE_ADMIN
from ..urls import origin_from_request

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class PublicUser(BaseModel):
	id: str
	name: Optional[str] = None
	email: str
	role: str
	email_verified: bool
	image: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	@classmethod
	def from_row(cls, row: User) -> "PublicUser":
		return cls(
			id=row.id,
			name=row.name,
			email=row.email,
			role=row.role,
			email_verified=row.is_verified,
			image=row.image,
			created_at=row.created_at,
			updated_at=row.updated_at,
		)


class LoginRequest(BaseModel):
	email: str
	password: str


class LoginResponse(Token):
	user: PublicUser


class EmailRequest(BaseModel):
	email: str

	@field_validator("email")
	@classmethod
	def _strip(cls, v: str) -> str:
		v = v.strip()
		if not v:
			raise ValueError("email is required")
		return v


def get_settings(request: Request) -> Settings:
	return request.app.state.settings


def hash_password(password: str) -> str:
	# bcrypt only looks at the first 72 bytes
	password_bytes = password.encode('utf-8')
	if len(password_bytes) > 72:
		password = password_bytes[:72].decode('utf-8', errors='ignore')
	return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
	password_bytes = plain_password.encode('utf-8')
	if len(password_bytes) > 72:
		plain_password = password_bytes[:72].decode('utf-8', errors='ignore')
	return pwd_context.verify(plain_password, hashed_password)


def new_verification_token(settings: Settings) -> tuple[str, datetime]:
	return secrets.token_hex(32), datetime.utcnow() + timedelta(hours=settings.verification_ttl_hours)


def authenticate_user(db: Session, email: str, password: str) -> User:
	"""Return the user for valid credentials; raise 401/403 otherwise."""
	row = db.query(User).filter(User.email == email).first()
	if not row or not row.password_hash or not verify_password(password, row.password_hash):
		raise HTTPException(status_code=401, detail="Incorrect email or password")
	if not row.is_verified:
		raise HTTPException(status_code=403, detail="Email not verified")
	return row


def _resolve_expiry(settings: Settings, expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=30)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(settings: Settings, data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(settings, expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _start_session(db: Session, settings: Settings, user: User) -> str:
	session_id = uuid.uuid4().hex
	access_token = create_access_token(settings, {"sub": user.id, "jti": session_id})
	db.add(AuthSession(session_id=session_id, user_id=user.id))
	db.commit()
	logger.info("User %s signed in", user.id)
	return access_token


@router.post("/token", response_model=Token)
async def login_for_token(
	form_data: OAuth2PasswordRequestForm = Depends(),
	db: Session = Depends(get_db),
	settings: Settings = Depends(get_settings),
):
	user = authenticate_user(db, form_data.username.strip(), form_data.password)
	return Token(access_token=_start_session(db, settings, user))


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
	email = req.email.strip()
	if not email or not req.password:
		raise HTTPException(status_code=400, detail="email and password are required")
	user = authenticate_user(db, email, req.password)
	return LoginResponse(access_token=_start_session(db, settings, user), user=PublicUser.from_row(user))


def _decode_token(token: str, settings: Settings) -> tuple[str, str]:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	user_id: str | None = payload.get("sub")
	jti: str | None = payload.get("jti")
	if user_id is None or jti is None:
		raise credentials_exception
	return user_id, jti


def get_current_session(
	token: str = Depends(oauth2_scheme),
	db: Session = Depends(get_db),
	settings: Settings = Depends(get_settings),
) -> AuthSession:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	user_id, jti = _decode_token(token, settings)
	# The session row must still exist; logout and admin revocation delete it
	row = db.get(AuthSession, jti)
	if not row or row.user_id != user_id:
		raise credentials_exception
	row.last_activity_at = datetime.utcnow()
	db.commit()
	return row


def get_current_user(session: AuthSession = Depends(get_current_session), db: Session = Depends(get_db)) -> User:
	user = db.get(User, session.user_id)
	if user is None:
		raise HTTPException(status_code=401, detail="Could not validate credentials")
	return user


def require_admin(user: User = Depends(get_current_user)) -> User:
	if not user.is_admin:
		raise HTTPException(status_code=403, detail="Admin role required")
	return user


@router.get("/me", response_model=PublicUser)
async def me(user: User = Depends(get_current_user)):
	return PublicUser.from_row(user)


@router.post("/logout")
async def logout(session: AuthSession = Depends(get_current_session), db: Session = Depends(get_db)):
	db.delete(session)
	db.commit()
	return {"ok": True}


async def send_verification_mail(request: Request, mailer: ResendMailer, settings: Settings, user: User) -> None:
	origin = origin_from_request(request, settings.public_base_url)
	url = f"{origin}/auth/verify-email?token={user.verification_token}"
	logger.debug("Verification URL for %s: %s", user.email, url)
	await mailer.send(user.email, "Verify your e-mail address", verification_email(user.name, url, settings.verification_ttl_hours))


@router.post("/send-verification")
async def send_verification(
	req: EmailRequest,
	request: Request,
	db: Session = Depends(get_db),
	mailer: ResendMailer = Depends(get_mailer),
	settings: Settings = Depends(get_settings),
):
	user = db.query(User).filter(User.email == req.email).first()
	if not user:
		raise HTTPException(status_code=404, detail="User not found")
	if user.is_verified:
		raise HTTPException(status_code=400, detail="Email already verified")
	user.verification_token, user.verification_expires = new_verification_token(settings)
	db.commit()
	try:
		await send_verification_mail(request, mailer, settings, user)
	except MailError as e:
		logger.error("Failed to send verification mail to %s: %s", user.email, e)
		raise HTTPException(status_code=500, detail="Failed to send verification email")
	return {"ok": True, "message": "Verification email sent"}


_VERIFIED_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta http-equiv="refresh" content="2;url={target}">
<title>Email verified</title>
</head>
<body>
<h1>Email verified!</h1>
<p>Your e-mail address is confirmed. Redirecting to the login page...</p>
<p><a href="{target}">Continue</a></p>
</body>
</html>
"""


@router.get("/verify-email", response_class=HTMLResponse)
async def verify_email(
	request: Request,
	token: Optional[str] = None,
	db: Session = Depends(get_db),
	settings: Settings = Depends(get_settings),
):
	token = (token or "").strip()
	if not token:
		raise HTTPException(status_code=400, detail="Verification token is missing")
	user = db.query(User).filter(User.verification_token == token).first()
	if not user:
		raise HTTPException(status_code=400, detail="Verification token is invalid")
	if user.is_verified:
		raise HTTPException(status_code=400, detail="Email already verified")
	if user.verification_expires and user.verification_expires < datetime.utcnow():
		raise HTTPException(status_code=400, detail="Verification token expired, request a new email")
	user.email_verified_at = datetime.utcnow()
	user.verification_token = None
	user.verification_expires = None
	db.commit()
	logger.info("Verified email for user %s", user.id)
	target = f"{origin_from_request(request, settings.public_base_url)}/login?verified=true"
	return HTMLResponse(_VERIFIED_PAGE.format(target=html.escape(target, quote=True)))


def ensure_seed_admin(db: Session, settings: Settings) -> Optional[User]:
	email = settings.seed_admin_email
	password = settings.seed_admin_password
	if not email or not password:
		return None
	row = db.query(User).filter(User.email == email).first()
	if row:
		return row
	row = User(
		name="admin",
		email=email,
		password_hash=hash_password(password),
		role=ROLE_ADMIN,
		email_verified_at=datetime.utcnow(),
	)
	db.add(row)
	db.commit()
	logger.info("Created seed admin %s", email)
	return row
