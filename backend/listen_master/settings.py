from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	# Hours a verification link stays valid
	verification_ttl_hours: int = Field(default=24, validation_alias="VERIFICATION_TTL_HOURS")
	# Seed admin, created at startup when both are set
	seed_admin_email: str | None = Field(default=None, validation_alias="SEED_ADMIN_EMAIL")
	seed_admin_password: str | None = Field(default=None, validation_alias="SEED_ADMIN_PASSWORD")

	# Uploaded audio lives under media_root and is served at media_url
	media_root: str = Field(default="./media", validation_alias="MEDIA_ROOT")
	media_url: str = Field(default="/media", validation_alias="MEDIA_URL")
	# Overrides origin detection for links in mails and redirects
	public_base_url: str | None = Field(default=None, validation_alias="PUBLIC_BASE_URL")

	# Mail (Resend HTTP API)
	resend_api_key: str | None = Field(default=None, validation_alias="RESEND_API_KEY")
	auth_email_from: str | None = Field(default=None, validation_alias="AUTH_EMAIL_FROM")
	resend_base_url: str = Field(default="https://api.resend.com/emails", validation_alias="RESEND_BASE_URL")

	# Reject submissions whose answer count differs from the blank count
	strict_answer_count: bool = Field(default=False, validation_alias="STRICT_ANSWER_COUNT")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
