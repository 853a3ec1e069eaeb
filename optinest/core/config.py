from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field

class Settings(BaseSettings):
    PROJECT_NAME: str = "Optinest API"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Hosted backend (REST + storage)
    SUPABASE_URL: str = Field("", validation_alias=AliasChoices("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"))
    SUPABASE_SERVICE_ROLE_KEY: str = Field(
        "", validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_SECRET_KEY")
    )
    SUPABASE_STORAGE_BUCKET: str = "nomod"
    REQUEST_TIMEOUT_SECONDS: float = 15.0

    # S3-compatible storage endpoint of the backend
    SUPABASE_S3_REGION: str = "us-east-1"
    SUPABASE_S3_ACCESS_KEY_ID: str = ""
    SUPABASE_S3_SECRET_ACCESS_KEY: str = ""

    # Admin auth
    SECRET_KEY: str = Field("", validation_alias=AliasChoices("SECRET_KEY", "NOMOD_AUTH_SECRET"))
    ALGORITHM: str = "HS256"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 8 # 8 hours
    ADMIN_EMAIL: str = Field("admin@nomod.local", validation_alias=AliasChoices("ADMIN_EMAIL", "NOMOD_ADMIN_EMAIL"))
    ADMIN_PASSWORD: str = Field("nomod-admin", validation_alias=AliasChoices("ADMIN_PASSWORD", "NOMOD_ADMIN_PASSWORD"))

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def supabase_base_url(self) -> str:
        return self.SUPABASE_URL.strip().rstrip("/")

    @property
    def is_supabase_configured(self) -> bool:
        return bool(self.supabase_base_url and self.SUPABASE_SERVICE_ROLE_KEY.strip())

    @property
    def storage_bucket(self) -> str:
        return self.SUPABASE_STORAGE_BUCKET.strip() or "nomod"

    @property
    def storage_public_prefix(self) -> str:
        return f"{self.supabase_base_url}/storage/v1/object/public/{self.storage_bucket}/"

    @property
    def storage_s3_endpoint(self) -> str:
        return f"{self.supabase_base_url}/storage/v1/s3"

    @property
    def auth_secret(self) -> str:
        if self.SECRET_KEY.strip():
            return self.SECRET_KEY.strip()
        if self.is_production:
            raise RuntimeError("SECRET_KEY (or NOMOD_AUTH_SECRET) must be set in production.")
        return "nomod-dev-auth-secret"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
