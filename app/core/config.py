from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from backend project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Clinic time zone as a fixed offset from UTC (no DST). Default is UTC+05:30.
    clinic_utc_offset_minutes: int = 330

    # Slot/appointment business rules
    slot_interval_minutes: int = 15
    # "multi": several non-overlapping blocks per weekday; "single": one block per weekday
    availability_policy: Literal["single", "multi"] = "multi"
    enforce_availability_on_confirm: bool = True
    confirm_max_attempts: int = 3
    # PENDING requests whose requested date is this many days in the past get cancelled
    pending_expiry_days: int = 7
    pending_expiry_interval_seconds: int = 6 * 60 * 60

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Clinic Scheduling"
    # Branding and contact in footer
    site_name: str = "Clinic Scheduling"
    contact_email: str = ""
    contact_phone: str = ""
    contact_address: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)


settings = Settings()
