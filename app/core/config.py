from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
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

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Shared secret for admin endpoints (X-Admin-Key). Empty disables them.
    admin_api_key: str = ""

    # All dates and HH:MM slots are wall-clock values in this zone
    practice_timezone: str = "Europe/Prague"

    # Cancellation / reschedule policy
    reschedule_fee_amount: float = 5.0
    fee_currency: str = "EUR"
    grace_window_hours: float = 1.0
    fee_window_hours: float = 4.0
    # Clients re-fetch the policy on this interval to keep the countdown live
    policy_refresh_seconds: int = 60

    # Upper bound for each availability lookup (booked / blocked)
    slot_fetch_timeout_seconds: float = 5.0

    # Finished or cancelled appointments older than this are purged
    appointment_retention_days: int = 365

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def admin_enabled(self) -> bool:
        return bool(self.admin_api_key)


settings = Settings()
