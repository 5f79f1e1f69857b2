"""
Configuration module for the brokerage appointment service.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.constants import APPOINTMENT_DURATION_MINUTES, DEFAULT_AGENT_ID

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase (service role key, bypasses RLS for server-side writes)
    supabase_url: str = ""
    supabase_key: str = ""

    # EasyBroker listing API
    easybroker_api_key: Optional[str] = None
    easybroker_base_url: str = "https://api.easybroker.com/v1"
    easybroker_timeout_seconds: float = 10.0

    # Booking
    default_agent_id: str = DEFAULT_AGENT_ID
    appointment_duration_minutes: int = APPOINTMENT_DURATION_MINUTES
    # Serialize check-then-insert per slot inside this process
    serialize_slot_bookings: bool = True

    # Counter drift repair job
    drift_repair_enabled: bool = True
    drift_repair_interval_minutes: int = 15
    drift_repair_days_ahead: int = 14

    timezone: str = "America/Mexico_City"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"  # development, staging, production
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """True when running with ENVIRONMENT=production."""
        return self.environment.lower() == "production"

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = ["supabase_url", "supabase_key"]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            if not value:
                missing.append(field)
                continue

            # Placeholder values copied from .env.example
            if str(value).lower().startswith("your_"):
                missing.append(field)

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )

        if self.appointment_duration_minutes <= 0:
            raise ValueError("APPOINTMENT_DURATION_MINUTES must be positive")


# Global settings instance
settings = Settings()
