"""RemindCare configuration via pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./data/remindcare.db"

    # Timezone (WIB): all scheduling math happens in this zone
    TIMEZONE: str = "Asia/Jakarta"

    # Evolution API
    EVOLUTION_API_URL: str = "http://localhost:8080"
    EVOLUTION_API_KEY: str = ""
    EVOLUTION_INSTANCE: str = "remindcare"
    WEBHOOK_URL: str = "http://backend:8000/webhooks/evolution"

    # Outbound pacing for scheduled sends (seconds, 0 disables)
    SEND_MIN_DELAY_SECONDS: float = 0
    SEND_MAX_DELAY_SECONDS: float = 0

    # Access control
    ENFORCE_ALLOWLIST: bool = False
    ADMIN_WA_IDS: str = ""
    ALLOWLIST_WA_IDS: str = ""

    # Inbound flood guard
    RATE_LIMIT_MAX_PER_MINUTE: int = 20
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_COOLDOWN_SECONDS: int = 120
    DELETE_CONFIRM_WINDOW_SECONDS: int = 300

    # Max same-answer replies counted per day (<= 0 disables the cap)
    POLL_MAX_RESPONSES_PER_DAY: int = 2

    # Retention
    REMINDER_LOG_RETENTION_DAYS: int = 180

    # Scheduler
    SCHEDULER_TICK_SECONDS: int = 30
    SCHEDULER_MAX_CONCURRENCY: int = 10

    # Retry / backoff
    RETRY_BASE_DELAY_SECONDS: int = 60
    RETRY_MAX_DELAY_SECONDS: int = 3600

    # Workflows
    PREGNANCY_WEEK_LIMIT: int = 46
    LABOR_EDUCATION_START_WEEK: int = 37
    LABOR_EDUCATION_END_WEEK: int = 41
    DELIVERY_VALIDATION_START_WEEK: int = 39
    EDUCATION_SEND_TIME: str = "08:00"

    # Public info
    WEBSITE_URL: str = "remindcares.web.app"
    CONTACT_PHONE: str = "085156894979"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def response_limit(self) -> Optional[int]:
        return self.POLL_MAX_RESPONSES_PER_DAY if self.POLL_MAX_RESPONSES_PER_DAY > 0 else None


@lru_cache
def get_settings() -> Settings:
    return Settings()
