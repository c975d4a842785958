"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings

# Leagues shown on the dashboard (API-Football league IDs)
DEFAULT_LEAGUE_IDS = (
    "39,40,41,42,43,49,50,51,48,45,140,556,141,135,547,136,78,79,529,61,62,63,"
    "66,188,179,180,183,184,103,104,113,114,94,95,119,120,88,245,244,98,99,292,"
    "253,219,144,207,197,203,172,71,72,128,129,271,383,283,345,262,263,106,235,"
    "848,1,2,3,4"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./fixturecast.db"

    # API-Football (RapidAPI). Empty key = fetch client refuses to start.
    RAPIDAPI_KEY: str = ""
    RAPIDAPI_HOST: str = "api-football-v1.p.rapidapi.com"
    API_TIMEOUT_SECONDS: float = 30.0
    API_MAX_RETRIES: int = 3
    API_RETRY_DELAY_SECONDS: float = 2.0

    # Odds source: one bookmaker, one market
    TARGET_BOOKMAKER_ID: int = 6      # Betway
    MATCH_WINNER_BET_ID: int = 1      # Match Winner (1X2)

    LEAGUE_IDS: str = DEFAULT_LEAGUE_IDS

    # Section windows
    LOCAL_TIMEZONE: str = "Europe/Sofia"
    SECTION_CUTOVER_HOUR: int = 10

    # Base data refresh throttle
    BASE_DATA_COOLDOWN_MINUTES: int = 15

    # Retention
    HISTORY_WEEKS_TO_KEEP: int = 3
    JOB_RUNS_DAYS_TO_KEEP: int = 7

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SECTION_SYNC_INTERVAL_MINUTES: int = 15
    LIVE_SYNC_INTERVAL_SECONDS: int = 60
    HISTORY_CLEANUP_HOUR: int = 4  # Local time

    # Trigger endpoints (external timer). Empty = open (dev only).
    CRON_SECRET: str = ""
    CRON_SECRET_HEADER: str = "X-Cron-Secret"

    # Rate limiting for public endpoints
    RATE_LIMIT_PER_MINUTE: str = "60/minute"

    # /metrics Bearer token. Empty = public.
    METRICS_BEARER_TOKEN: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def league_ids(self) -> list[int]:
        """Parsed LEAGUE_IDS (order preserved, duplicates dropped)."""
        seen: list[int] = []
        for part in self.LEAGUE_IDS.split(","):
            part = part.strip()
            if not part:
                continue
            league_id = int(part)
            if league_id not in seen:
                seen.append(league_id)
        return seen


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
