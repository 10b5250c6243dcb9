# flightdesk/config.py
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App
    APP_ENV: Literal["dev", "prod", "staging"] = "dev"
    TZ: str = "America/New_York"

    # OpenAI (intent extraction)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"

    # SerpApi (Google Flights engine)
    SERP_API_KEY: str = ""
    SERPAPI_BASE_URL: str = "https://serpapi.com/search.json"

    # Search
    MAX_DESTINATIONS: int = 15
    MAX_RESULTS: int = 10
    HISTORY_TURNS: int = 6

    # Booking
    FALLBACK_BOOKING_URL: str = "https://www.google.com/travel/flights"

    # Sessions
    SESSION_TTL_SECONDS: int = 900  # 15 minutes

    # read .env and ignore any extra keys so this doesn't break again
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
