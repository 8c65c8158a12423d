"""
Application settings

All tunables live here so managers and client loops receive them explicitly
instead of reading ambient globals.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./party_game.db"

    # Rooms
    room_expiration_hours: int = 24
    max_players_per_room: int = 200

    # Phase timing (milliseconds)
    countdown_ms: int = 3000
    min_question_dwell_ms: int = 5000
    advance_cooldown_ms: int = 3000

    # Client loops (milliseconds)
    count_poll_interval_ms: int = 2000
    host_ping_interval_ms: int = 3000
    timer_tick_ms: int = 100

    # Presence (milliseconds)
    host_timeout_ms: int = 10000
    player_timeout_ms: int = 60000

    cleanup_token: Optional[str] = None
    allowed_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
