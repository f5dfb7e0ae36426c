from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


_DEFAULT_DATA_DIR = Path.home() / ".webnav" / "data"

_DEFAULT_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WEBNAV_",
        extra="ignore",
    )

    db_path: str = str(_DEFAULT_DATA_DIR / "webnav.db")
    request_timeout: int = 20
    user_agent: str = _DEFAULT_UA
    log_level: str = "INFO"
    sheet_dir: str = str(_DEFAULT_DATA_DIR / "sheets")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    get_settings.cache_clear()
