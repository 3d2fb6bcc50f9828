"""
Shortlinks configuration.
All secrets/tunables come from environment variables.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # --- App ---
    app_name: str = "Shortlinks"
    debug: bool = False
    domain: str = "localhost:8008"

    # --- Database ---
    database_url: str = "sqlite+aiosqlite:///./database/shortlinks.db"

    # --- Code pool ---
    codes_file: str = "./database/codes.3.txt"
    code_alphabet: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    code_length: int = 3

    # --- Auth ---
    require_login: bool = True
    session_lifetime: int = 86400  # seconds
    admin_username: str = "admin"
    admin_password: str = "password"  # only used to bootstrap an empty users table
    totp_issuer: str = "shortlinks"

    # --- Listing ---
    page_size: int = 5

    # --- Analytics capture ---
    analytics_enabled: bool = False
    analytics_ip: bool = True
    analytics_useragent: bool = True
    analytics_referer: bool = True
    analytics_country: bool = True  # CF-IPCountry
    analytics_city: bool = True     # CF-IPCity

    model_config = {"env_prefix": "SL_", "env_file": ".env"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
