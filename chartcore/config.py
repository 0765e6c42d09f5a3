# chartcore/config.py
import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Loads variables from a local .env file into environment variables (dev only).
load_dotenv()


@dataclass(frozen=True)
class Settings:
    # App config
    app_env: str
    log_level: str
    provider: str

    # Provider config (Biying REST + 1m webhook)
    biying_base_url: str
    biying_licence: str
    intraday_base_url: str
    http_timeout_seconds: float

    # Chart defaults
    refresh_seconds: float
    chart_height: int

    # Offline provider (CSV files)
    offline_data_dir: str = "data"


def get_settings() -> Settings:
    """
    Reads env vars and returns a Settings object.
    The licence is only checked when a provider is actually built.
    """
    return Settings(
        app_env=os.getenv("APP_ENV", "local"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        provider=os.getenv("PROVIDER", "BIYING"),
        biying_base_url=os.getenv("BIYING_BASE_URL", "https://api.biyingapi.com").rstrip("/"),
        biying_licence=os.getenv("BIYING_LICENCE", "").strip(),
        intraday_base_url=os.getenv("INTRADAY_BASE_URL", "http://localhost:5678").rstrip("/"),
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "20")),
        refresh_seconds=float(os.getenv("REFRESH_SECONDS", "60")),
        chart_height=int(os.getenv("CHART_HEIGHT", "400")),
        offline_data_dir=os.getenv("OFFLINE_DATA_DIR", "data"),
    )
