from dataclasses import dataclass, field
from typing import List
import os

from dotenv import load_dotenv

from mentor.errors import MissingCredential

DEFAULT_BASE_URL = "https://api.intelligence.io.solutions/api/v1"
DEFAULT_MODEL = "meta-llama/Llama-3.3-70B-Instruct"


@dataclass
class Settings:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    request_timeout: float = 60.0
    database_url: str = "sqlite:///./mentor.db"
    graphite_host: str = "localhost"
    graphite_port: int = 8125
    metrics_prefix: str = "codementor"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"])
    log_level: str = "INFO"
    log_format: str = "console"


def load_settings(env_path: str = ".env") -> Settings:
    """Read settings from the environment (and a .env file, if present).

    The upstream credential is loaded once here; a missing key is fatal at startup.
    """
    load_dotenv(env_path)

    api_key = os.environ.get("IO_API_KEY", "").strip()
    if not api_key:
        raise MissingCredential("IO_API_KEY")

    settings = Settings(api_key=api_key)
    settings.base_url = os.environ.get("IO_BASE_URL", settings.base_url)
    settings.model = os.environ.get("IO_MODEL", settings.model)
    settings.request_timeout = float(os.environ.get("IO_TIMEOUT_SECONDS", settings.request_timeout))
    settings.database_url = os.environ.get("DATABASE_URL", settings.database_url)
    settings.graphite_host = os.environ.get("GRAPHITE_HOST", settings.graphite_host)
    settings.graphite_port = int(os.environ.get("GRAPHITE_HOST_PORT", settings.graphite_port))
    settings.metrics_prefix = os.environ.get("METRICS_PREFIX", settings.metrics_prefix)
    settings.log_level = os.environ.get("LOG_LEVEL", settings.log_level)
    settings.log_format = os.environ.get("LOG_FORMAT", settings.log_format).lower()

    origins = os.environ.get("CORS_ORIGINS")
    if origins:
        settings.cors_origins = [origin.strip() for origin in origins.split(",") if origin.strip()]

    return settings
