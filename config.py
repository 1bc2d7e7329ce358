import logging
import os
from dataclasses import dataclass, field
from typing import Dict

logger = logging.getLogger(__name__)

# Base directory (root of the project)
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

DEFAULT_PORTS = {
    "streaks": 5555,
    "trend": 5560,
    "progress": 5564,
}
PORT_ENV = {
    "streaks": "STREAKS_PORT",
    "trend": "TREND_PORT",
    "progress": "PROGRESS_PORT",
}
EXAMPLES_URL = (
    "https://docs.google.com/spreadsheets/d/e/2PACX-1vS2YRJx2Dz2rx66UTq0qEY9w_sxD1ndiR-"
    "8FU-xo0m2oTQAEdM4ZhjHC4x2ta9uV4iTcKTEYjus5vKL/pub?gid=591473449&single=true&output=csv"
)


@dataclass
class Settings:
    data_path: str = "data/habits.json"
    shared_store_path: str = "data/shared.json"
    export_dir: str = "exports"
    log_file: str = "logs/habits.log"
    log_level: str = "INFO"
    examples_url: str = EXAMPLES_URL
    http_timeout: float = 10.0
    service_timeout_ms: int = 1500
    ports: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_PORTS))


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default


def load_settings() -> Settings:
    """Settings from the environment, falling back to the defaults above."""
    defaults = Settings()
    return Settings(
        data_path=os.getenv("HABITS_DATA_PATH", defaults.data_path),
        shared_store_path=os.getenv("HABITS_SHARED_STORE", defaults.shared_store_path),
        export_dir=os.getenv("HABITS_EXPORT_DIR", defaults.export_dir),
        log_file=os.getenv("HABITS_LOG_FILE", defaults.log_file),
        log_level=os.getenv("HABITS_LOG_LEVEL", defaults.log_level).upper(),
        examples_url=os.getenv("HABITS_EXAMPLES_URL", defaults.examples_url),
        http_timeout=_env_number("HABITS_HTTP_TIMEOUT", defaults.http_timeout, float),
        service_timeout_ms=_env_number("SERVICE_TIMEOUT_MS", defaults.service_timeout_ms, int),
        ports={
            name: _env_number(PORT_ENV[name], port, int)
            for name, port in DEFAULT_PORTS.items()
        },
    )
