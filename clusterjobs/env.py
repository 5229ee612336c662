import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DB_URL = "sqlite:///var/job.db"


@dataclass(frozen=True)
class Settings:
    db_url: str = DEFAULT_DB_URL
    log_level: str = "INFO"
    log_dir: Optional[Path] = None


def load_env() -> None:
    """Load .env from the working directory if present.
    Variables already set in the environment win.
    """
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def load_settings() -> Settings:
    """Build Settings from CLUSTERJOBS_* environment variables."""
    log_dir = os.getenv("CLUSTERJOBS_LOG_DIR")
    return Settings(
        db_url=os.getenv("CLUSTERJOBS_DB_URL", DEFAULT_DB_URL),
        log_level=os.getenv("CLUSTERJOBS_LOG_LEVEL", "INFO").upper(),
        log_dir=Path(log_dir) if log_dir else None,
    )
