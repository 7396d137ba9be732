import os
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import List
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

MB = 1024 * 1024


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.environ.get(name, default).strip()
    values = [item.strip() for item in raw.split(",") if item.strip()]
    return values or [default]


@dataclass(frozen=True)
class Settings:
    timezone: str = "Asia/Jakarta"
    seed_sample_data: bool = True
    max_upload_mb: int = 10
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            timezone=os.environ.get("APP_TIMEZONE", "Asia/Jakarta"),
            seed_sample_data=_env_bool("SEED_SAMPLE_DATA", True),
            max_upload_mb=int(os.environ.get("MAX_UPLOAD_MB", "10")),
            cors_origins=_env_list("CORS_ORIGINS", "*"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "8000")),
        )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * MB

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()
