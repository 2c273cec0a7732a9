# config.py
import os

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel):
    """Process settings, read once at startup."""

    database_url: str | None = None
    database_sslmode: str = "require"
    data_file: str = "db.json"
    host: str = "0.0.0.0"
    port: int = 4000
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"

    @property
    def env(self) -> str:
        return "postgres" if self.database_url else "demo-json"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        if environ is None:
            load_dotenv()
            environ = os.environ
        origins = environ.get("CORS_ORIGINS", "*")
        return cls(
            # an empty DATABASE_URL= line in .env means "not configured"
            database_url=environ.get("DATABASE_URL") or None,
            database_sslmode=environ.get("DATABASE_SSLMODE", "require"),
            data_file=environ.get("DATA_FILE", "db.json"),
            host=environ.get("HOST", "0.0.0.0"),
            port=int(environ.get("PORT") or 4000),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=environ.get("LOG_LEVEL", "INFO").upper(),
        )
