"""Application configuration loaded from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings:
    # SQLite DB URL
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'district_ledger.db'}"
    )

    # API server
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))

    # Actor gate – when disabled every caller acts as admin
    AUTH_ENABLED: bool = os.getenv("AUTH_ENABLED", "false").lower() == "true"
    ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "logs/app.log")
    LEDGER_LOG_FILE: str = os.getenv("LEDGER_LOG_FILE", "logs/ledger.log")

    # CORS
    CORS_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
        ).split(",")
    ]

    # Business limits
    MAX_ADVANCE_RATIO: float = float(os.getenv("MAX_ADVANCE_RATIO", "0.2"))
    MAX_AMOUNT: float = float(os.getenv("MAX_AMOUNT", "100000000"))


settings = Settings()
