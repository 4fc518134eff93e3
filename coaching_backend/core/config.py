import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./coaching.db")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

APPOINTMENT_DURATION_MINUTES = int(os.getenv("APPOINTMENT_DURATION_MINUTES", "15"))
MAX_APPOINTMENT_NOTES_LENGTH = int(os.getenv("MAX_APPOINTMENT_NOTES_LENGTH", "600"))

AUTO_SCHEDULING_INTERVAL_SECONDS = float(os.getenv("AUTO_SCHEDULING_INTERVAL_SECONDS", "60"))
AUTO_SCHEDULING_ON_STARTUP = _get_bool(os.getenv("AUTO_SCHEDULING_ON_STARTUP"), default=True)

STORE_RETRY_ATTEMPTS = int(os.getenv("STORE_RETRY_ATTEMPTS", "3"))
STORE_RETRY_MAX_WAIT_SECONDS = float(os.getenv("STORE_RETRY_MAX_WAIT_SECONDS", "4"))

DEFAULT_WORKING_HOURS = {
    "session1Start": "17:00",
    "session1End": "20:00",
    "session2Start": "20:00",
    "session2End": "22:00",
}


def validate_runtime_config() -> None:
    if APPOINTMENT_DURATION_MINUTES <= 0 or 60 % APPOINTMENT_DURATION_MINUTES != 0:
        raise RuntimeError("APPOINTMENT_DURATION_MINUTES must be a positive divisor of 60.")
    if AUTO_SCHEDULING_INTERVAL_SECONDS <= 0:
        raise RuntimeError("AUTO_SCHEDULING_INTERVAL_SECONDS must be positive.")
    if STORE_RETRY_ATTEMPTS < 1:
        raise RuntimeError("STORE_RETRY_ATTEMPTS must be at least 1.")
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at a server database in production.")
