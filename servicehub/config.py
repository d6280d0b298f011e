import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./servicehub.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))

# Business calendar - all opening hours and appointment dates are local to this zone
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Europe/Berlin")
BUSINESS_NAME = os.getenv("BUSINESS_NAME", "WilkenPoelker")
BUSINESS_ADDRESS = os.getenv("BUSINESS_ADDRESS", "Musterstraße 1, 49000 Osnabrück")

# Calendar export (UID = {appointment_id}@ICAL_UID_DOMAIN)
ICAL_UID_DOMAIN = os.getenv("ICAL_UID_DOMAIN", "wilkenpoelker.de")

# Push notifications (Expo push service)
EXPO_PUSH_URL = os.getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
PUSH_ENABLED = os.getenv("PUSH_ENABLED", "true").lower() == "true"
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))

# Reminder sweep cadence
REMINDER_INTERVAL_MINUTES = int(os.getenv("REMINDER_INTERVAL_MINUTES", "30"))

# CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://wilkenpoelker.de,http://localhost:8081,http://localhost:19006",
).split(",")
