from dotenv import load_dotenv
import os
import logging

logger = logging.getLogger(__name__)

# ✅ LOAD ENV FIRST
load_dotenv()


def _get_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL")

# -------------------------------------
# Auth
# -------------------------------------
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRATION_MINUTES = int(os.getenv("JWT_EXPIRATION_MINUTES", "1440"))

if JWT_SECRET_KEY == "dev-secret-key-change-me":
    logger.warning("JWT_SECRET_KEY is not set, using the development default")

# -------------------------------------
# Complaint lifecycle
# -------------------------------------
COMPLAINT_SLA_HOURS = int(os.getenv("COMPLAINT_SLA_HOURS", "72"))

DUPLICATE_DETECTION_ENABLED = _get_bool("DUPLICATE_DETECTION_ENABLED", True)
DUPLICATE_DISTANCE_THRESHOLD_KM = float(os.getenv("DUPLICATE_DISTANCE_THRESHOLD_KM", "0.2"))
DUPLICATE_HOURS_THRESHOLD = int(os.getenv("DUPLICATE_HOURS_THRESHOLD", "48"))

ESCALATION_ENABLED = _get_bool("ESCALATION_ENABLED", True)
ESCALATION_INTERVAL_SECONDS = int(os.getenv("ESCALATION_INTERVAL_SECONDS", "3600"))

# -------------------------------------
# Reverse geocoding (Nominatim)
# -------------------------------------
GEOCODING_ENABLED = _get_bool("GEOCODING_ENABLED", True)
GEOCODING_URL = os.getenv("GEOCODING_URL", "https://nominatim.openstreetmap.org/reverse")
GEOCODING_USER_AGENT = os.getenv("GEOCODING_USER_AGENT", "PublicVision-CivicIssueApp/1.0")
GEOCODING_TIMEOUT_SECONDS = float(os.getenv("GEOCODING_TIMEOUT_SECONDS", "5"))

# -------------------------------------
# Push notifications (SSE)
# -------------------------------------
PUSH_QUEUE_SIZE = int(os.getenv("PUSH_QUEUE_SIZE", "100"))
PUSH_HEARTBEAT_SECONDS = float(os.getenv("PUSH_HEARTBEAT_SECONDS", "15"))

# -------------------------------------
# Misc
# -------------------------------------
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))
