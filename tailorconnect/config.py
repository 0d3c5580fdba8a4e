import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tailorconnect.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Identity collaborator: resolves a bearer token to {"id", "role"}
IDENTITY_SERVICE_URL = os.getenv("IDENTITY_SERVICE_URL")
IDENTITY_TIMEOUT_SECONDS = float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "5"))

# Notification collaborator: fire-and-forget webhook, log-only when unset
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5"))

# Payment collaborator signs confirmation callbacks with this secret
PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET")

# When true, quotes can only be submitted after the consultation step
REQUIRE_CONSULTATION_BEFORE_QUOTE = (
    os.getenv("REQUIRE_CONSULTATION_BEFORE_QUOTE", "false").lower() == "true"
)

# Order work-plan policy
ORDER_PLAN_DEADLINE_DAYS = int(os.getenv("ORDER_PLAN_DEADLINE_DAYS", "7"))
ORDER_MAX_PLAN_REVISIONS = int(os.getenv("ORDER_MAX_PLAN_REVISIONS", "3"))

# Schedule defaults for tailors that never saved availability
DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "60"))
DEFAULT_BUFFER_MINUTES = int(os.getenv("DEFAULT_BUFFER_MINUTES", "15"))
DEFAULT_ADVANCE_BOOKING_DAYS = int(os.getenv("DEFAULT_ADVANCE_BOOKING_DAYS", "30"))
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")

# Rate limiting for booking creation (only active when REDIS_URL is set)
REDIS_URL = os.getenv("REDIS_URL")
BOOKING_RATE_LIMIT = int(os.getenv("BOOKING_RATE_LIMIT", "10"))
BOOKING_RATE_WINDOW_SECONDS = int(os.getenv("BOOKING_RATE_WINDOW_SECONDS", "60"))

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000,http://localhost:19006",
).split(",")
