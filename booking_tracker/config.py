import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booking_tracker.db")

# Summary reducer guards
SUMMARY_DAYS_BACK = int(os.getenv("SUMMARY_DAYS_BACK", "180"))
SUMMARY_MAX_ROWS = int(os.getenv("SUMMARY_MAX_ROWS", "2000"))
# Hard wall-clock budget for every summary fetch (seconds)
SUMMARY_FETCH_TIMEOUT_SECONDS = float(os.getenv("SUMMARY_FETCH_TIMEOUT_SECONDS", "10"))

# Progress aggregation
# Weights that are missing, zero or negative are clamped to this floor
WEIGHT_FLOOR = float(os.getenv("WEIGHT_FLOOR", "0.01"))

# Completion estimate fallback when no milestone has been completed yet
DEFAULT_MILESTONE_DURATION_DAYS = float(os.getenv("DEFAULT_MILESTONE_DURATION_DAYS", "7"))

# Insight heuristics thresholds
INACTIVE_USER_DAYS = int(os.getenv("INACTIVE_USER_DAYS", "30"))
NEW_USER_DAYS = int(os.getenv("NEW_USER_DAYS", "7"))
HIGH_VALUE_CLIENT_THRESHOLD = float(os.getenv("HIGH_VALUE_CLIENT_THRESHOLD", "1000"))
INSIGHTS_CURRENCY = os.getenv("INSIGHTS_CURRENCY", "OMR")

# Redis (ARQ worker for change events)
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# Frontend origin allowed to call the dashboard API
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
