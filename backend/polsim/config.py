"""Engine settings."""

import os
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _seed() -> int | None:
    raw = os.getenv("POLSIM_SEED")
    return int(raw) if raw else None


# Simulation
SEED = _seed()
START_DATE = date.fromisoformat(os.getenv("POLSIM_START_DATE", "1958-01-01"))
FIRST_ELECTION_DATE = date.fromisoformat(os.getenv("POLSIM_FIRST_ELECTION_DATE", "1959-08-19"))
ELECTION_INTERVAL_YEARS = 4
EVENT_CHANCE = float(os.getenv("POLSIM_EVENT_CHANCE", "0.15"))
CABINET_SIZE = int(os.getenv("POLSIM_CABINET_SIZE", "10"))
DEFAULT_SPEED_MS = 500

# Logging
LOG_LEVEL = os.getenv("POLSIM_LOG_LEVEL", "INFO")
LOG_DIR = Path(os.getenv("POLSIM_LOG_DIR", "logs"))
LOG_TO_FILE = os.getenv("POLSIM_LOG_TO_FILE", "").lower() in ("1", "true", "yes")

# Debate speeches
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
LLM_MODEL = os.getenv("POLSIM_LLM_MODEL", "llama3.1:8b")

# API
APP_ORIGINS = [o.strip() for o in os.getenv(
    "APP_ORIGINS",
    "http://localhost:5173,http://localhost:5174,http://localhost:8000",
).split(",") if o.strip()]
