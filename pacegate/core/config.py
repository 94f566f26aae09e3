"""
Environment configuration for the control plane.
Runtime knobs (pace, mode, budget, thresholds) live in system_state, not here.
"""

import os
from pathlib import Path

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/pacegate.db")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# External agent collaborator
AGENT_TRANSPORT = os.getenv("AGENT_TRANSPORT", "cli")  # cli|http|mock
AGENT_BIN = os.getenv("AGENT_BIN", os.getenv("OPENCLAW_BIN", "openclaw"))
AGENT_HTTP_URL = os.getenv("AGENT_HTTP_URL", "http://localhost:7171/agent")
AGENT_DEFAULT_TIMEOUT_SEC = int(os.getenv("AGENT_DEFAULT_TIMEOUT_SEC", "120"))
AGENT_MAX_OUTPUT_BYTES = int(os.getenv("AGENT_MAX_OUTPUT_BYTES", str(1024 * 1024)))
DEFAULT_NODE = os.getenv("DEFAULT_NODE", "local")

# Sleep scheduler
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
SCHEDULER_INTERVAL_SEC = int(os.getenv("SCHEDULER_INTERVAL_SEC", "60"))

# Budget guard: refuse dispatches once the 24h ceiling is reached
BUDGET_GUARD_ENABLED = os.getenv("BUDGET_GUARD_ENABLED", "false").lower() == "true"

# Research dossier topics (reference data)
DOSSIER_TOPICS_PATH = os.getenv(
    "DOSSIER_TOPICS_PATH",
    str(Path(__file__).resolve().parent.parent / "data" / "research_topics.json")
)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def is_scheduler_enabled():
    """Check if the sleep scheduler should run with the API process."""
    return SCHEDULER_ENABLED


def get_scheduler_interval():
    """Get scheduler tick interval in seconds."""
    return SCHEDULER_INTERVAL_SEC


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    path = db_path or DB_PATH
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if AGENT_TRANSPORT not in ["cli", "http", "mock"]:
        issues.append(f"Invalid AGENT_TRANSPORT: {AGENT_TRANSPORT}")

    if AGENT_DEFAULT_TIMEOUT_SEC < 1:
        issues.append("AGENT_DEFAULT_TIMEOUT_SEC must be >= 1")

    if AGENT_MAX_OUTPUT_BYTES < 1024:
        issues.append("AGENT_MAX_OUTPUT_BYTES must be >= 1024")

    if SCHEDULER_INTERVAL_SEC < 1:
        issues.append("SCHEDULER_INTERVAL_SEC must be >= 1")

    if not Path(DOSSIER_TOPICS_PATH).exists():
        issues.append(f"DOSSIER_TOPICS_PATH not found: {DOSSIER_TOPICS_PATH}")

    return issues
