"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os
from pathlib import Path

from convoq.infrastructure.env import ensure_env_loaded

ensure_env_loaded()

# Project paths
CONVOQ_ROOT = Path(__file__).parent.parent

# Environment
ENV = os.getenv("CONVOQ_ENV", "development")
DEBUG = ENV == "development"

# Local persistent store
DB_PATH = Path(os.getenv("CONVOQ_DB_PATH", str(CONVOQ_ROOT / "data" / "convoq.db")))

# Remote inference endpoint (callable functions)
FUNCTIONS_BASE_URL = os.getenv(
    "CONVOQ_FUNCTIONS_URL", "https://us-central1-messageai.cloudfunctions.net"
)
REQUEST_TIMEOUT_SECONDS = float(os.getenv("CONVOQ_REQUEST_TIMEOUT", "30"))

# Remote record store
RECORD_STORE_URL = os.getenv("CONVOQ_RECORD_STORE_URL", "http://localhost:8080/v1")

# Telemetry (always on in development, opt-in elsewhere)
TELEMETRY_ENABLED = os.getenv("CONVOQ_TELEMETRY_ENABLED", "true" if DEBUG else "false").lower() == "true"

