"""
Posyandu Backend — Configuration
================================
Centralised settings. Secrets and deployment overrides come from the
project-level .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# ── Paths ───────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# ── Load .env ───────────────────────────────────────────────────────────
load_dotenv(PROJECT_ROOT / ".env")

# ── Application ─────────────────────────────────────────────────────────
APP_NAME: str = os.getenv("APP_NAME", "Posyandu Health Records API")
APP_VERSION: str = "1.0.0"

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE: str = os.getenv("LOG_FILE", "")                # empty = console only

# Operator recorded when the transport supplies no X-Operator-Id header
DEFAULT_OPERATOR_ID: str = os.getenv("DEFAULT_OPERATOR_ID", "system")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# ── Input validation ────────────────────────────────────────────────────
# Operationally sane glucose range accepted at the API boundary (mg/dL)
GLUCOSE_MIN_MGDL = 30.0
GLUCOSE_MAX_MGDL = 800.0
