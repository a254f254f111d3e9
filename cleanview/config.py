"""
Runtime configuration for the CleanView worker.

Everything is read from the environment once at import. A local `.env`
file is loaded first so `uvicorn cleanview.main:app` picks it up without
extra flags.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


# ── Credentials ──────────────────────────────────────────────────────────────

# Checked in order; the first non-empty one wins.
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")

# ── Veo ──────────────────────────────────────────────────────────────────────

VEO_API_BASE = os.getenv("VEO_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
VEO_MODEL = os.getenv("VEO_MODEL", "veo-3.1-fast-generate-preview")
VEO_RESOLUTION = os.getenv("VEO_RESOLUTION", "720p")
HTTP_TIMEOUT = _float("HTTP_TIMEOUT_SECONDS", 60.0)

# ── Polling ──────────────────────────────────────────────────────────────────

POLL_INTERVAL = _float("POLL_INTERVAL_SECONDS", 8.0)
MAX_POLL_ATTEMPTS = _int("MAX_POLL_ATTEMPTS", 90)  # 12 minutes at 8s

# ── Media ────────────────────────────────────────────────────────────────────

EXTRACTION_TIMEOUT = _float("EXTRACTION_TIMEOUT_SECONDS", 20.0)
MEDIA_DIR = os.getenv("CLEANVIEW_MEDIA_DIR") or None
DOWNLOAD_FILENAME = "clean-video.mp4"

# ── Server ───────────────────────────────────────────────────────────────────

SHARED_SECRET = os.getenv("CLEANVIEW_SHARED_SECRET", "")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = _int("PORT", 8080)
