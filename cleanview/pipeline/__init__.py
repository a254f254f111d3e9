"""
Text Removal Pipeline

Orchestration for one removal session:
  Frame capture → Veo generation (submit + poll) → local result
  Key gate - detects a missing/rejected key and re-prompts the user
"""

from .orchestrator import SessionController
from .routes import session_router, credential_router
from .models import SessionStatus, CredentialState

__all__ = [
    "SessionController",
    "session_router",
    "credential_router",
    "SessionStatus",
    "CredentialState",
]
