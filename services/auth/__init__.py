"""Authentication: durable credential store and session state machine."""

from .credential_store import CredentialStore
from .session_manager import SessionListener, SessionManager
from .models import (
    AuthPayload,
    AuthResult,
    AuthStatus,
    Session,
    SessionEndReason,
    SignupRequest,
    UserProfile,
)

__all__ = [
    "CredentialStore",
    "SessionListener",
    "SessionManager",
    "AuthPayload",
    "AuthResult",
    "AuthStatus",
    "Session",
    "SessionEndReason",
    "SignupRequest",
    "UserProfile",
]
