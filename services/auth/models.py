"""Authentication models for the bearer-credential session flow."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthStatus(Enum):
    """Authentication status enumeration."""
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class SessionEndReason(str, Enum):
    """Why a session was destroyed."""
    LOGOUT = "logout"
    CREDENTIAL_REJECTED = "credential_rejected"
    REPLACED = "replaced"


class UserProfile(BaseModel):
    """User profile as returned by the backend (password never included)."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = ""
    email: Optional[str] = None
    name: str = ""


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str


class AuthPayload(BaseModel):
    """`data` block of a successful login/signup response."""
    model_config = ConfigDict(extra="ignore")

    token: str = Field(min_length=1)
    user: UserProfile


@dataclass(frozen=True)
class Session:
    """An authenticated session. Exists only while authenticated."""
    user_id: str
    display_name: str
    credential: str = field(repr=False)
    issued_at: datetime
    profile: UserProfile

    @classmethod
    def from_profile(cls, credential: str, profile: UserProfile, issued_at: datetime) -> "Session":
        return cls(
            user_id=profile.id,
            display_name=profile.name or profile.email or profile.id,
            credential=credential,
            issued_at=issued_at,
            profile=profile,
        )


@dataclass
class AuthResult:
    """Outcome of a login/signup attempt, for inline display on the auth form."""
    success: bool
    message: str
    error_category: Optional[str] = None
