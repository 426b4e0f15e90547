"""Session lifecycle: restore, login/signup, logout and credential invalidation."""

import dataclasses
from typing import Awaitable, Callable, List, Optional, Protocol

from pydantic import ValidationError as SchemaValidationError

from core.config.settings import Settings
from core.logging import get_audit_logger_safe, get_error_logger_safe, get_logger
from core.utils.exceptions import AuthError, CredentialRejectedError, NetworkError, TickerDeskError
from core.utils.scheduler import Scheduler
from services.broker_api import ApiResponse, TradingApiClient
from services.notifications import NotificationBus
from .credential_store import CredentialStore
from .models import (
    AuthPayload,
    AuthResult,
    AuthStatus,
    Session,
    SessionEndReason,
    SignupRequest,
    UserProfile,
)


class SessionListener(Protocol):
    """Dependents that must follow the session (stream, order log)."""

    async def on_session_started(self, session: Session) -> None: ...

    def on_session_ended(self, reason: SessionEndReason) -> None: ...


class SessionManager:
    """
    Owns the authentication state machine
    ``ANONYMOUS -> AUTHENTICATING -> AUTHENTICATED -> ANONYMOUS``.

    The session is the only writer of the credential; every other component
    reads ``credential`` at call time. Ending a session clears the durable
    store and resets every listener before control returns to the caller, so
    no dependent can observe ``ANONYMOUS`` next to stale data.
    """

    def __init__(
        self,
        settings: Settings,
        credential_store: CredentialStore,
        api_client: TradingApiClient,
        notifications: NotificationBus,
        scheduler: Scheduler,
    ):
        self.settings = settings
        self.credential_store = credential_store
        self.api_client = api_client
        self.notifications = notifications
        self.scheduler = scheduler
        self.logger = get_logger("session_manager", component="auth")
        self.audit_logger = get_audit_logger_safe("session_audit")
        self.error_logger = get_error_logger_safe("session_errors")

        self._status = AuthStatus.ANONYMOUS
        self._session: Optional[Session] = None
        self._listeners: List[SessionListener] = []
        # Bumped by every login attempt and every session end; stale responses compare against it
        self._attempt = 0
        self.auth_error: Optional[str] = None

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def credential(self) -> Optional[str]:
        return self._session.credential if self._session else None

    def is_authenticated(self) -> bool:
        return self._status == AuthStatus.AUTHENTICATED and self._session is not None

    def add_listener(self, listener: SessionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    async def restore(self) -> Optional[Session]:
        """
        Rebuild the session from the credential store without contacting the
        server. Validity is discovered lazily by the first authenticated call.
        """
        token, profile = self.credential_store.load()
        if not token or profile is None:
            self.logger.info("No stored session to restore")
            return None

        session = Session.from_profile(token, profile, issued_at=self.scheduler.now())
        self.logger.info(f"Session restored for user: {session.display_name}")
        await self._start_session(session)
        return session

    async def login(self, email: str, password: str) -> AuthResult:
        return await self._authenticate(
            lambda: self.api_client.login(email, password),
            default_message="Login successful",
            action="login",
        )

    async def signup(self, profile: SignupRequest) -> AuthResult:
        return await self._authenticate(
            lambda: self.api_client.signup(profile.name, profile.email, profile.password),
            default_message="User registered successfully",
            action="signup",
        )

    def logout(self) -> None:
        """Destroy the session and reset all dependents synchronously."""
        if self._session is None and self._status == AuthStatus.ANONYMOUS:
            return
        user = self._session.display_name if self._session else None
        self._end_session(SessionEndReason.LOGOUT)
        self.audit_logger.info("User logged out", user=user)
        self.notifications.info("Logged out successfully")

    def invalidate(self, reason: SessionEndReason = SessionEndReason.CREDENTIAL_REJECTED) -> None:
        """Destroy a session whose credential the server no longer accepts."""
        if not self.is_authenticated():
            return
        self.logger.warning(f"Invalidating session: {reason.value}")
        self._end_session(reason)
        self.notifications.publish_error(CredentialRejectedError())

    async def verify(self) -> bool:
        """Check the credential against the profile endpoint."""
        session = self._session
        if session is None:
            return False

        try:
            response = await self.api_client.get_me(session.credential)
        except NetworkError as e:
            self.logger.warning(f"Session verification could not reach the server: {e.message}")
            return False

        if self._session is not session:
            return False
        if response.unauthorized:
            self.invalidate()
            return False
        if not response.success:
            return False

        try:
            profile = UserProfile.model_validate(response.data)
        except SchemaValidationError:
            self.logger.warning("Profile response is malformed")
            return False

        refreshed = dataclasses.replace(
            session,
            user_id=profile.id or session.user_id,
            display_name=profile.name or session.display_name,
            profile=profile,
        )
        self._session = refreshed
        self._persist(lambda: self.credential_store.save(refreshed.credential, profile))
        return True

    # --- Internals ---

    async def _authenticate(
        self,
        call: Callable[[], Awaitable[ApiResponse]],
        default_message: str,
        action: str,
    ) -> AuthResult:
        if self._session is not None:
            self._end_session(SessionEndReason.REPLACED)

        self._attempt += 1
        attempt = self._attempt
        self._status = AuthStatus.AUTHENTICATING
        self.auth_error = None

        try:
            response = await call()
        except NetworkError as e:
            return self._fail(attempt, e, action)

        if attempt != self._attempt:
            # Logged out (or superseded) while the request was in flight
            self.logger.info(f"Discarding stale {action} response")
            return AuthResult(success=False, message="Authentication cancelled")

        if not response.success:
            return self._fail(attempt, AuthError(response.error_message("Authentication failed")), action)

        try:
            payload = AuthPayload.model_validate(response.data)
        except SchemaValidationError:
            return self._fail(attempt, NetworkError("Unexpected response from server"), action)

        session = Session.from_profile(payload.token, payload.user, issued_at=self.scheduler.now())
        self._persist(lambda: self.credential_store.save(payload.token, payload.user))

        message = response.message or default_message
        self.audit_logger.info(f"User {action} succeeded", user=session.display_name, user_id=session.user_id)
        self.notifications.info(message)
        await self._start_session(session)
        return AuthResult(success=True, message=message)

    def _fail(self, attempt: int, error: TickerDeskError, action: str) -> AuthResult:
        if attempt == self._attempt:
            self._status = AuthStatus.ANONYMOUS
            self.auth_error = error.message
        self.logger.warning(f"{action.capitalize()} failed: {error.message}", category=error.category)
        return AuthResult(success=False, message=error.message, error_category=error.category)

    async def _start_session(self, session: Session) -> None:
        self._session = session
        self._status = AuthStatus.AUTHENTICATED

        for listener in list(self._listeners):
            if self._session is not session:
                # Session ended while an earlier listener was starting
                break
            try:
                await listener.on_session_started(session)
            except Exception as e:
                self.logger.error(f"Session listener failed to start: {e}", exc_info=True)

    def _end_session(self, reason: SessionEndReason) -> None:
        self._attempt += 1
        self._session = None
        self._status = AuthStatus.ANONYMOUS
        self.auth_error = None

        for listener in list(self._listeners):
            try:
                listener.on_session_ended(reason)
            except Exception as e:
                self.logger.error(f"Session listener failed to reset: {e}", exc_info=True)

        self._persist(self.credential_store.clear)

    def _persist(self, write: Callable[[], None]) -> None:
        """Run a credential store write; failures are logged, not raised."""
        try:
            write()
        except OSError as e:
            self.error_logger.error(f"Credential store write failed: {e}", path=str(self.credential_store.path))
