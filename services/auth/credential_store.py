"""Durable key-value persistence for the session credential and user profile."""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Tuple

from pydantic import ValidationError as SchemaValidationError

from core.config.settings import Settings
from core.logging import get_logger
from .models import UserProfile

TOKEN_KEY = "token"
USER_KEY = "user"


class CredentialStore:
    """
    Two durable keys (``token`` and ``user``) in a small JSON document.

    Reads go to disk every time so the store is readable synchronously at
    startup and always reflects what a restart would see. Writes replace the
    file atomically.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = get_logger("credential_store", component="auth")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialStore":
        return cls(settings.credentials.resolved_path)

    # --- Key-value primitives ---

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    # --- Session helpers ---

    def save(self, token: str, profile: UserProfile) -> None:
        data = self._read()
        data[TOKEN_KEY] = token
        data[USER_KEY] = profile.model_dump_json()
        self._write(data)

    def load(self) -> Tuple[Optional[str], Optional[UserProfile]]:
        """Return (credential, profile); either may be absent."""
        data = self._read()
        token = data.get(TOKEN_KEY) or None
        raw_user = data.get(USER_KEY)

        profile = None
        if raw_user:
            try:
                profile = UserProfile.model_validate_json(raw_user)
            except SchemaValidationError:
                self.logger.warning("Stored user profile is unreadable; ignoring it", path=str(self.path))
        return token, profile

    def clear(self) -> None:
        data = self._read()
        data.pop(TOKEN_KEY, None)
        data.pop(USER_KEY, None)
        self._write(data)

    # --- File I/O ---

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as e:
            self.logger.warning(f"Credential file is unreadable; treating it as empty: {e}", path=str(self.path))
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            self.logger.warning("Credential file is corrupt; treating it as empty", path=str(self.path))
            return {}

        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".credentials-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
