# REST envelope models
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ApiResponse(BaseModel):
    """Envelope returned by every backend endpoint: {success, data | error, message}"""
    model_config = ConfigDict(extra="ignore")

    success: bool = False
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None
    count: Optional[int] = None
    # Filled from the HTTP layer, not the body
    status_code: int = 0

    @property
    def unauthorized(self) -> bool:
        return self.status_code == 401

    def error_message(self, fallback: str) -> str:
        return self.error or self.message or fallback
