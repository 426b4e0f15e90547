# Price frame decoding for the streaming endpoint
import json
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from core.utils.exceptions import DecodeError
from .models import FrameType, PriceFrame

PRICE_FRAME_TYPES = {t.value for t in FrameType}


class FrameDecoder:
    """Decodes raw websocket messages into ``PriceFrame`` objects"""

    def decode(self, raw: Union[str, bytes]) -> Optional[PriceFrame]:
        """
        Decode one inbound message.

        Returns None for well-formed messages that are not price frames.
        Raises DecodeError for anything malformed; a malformed frame is
        dropped whole, never applied partially.
        """
        payload = self._parse_json(raw)

        if not isinstance(payload, dict):
            raise DecodeError("Frame is not a JSON object", raw=raw)

        frame_type = payload.get("type")
        if frame_type not in PRICE_FRAME_TYPES:
            if isinstance(frame_type, str):
                return None
            raise DecodeError("Frame has no type", raw=raw)

        try:
            return PriceFrame.model_validate(payload)
        except SchemaValidationError as e:
            raise DecodeError(
                f"Invalid {frame_type} frame: {e.error_count()} errors",
                raw=raw,
                details={"errors": e.errors(include_url=False)},
            ) from e

    def _parse_json(self, raw: Union[str, bytes]) -> Any:
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError("Frame is not UTF-8", raw=raw) from e

        try:
            # Decimal keeps prices exact (no binary float rounding)
            return json.loads(raw, parse_float=Decimal)
        except (json.JSONDecodeError, TypeError) as e:
            raise DecodeError(f"Frame is not valid JSON: {e}", raw=raw) from e
