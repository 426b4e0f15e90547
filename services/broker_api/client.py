"""Async REST client for the trading backend."""

import time
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as SchemaValidationError

from core.config.settings import Settings
from core.logging import get_api_logger_safe, get_error_logger_safe
from core.utils.exceptions import NetworkError
from .models import ApiResponse


class TradingApiClient:
    """
    Thin wrapper over one ``httpx.AsyncClient``.

    Every JSON answer, including 4xx answers carrying ``{success: false,
    error}``, comes back as an ``ApiResponse``. Transport failures and
    bodies that are not an envelope raise ``NetworkError``.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._prefix = settings.api.prefix.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=settings.api.base_url,
            timeout=settings.api.timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self.logger = get_api_logger_safe("broker_api")
        self.error_logger = get_error_logger_safe("broker_api_errors")

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Public endpoints ---

    async def login(self, email: str, password: str) -> ApiResponse:
        return await self._request("POST", "/login", json={"email": email, "password": password})

    async def signup(self, name: str, email: str, password: str) -> ApiResponse:
        return await self._request(
            "POST", "/signup", json={"name": name, "email": email, "password": password}
        )

    async def health(self) -> Dict[str, Any]:
        """Server liveness; served at the root, outside the API prefix."""
        response = await self._send("GET", "/health")
        return self._decode_body(response, "/health")

    # --- Authenticated endpoints ---

    async def list_orders(self, token: str) -> ApiResponse:
        return await self._request("GET", "/orders", token=token)

    async def create_order(
        self, token: str, symbol: str, side: str, quantity: int, price: Decimal
    ) -> ApiResponse:
        payload = {
            "symbol": symbol,
            "side": side,
            "quantity": quantity,
            # Backend binds price as a JSON number
            "price": float(price),
        }
        return await self._request("POST", "/orders", token=token, json=payload)

    async def get_prices(self, token: str) -> ApiResponse:
        return await self._request("GET", "/prices", token=token)

    async def get_me(self, token: str) -> ApiResponse:
        return await self._request("GET", "/me", token=token)

    # --- Internals ---

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        url = f"{self._prefix}{path}"
        headers = {"Authorization": f"Bearer {token}"} if token else None
        response = await self._send(method, url, json=json, headers=headers)
        body = self._decode_body(response, url)

        try:
            envelope = ApiResponse.model_validate(body)
        except SchemaValidationError as e:
            self.error_logger.error(f"Response from {url} is not an API envelope", error=str(e))
            raise NetworkError(endpoint=url, details={"status_code": response.status_code}) from e

        envelope.status_code = response.status_code
        if not envelope.success:
            self.logger.warning(
                f"{method} {url} rejected",
                status_code=response.status_code,
                error=envelope.error,
            )
        return envelope

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            self.logger.warning(f"{method} {url} failed: {type(e).__name__}: {e}")
            raise NetworkError(endpoint=url, details={"error": str(e)}) from e

        self.logger.debug(
            f"{method} {url}",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    def _decode_body(self, response: httpx.Response, url: str) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            self.error_logger.error(f"Unreadable response body from {url}", status_code=response.status_code)
            raise NetworkError(endpoint=url, details={"status_code": response.status_code}) from e

        if not isinstance(body, dict):
            raise NetworkError(endpoint=url, details={"status_code": response.status_code})
        return body
