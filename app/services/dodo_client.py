"""
Dodo Payments (Merchant of Record) API client.

Built once at startup from environment configuration and shared by every request
through the `get_dodo_client` dependency. Only the calls this backend needs are
wrapped: hosted checkout creation, subscription update and subscription retrieval.
"""
import logging
from typing import Optional

import httpx

from app.core import config
from app.core.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class DodoAPIError(ProviderError):
    """Dodo answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.provider_status = status_code
        self.body = body


def resolve_base_url(api_key: str, base_url: str = "", environment: str = "") -> str:
    """Pick the Dodo API host: explicit override, else test mode for test keys or development."""
    if base_url:
        return base_url.rstrip("/")
    if api_key.startswith("test_") or environment == "development":
        return config.DODO_TEST_BASE_URL
    return config.DODO_LIVE_BASE_URL


class DodoClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict:
        try:
            r = await self._http.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.error("[Dodo] Timeout calling %s %s: %s", method, path, e)
            raise DodoAPIError("Dodo API timeout") from e
        except httpx.RequestError as e:
            logger.error("[Dodo] Request error calling %s %s: %s", method, path, e)
            raise DodoAPIError(f"Dodo request failed: {e}") from e

        logger.info("[Dodo] %s %s -> %s", method, path, r.status_code)
        if r.status_code >= 400:
            body = r.text or ""
            logger.error("[Dodo] Non-2xx response from Dodo: %s - %s", r.status_code, body[:500])
            raise DodoAPIError(f"Dodo API error: {r.status_code}", status_code=r.status_code, body=body)

        if not r.content:
            return {}
        try:
            data = r.json()
        except ValueError as e:
            raise DodoAPIError("Dodo returned a non-JSON response", status_code=r.status_code) from e
        return data if isinstance(data, dict) else {}

    async def create_checkout_session(self, product_id: str, return_url: str, quantity: int = 1) -> dict:
        payload = {
            "product_cart": [
                {
                    "product_id": product_id,
                    "quantity": quantity,
                }
            ],
            "return_url": return_url,
        }
        return await self._request("POST", "/checkouts", json=payload)

    async def update_subscription(self, subscription_id: str, changes: dict) -> dict:
        return await self._request("PATCH", f"/subscriptions/{subscription_id}", json=changes)

    async def retrieve_subscription(self, subscription_id: str) -> dict:
        return await self._request("GET", f"/subscriptions/{subscription_id}")


def build_dodo_client(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    environment: Optional[str] = None,
) -> Optional[DodoClient]:
    """
    Construct the shared client from configuration.
    Returns None (and logs why) when the API key is missing or still the placeholder,
    so requests that need the provider fail with ProviderUnavailable.
    """
    api_key = config.DODO_API_KEY if api_key is None else api_key.strip()
    base_url = config.DODO_BASE_URL if base_url is None else base_url
    environment = config.ENVIRONMENT if environment is None else environment

    if not api_key or api_key == config.DODO_API_KEY_PLACEHOLDER:
        logger.error("[Dodo] Client NOT initialized: DODO_PAYMENTS_API_KEY missing or placeholder")
        return None

    resolved = resolve_base_url(api_key, base_url, environment)
    logger.info(
        "[Dodo] Client initialized (base_url=%s, test_mode=%s)",
        resolved,
        resolved == config.DODO_TEST_BASE_URL,
    )
    return DodoClient(api_key=api_key, base_url=resolved)
