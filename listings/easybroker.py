"""
EasyBroker API client.
Property listings: https://dev.easybroker.com/reference
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from models.listing import Listing
from utils.exceptions import ListingNotFoundError, ListingServiceError

logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_RETRY_DELAY = 1.0  # seconds
_RETRY_BACKOFF = 2.0  # exponential backoff multiplier
_API_TIMEOUT = 10.0  # seconds

_DEFAULT_BASE_URL = "https://api.easybroker.com/v1"


def _extract_price(data: Dict[str, Any]) -> Optional[float]:
    """First operation amount, falling back to a top-level price."""
    operations = data.get("operations") or []
    if operations and isinstance(operations[0], dict) and operations[0].get("amount"):
        return float(operations[0]["amount"])

    price = data.get("price")
    if isinstance(price, dict):
        price = price.get("amount")
    if isinstance(price, (int, float)) and price:
        return float(price)
    return None


def _extract_currency(data: Dict[str, Any]) -> Optional[str]:
    operations = data.get("operations") or []
    if operations and isinstance(operations[0], dict):
        return operations[0].get("currency")
    return None


def _extract_location(data: Dict[str, Any]) -> Optional[str]:
    location = data.get("location")
    if isinstance(location, dict):
        return location.get("name")
    return location


def parse_listing(data: Dict[str, Any]) -> Listing:
    """Reduce an EasyBroker property document to a Listing."""
    features = {
        key: data[key]
        for key in ("property_type", "bedrooms", "bathrooms", "construction_size", "lot_size")
        if data.get(key) is not None
    }
    return Listing(
        public_id=data["public_id"],
        title=data.get("title") or "",
        price=_extract_price(data),
        currency=_extract_currency(data),
        location=_extract_location(data),
        features=features,
    )


class EasyBrokerClient:
    """
    Client for the EasyBroker listings API.

    Constructed with its credentials and injected where needed; pass
    ``http_client`` to substitute the transport.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = _DEFAULT_BASE_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = _API_TIMEOUT,
        retry_delay: float = _RETRY_DELAY,
    ):
        if not api_key:
            raise ValueError("EasyBroker API key is required")

        self.base_url = base_url.rstrip("/")
        self.retry_delay = retry_delay
        self.client = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self.client.headers.update({"X-Authorization": api_key, "Accept": "application/json"})

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def get_listing(self, public_id: str) -> Listing:
        """
        Get one property by its public id.

        Raises:
            ListingNotFoundError: The service has no such property
            ListingServiceError: Any other failure after retries
        """
        if not public_id or not public_id.strip():
            raise ValueError("Listing id cannot be empty")

        url = f"{self.base_url}/properties/{public_id.strip()}"
        delay = self.retry_delay

        for attempt in range(_MAX_RETRIES):
            try:
                response = await self.client.get(url)
                response.raise_for_status()
                return parse_listing(response.json())

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 404:
                    raise ListingNotFoundError(
                        f"Listing {public_id} not found", status_code=404
                    ) from e

                if status >= 500 and attempt < _MAX_RETRIES - 1:
                    logger.warning(
                        f"EasyBroker HTTP error (attempt {attempt + 1}/{_MAX_RETRIES}): {e}. Retrying..."
                    )
                    await asyncio.sleep(delay)
                    delay *= _RETRY_BACKOFF
                    continue

                raise ListingServiceError(
                    f"EasyBroker API error for {public_id}: {status}", status_code=status
                ) from e

            except httpx.RequestError as e:
                if attempt < _MAX_RETRIES - 1:
                    logger.warning(
                        f"EasyBroker request error (attempt {attempt + 1}/{_MAX_RETRIES}): {e}. Retrying..."
                    )
                    await asyncio.sleep(delay)
                    delay *= _RETRY_BACKOFF
                    continue

                raise ListingServiceError(f"EasyBroker unreachable: {e}") from e

            except (KeyError, ValueError) as e:
                raise ListingServiceError(f"Unexpected EasyBroker response for {public_id}: {e}") from e

        raise ListingServiceError(f"EasyBroker request for {public_id} failed")
