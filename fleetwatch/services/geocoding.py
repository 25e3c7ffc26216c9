"""
Address geocoding collaborator backed by a Nominatim compatible endpoint
"""
import logging
from typing import Optional, Protocol

import httpx

from fleetwatch.core.config import settings
from fleetwatch.core.exceptions import GeocodeNotFound, GeocodeTransportError
from fleetwatch.services.geometry import LatLng

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def search(self, text: str) -> LatLng: ...


class NominatimGeocoder:
    """Resolves free text to the first matching (lat, lng)"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.GEOCODER_URL
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.timeout = timeout or settings.GEOCODER_TIMEOUT_SECONDS
        self._transport = transport

    async def search(self, text: str) -> LatLng:
        params = {"format": "json", "q": text, "limit": 1}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            ) as client:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
                results = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geocoding request failed for '{text}': {e}")
            raise GeocodeTransportError(str(e)) from e

        if not results:
            raise GeocodeNotFound(text)

        try:
            location = results[0]
            return float(location["lat"]), float(location["lon"])
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeTransportError(f"Malformed geocoder response: {e}") from e
