# hospitality_pricer/portals/fifa_hospitality.py

import asyncio
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from hospitality_pricer.config.settings import settings
from hospitality_pricer.models.match import RawMatch
from hospitality_pricer.models.portal import Portal
from .base_portal import HttpPortalClient, PortalError

MATCHES_PATH = "/next-api/matches-all"
LOUNGES_PATH = "/next-api/lounges"


class FifaHospitalityClient(HttpPortalClient):
    """Reads match and lounge listings from the FIFA hospitality portals.

    Each national site answers the same API; the country is selected with the
    ``country-tag`` header. Lounge requests are issued one at a time with a
    fixed pause in front of each to stay under the portal's throttling.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        product_code: Optional[str] = None,
        request_delay: Optional[float] = None,
    ):
        super().__init__(client)
        self.product_code = product_code or settings.product_code
        self.request_delay = (
            settings.request_delay_seconds if request_delay is None else request_delay
        )

    def _portal_headers(self, portal: Portal) -> Dict[str, str]:
        return {"country-tag": portal.code, "language-tag": "en"}

    async def list_matches(self, portal: Portal) -> List[Dict[str, Any]]:
        logger.info(f"Fetching match listing from {portal.name} ({portal.code.upper()})")
        payload = await self._make_request(
            "GET",
            MATCHES_PATH,
            headers=self._portal_headers(portal),
            params={"productCode": self.product_code, "productType": 5},
        )
        if not isinstance(payload, list):
            raise PortalError(
                f"Unexpected match listing from {portal.name}: {type(payload).__name__}"
            )
        logger.info(f"Found {len(payload)} listed matches on {portal.code.upper()} site")
        return payload

    async def list_offers(self, portal: Portal, match: RawMatch) -> List[Dict[str, Any]]:
        if not match.performance_id:
            raise PortalError(f"Match {match.match_number} has no performance id on {portal.name}")

        await asyncio.sleep(self.request_delay)  # Small delay to avoid rate limits
        payload = await self._make_request(
            "GET",
            LOUNGES_PATH,
            headers=self._portal_headers(portal),
            params={
                "productCode": self.product_code,
                "productTypeCode": "SM",
                "quantity": 1,
                "performanceId": match.performance_id,
            },
        )
        if not isinstance(payload, list):
            raise PortalError(
                f"Unexpected lounge listing for match {match.match_number} on {portal.name}"
            )
        return payload
