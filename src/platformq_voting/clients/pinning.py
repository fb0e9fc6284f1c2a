"""
Pinning Client

Pins sealed vote records to a content-addressable store (IPFS pinning
service) and returns the resulting content address.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import DependencyError

logger = logging.getLogger(__name__)

SERVICE_NAME = "pinning-service"


class PinningClient:
    """Client for a Pinata-style IPFS pinning API"""

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()

    async def pin_json(self, data: Dict[str, Any]) -> str:
        """Pin a JSON document and return its CID"""
        try:
            response = await self.client.post(
                f"{self.base_url}/pinning/pinJSONToIPFS",
                json={"pinataContent": data}
            )
            response.raise_for_status()
            cid = response.json().get("IpfsHash")
        except httpx.TimeoutException as e:
            logger.error(f"Pinning request timed out: {e}")
            raise DependencyError(SERVICE_NAME, "request timed out")
        except httpx.HTTPError as e:
            logger.error(f"Error pinning JSON: {e}")
            raise DependencyError(SERVICE_NAME, "request failed")
        except ValueError as e:
            logger.error(f"Invalid JSON from pinning service: {e}")
            raise DependencyError(SERVICE_NAME, "invalid response")

        if not cid:
            raise DependencyError(SERVICE_NAME, "response carried no content address")
        return cid
