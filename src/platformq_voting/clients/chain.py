"""
Blockchain Gateway Client

Read-only chain queries routed through blockchain-gateway-service.
"""

import logging
from typing import Any, List, Optional

import httpx

from ..errors import DependencyError
from ..models import Contract

logger = logging.getLogger(__name__)

SERVICE_NAME = "blockchain-gateway"


class ChainGatewayClient:
    """Client for read-only queries against blockchain-gateway-service"""

    def __init__(self, gateway_url: str = "http://blockchain-gateway-service:8000",
                 timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.gateway_url = gateway_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()

    async def get_nft_ids(self, addr: str, contract: Contract) -> List[Any]:
        """IDs of the NFTs from ``contract`` held by ``addr``"""
        try:
            response = await self.client.get(
                f"{self.gateway_url}/api/v1/nfts/{addr}",
                params={
                    "contract_name": contract.name,
                    "contract_addr": contract.addr,
                    "public_path": contract.public_path,
                }
            )
            response.raise_for_status()
            ids = response.json().get("ids", [])
        except httpx.TimeoutException as e:
            logger.error(f"NFT lookup for {addr} timed out: {e}")
            raise DependencyError(SERVICE_NAME, "request timed out")
        except httpx.HTTPError as e:
            logger.error(f"Error fetching NFT ids for {addr}: {e}")
            raise DependencyError(SERVICE_NAME, "request failed")
        except ValueError as e:
            logger.error(f"Invalid JSON from blockchain gateway: {e}")
            raise DependencyError(SERVICE_NAME, "invalid response")

        if not isinstance(ids, list):
            raise DependencyError(SERVICE_NAME, "invalid NFT id list")
        return ids
