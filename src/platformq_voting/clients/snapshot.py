"""
Snapshot Service Client

Reads address balances at a fixed block height and the readiness of a
contract's balance snapshot from the snapshot service.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import DependencyError
from ..models import Contract, SnapshotStatus

logger = logging.getLogger(__name__)

SERVICE_NAME = "snapshot-service"

# Response key -> Balance field
BALANCE_FIELDS = {
    "primaryAccountBalance": "primary_account_balance",
    "secondaryAccountBalance": "secondary_account_balance",
    "stakingBalance": "staking_balance",
}


class SnapshotClient:
    """Client for the balance snapshot service"""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self.client.get(f"{self.base_url}{path}", params=params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Snapshot service request {path} timed out: {e}")
            raise DependencyError(SERVICE_NAME, "request timed out")
        except httpx.HTTPError as e:
            logger.error(f"Error calling snapshot service {path}: {e}")
            raise DependencyError(SERVICE_NAME, "request failed")
        except ValueError as e:
            logger.error(f"Invalid JSON from snapshot service {path}: {e}")
            raise DependencyError(SERVICE_NAME, "invalid response")

    async def get_address_balance_at_block_height(
        self,
        addr: str,
        block_height: int,
        contract: Contract
    ) -> Dict[str, int]:
        """
        Get the balance components of an address at a block height.

        Args:
            addr: Account address
            block_height: Snapshot block height
            contract: Token contract the balance is read from

        Returns:
            Balance components keyed by Balance field name
        """
        result = await self._get(
            f"/balance-at-blockheight/{addr}/{block_height}",
            params={"contractName": contract.name, "contractAddr": contract.addr},
        )

        try:
            return {field: int(result.get(key) or 0) for key, field in BALANCE_FIELDS.items()}
        except (TypeError, ValueError):
            logger.error(f"Malformed balance response for {addr} at {block_height}: {result}")
            raise DependencyError(SERVICE_NAME, "invalid balance response")

    async def get_snapshot_status_at_block_height(
        self,
        contract: Contract,
        block_height: int
    ) -> SnapshotStatus:
        result = await self._get(
            f"/snapshot-status-at-blockheight/{contract.addr}/{contract.name}/{block_height}"
        )

        status = (result.get("data") or {}).get("status")
        try:
            return SnapshotStatus(status)
        except ValueError:
            logger.error(f"Unknown snapshot status {status!r} for {contract.name} at {block_height}")
            raise DependencyError(SERVICE_NAME, "unknown snapshot status")
