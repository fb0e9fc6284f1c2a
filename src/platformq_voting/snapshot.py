"""
Snapshot status tracking.

Proposals whose strategy weighs votes against a pinned block height start in
``processing`` and move once to ``completed`` or ``failed`` as the snapshot
service catches up.
"""

import asyncio
import logging
from typing import Optional

from .config import Settings
from .errors import DependencyError, NotFoundError, ServiceError
from .interfaces import BalanceSnapshotService, VoteRepository
from .models import Proposal, SnapshotStatus
from .strategies import StrategyRegistry

logger = logging.getLogger(__name__)


class SnapshotStatusTracker:
    """Advances proposal snapshot readiness by polling the snapshot service"""

    def __init__(self, repository: VoteRepository, snapshot_client: BalanceSnapshotService,
                 registry: StrategyRegistry, settings: Settings):
        self.repository = repository
        self.snapshot_client = snapshot_client
        self.registry = registry
        self.settings = settings

    def should_poll(self, proposal: Proposal) -> bool:
        if proposal.snapshot_status != SnapshotStatus.PROCESSING:
            return False
        if proposal.block_height is None or proposal.contract is None or not proposal.contract.name:
            return False
        return self.registry.get(proposal.strategy).requires_snapshot()

    async def advance(self, proposal: Proposal) -> Optional[SnapshotStatus]:
        """Poll once and persist a changed status; returns the current status"""
        if not self.should_poll(proposal):
            return proposal.snapshot_status

        try:
            status = await asyncio.wait_for(
                self.snapshot_client.get_snapshot_status_at_block_height(
                    proposal.contract, proposal.block_height
                ),
                timeout=self.settings.external_call_timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"Snapshot status poll for proposal {proposal.id} timed out")
            raise DependencyError("snapshot-service", "snapshot status request timed out")
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Snapshot status poll for proposal {proposal.id} failed: {e}")
            raise DependencyError("snapshot-service", "snapshot status request failed")

        if status != proposal.snapshot_status:
            self.repository.update_snapshot_status(proposal.id, status)
            logger.info(
                f"Proposal {proposal.id} snapshot status {proposal.snapshot_status.value} -> {status.value}"
            )
            proposal.snapshot_status = status
        return status

    async def advance_by_id(self, proposal_id: int) -> Optional[SnapshotStatus]:
        proposal = self.repository.get_proposal(proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        return await self.advance(proposal)

    async def watch(self, proposal_id: int, interval: float = 5.0,
                    max_attempts: int = 60) -> Optional[SnapshotStatus]:
        """Poll until the snapshot reaches a terminal status or attempts run out"""
        status = None
        for attempt in range(max_attempts):
            try:
                status = await self.advance_by_id(proposal_id)
            except DependencyError as e:
                logger.warning(f"Snapshot poll {attempt + 1} for proposal {proposal_id} failed: {e}")
            else:
                if status is None or status.is_terminal:
                    return status
            await asyncio.sleep(interval)

        logger.warning(f"Snapshot for proposal {proposal_id} still not settled after {max_attempts} polls")
        return status
