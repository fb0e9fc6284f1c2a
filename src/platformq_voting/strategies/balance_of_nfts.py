"""
NFT holding strategy.

Weight is the number of NFTs of the proposal's contract the voter holds,
capped by the proposal's maximum weight. The minimum holding required to vote
is the proposal's ``min_balance``.
"""

import logging
from typing import Dict

from ..errors import InternalError
from ..models import Balance, Proposal
from ..types import StrategyName
from .strategy import VotingStrategy

logger = logging.getLogger(__name__)


class BalanceOfNfts(VotingStrategy):

    name = StrategyName.BALANCE_OF_NFTS.value
    balance_field = "nft_count"

    def requires_snapshot(self) -> bool:
        return False

    async def _resolve_components(self, balance: Balance, proposal: Proposal) -> Dict[str, int]:
        if proposal.contract is None:
            raise InternalError(f"proposal {proposal.id} has no NFT contract configured")

        ids = await self.chain.get_nft_ids(balance.addr, proposal.contract)
        logger.debug(f"{balance.addr} holds {len(ids)} NFTs of {proposal.contract.name}")
        return {"nft_count": len(ids)}

    def normalize(self, amount: int) -> float:
        return float(amount)
