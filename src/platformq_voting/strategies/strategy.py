"""
Base voting strategy interface
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..errors import InternalError, UniqueConstraintViolation
from ..interfaces import BalanceSnapshotService, ChainReader, VoteRepository
from ..models import Balance, Contract, Proposal, ProposalResults, VoteWithBalance
from ..types import TOKEN_SCALE

logger = logging.getLogger(__name__)


class VotingStrategy(ABC):
    """
    Abstract base class for weighting strategies.

    A strategy resolves and persists the balance a vote is weighed with,
    turns that balance into a weight, and folds weights into proposal
    results. Weight computation is a pure function of the stored balance and
    the proposal's thresholds, so historical votes can always be re-weighed.
    """

    name: str = ""

    # Balance attribute the weight is read from
    balance_field: Optional[str] = None

    def __init__(self,
                 snapshot_client: Optional[BalanceSnapshotService] = None,
                 repository: Optional[VoteRepository] = None,
                 chain: Optional[ChainReader] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.snapshot_client = snapshot_client
        self.repository = repository
        self.chain = chain
        self.config = config or {}

    @abstractmethod
    def requires_snapshot(self) -> bool:
        """Whether proposals using this strategy must pin a snapshot block height"""
        pass

    async def fetch_balance(self, balance: Balance, proposal: Proposal) -> Balance:
        """
        Resolve and persist the balance for ``balance.addr`` on ``proposal``.

        Resolving twice for the same (address, proposal) returns the stored
        row; external errors propagate and nothing is stored.
        """
        stored = self.repository.get_balance(balance.addr, proposal.id)
        if stored is not None:
            return stored

        components = await self._resolve_components(balance, proposal)
        resolved = balance.model_copy(update={**components, "strategy": self.name})
        return self._persist_balance(resolved)

    async def _resolve_components(self, balance: Balance, proposal: Proposal) -> Dict[str, int]:
        return await self.snapshot_client.get_address_balance_at_block_height(
            balance.addr,
            balance.block_height,
            proposal.contract or Contract()
        )

    def _persist_balance(self, balance: Balance) -> Balance:
        try:
            return self.repository.create_balance(balance)
        except UniqueConstraintViolation:
            # A concurrent resolution stored the row first
            stored = self.repository.get_balance(balance.addr, balance.proposal_id)
            if stored is None:
                raise InternalError(
                    f"balance for {balance.addr} on proposal {balance.proposal_id} vanished"
                )
            logger.info(f"Reusing balance stored concurrently for {balance.addr}")
            return stored

    def balance_amount(self, vote: VoteWithBalance) -> Optional[int]:
        return getattr(vote, self.balance_field) if self.balance_field else None

    def normalize(self, amount: int) -> float:
        """Smallest on-chain unit -> whole tokens"""
        return amount / TOKEN_SCALE

    def get_vote_weight_for_balance(self, vote: VoteWithBalance, proposal: Proposal) -> float:
        amount = self.balance_amount(vote)
        if amount is None:
            return 0.0

        weight = self.normalize(amount)

        if weight == 0:
            return 0.0
        if not math.isfinite(weight) or weight < 0:
            raise InternalError(f"no weight found, address: {vote.addr}, strategy: {self.name}")
        if proposal.max_weight is not None and weight > proposal.max_weight:
            return float(proposal.max_weight)
        return weight

    def get_votes(self, votes: List[VoteWithBalance], proposal: Proposal) -> List[VoteWithBalance]:
        for vote in votes:
            vote.weight = self.get_vote_weight_for_balance(vote, proposal)
        return votes

    def tally_votes(self, votes: List[VoteWithBalance], results: ProposalResults,
                    proposal: Proposal) -> ProposalResults:
        """
        Fold vote weights into results.

        ``results_float`` accumulates exact weights; ``results`` accumulates
        each vote's weight truncated to an integer.
        """
        for vote in votes:
            weight = self.get_vote_weight_for_balance(vote, proposal)
            results.results[vote.choice] = results.results.get(vote.choice, 0) + int(weight)
            results.results_float[vote.choice] = results.results_float.get(vote.choice, 0.0) + weight
        return results

    def get_strategy_metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "requires_snapshot": self.requires_snapshot(),
            "config": self.config,
        }
