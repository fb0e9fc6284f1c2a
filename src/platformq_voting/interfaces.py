"""
Interfaces (protocols) for the collaborators the voting core consumes.
Using Python's Protocol for structural subtyping.
"""

from abc import abstractmethod
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .models import (
    Balance, CompositeSignature, Contract, PageParams, Proposal,
    SnapshotStatus, Vote, VoteWithBalance
)
from .types import SignatureRole


class VoteRepository(Protocol):
    """Narrow persistence interface for proposals, votes and balances"""

    @abstractmethod
    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        ...

    @abstractmethod
    def update_snapshot_status(self, proposal_id: int, status: SnapshotStatus) -> None:
        ...

    @abstractmethod
    def get_blocklist(self, community_id: int) -> List[str]:
        ...

    @abstractmethod
    def get_vote(self, proposal_id: int, addr: str) -> Optional[VoteWithBalance]:
        """Vote joined with its balance, or None"""
        ...

    @abstractmethod
    def create_vote(self, vote: Vote) -> Vote:
        """Insert a vote; raises UniqueConstraintViolation on a duplicate (proposal, addr)"""
        ...

    @abstractmethod
    def get_votes_for_proposal(self, proposal_id: int,
                               page: PageParams) -> Tuple[List[VoteWithBalance], int]:
        ...

    @abstractmethod
    def get_all_votes_for_proposal(self, proposal_id: int) -> List[VoteWithBalance]:
        """Every vote on a proposal, as one consistent read"""
        ...

    @abstractmethod
    def get_votes_for_address(self, addr: str, proposal_ids: Optional[Sequence[int]],
                              page: PageParams) -> Tuple[List[VoteWithBalance], int]:
        ...

    @abstractmethod
    def get_balance(self, addr: str, proposal_id: int) -> Optional[Balance]:
        ...

    @abstractmethod
    def create_balance(self, balance: Balance) -> Balance:
        """Insert a balance; raises UniqueConstraintViolation on a duplicate (addr, proposal)"""
        ...


class ChainIdentity(Protocol):
    """Verifies composite signatures against an account's on-chain keys"""

    @abstractmethod
    async def verify_signatures(self, addr: str, message: str,
                                signatures: List[CompositeSignature],
                                role: SignatureRole) -> None:
        """Raise on any verification failure"""
        ...


class BalanceSnapshotService(Protocol):
    """Balance lookups and snapshot readiness at a fixed block height"""

    @abstractmethod
    async def get_address_balance_at_block_height(self, addr: str, block_height: int,
                                                  contract: Contract) -> Dict[str, int]:
        """Return balance components keyed by Balance field name"""
        ...

    @abstractmethod
    async def get_snapshot_status_at_block_height(self, contract: Contract,
                                                  block_height: int) -> SnapshotStatus:
        ...


class ChainReader(Protocol):
    """Read-only chain queries not served by the snapshot service"""

    @abstractmethod
    async def get_nft_ids(self, addr: str, contract: Contract) -> List[Any]:
        ...


class ContentStore(Protocol):
    """Content-addressable pinning of sealed vote records"""

    @abstractmethod
    async def pin_json(self, data: Dict[str, Any]) -> str:
        """Pin a JSON document and return its content address"""
        ...
