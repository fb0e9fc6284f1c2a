"""
Vote admission pipeline.

Admits or rejects a single vote submission: eligibility checks, intent
authentication, weight resolution, sealing to the content-addressable store,
then a single commit. Every check is fail-fast and nothing is persisted on a
rejection; the vote commit is the only record of "has voted".
"""

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import sessionmaker

from .clients import ChainGatewayClient, PinningClient, SnapshotClient
from .config import Settings, get_settings
from .db.session import create_session_factory
from .errors import (
    AuthorizationError, ConflictError, DependencyError, NotFoundError, ServiceError,
    UniqueConstraintViolation, ValidationError
)
from .interfaces import ContentStore, VoteRepository
from .models import (
    Balance, CreateVoteRequest, PageParams, Proposal, ProposalResults, SnapshotStatus,
    Vote, VoteWithBalance, Voucher, checksum_address
)
from .repository import SqlAlchemyVoteRepository
from .signatures import EthIdentityAdapter, SignatureVerifier
from .snapshot import SnapshotStatusTracker
from .strategies import StrategyRegistry, VotingStrategy, default_registry

logger = logging.getLogger(__name__)

SNAPSHOT_NOT_READY = (SnapshotStatus.PROCESSING, SnapshotStatus.FAILED)


class VotePipeline:
    """Admission, weighting and tally entry points for proposal votes"""

    def __init__(self,
                 repository: VoteRepository,
                 registry: StrategyRegistry,
                 verifier: SignatureVerifier,
                 content_store: ContentStore,
                 snapshot_tracker: SnapshotStatusTracker,
                 settings: Settings):
        self.repository = repository
        self.registry = registry
        self.verifier = verifier
        self.content_store = content_store
        self.snapshot_tracker = snapshot_tracker
        self.settings = settings
        self._owned_clients: List[Any] = []

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None,
                      session_factory: Optional[sessionmaker] = None) -> "VotePipeline":
        """Wire the pipeline against the configured HTTP collaborators and database"""
        settings = settings or get_settings()
        session_factory = session_factory or create_session_factory(settings.database_url)
        timeout = settings.external_call_timeout

        repository = SqlAlchemyVoteRepository(session_factory)
        snapshot_client = SnapshotClient(settings.snapshot_url, timeout=timeout)
        chain = ChainGatewayClient(settings.chain_gateway_url, timeout=timeout)
        pinning = PinningClient(settings.pinning_url, settings.pinning_api_key, timeout=timeout)
        registry = default_registry(snapshot_client, repository, chain)

        pipeline = cls(
            repository=repository,
            registry=registry,
            verifier=SignatureVerifier(EthIdentityAdapter(), settings),
            content_store=pinning,
            snapshot_tracker=SnapshotStatusTracker(repository, snapshot_client, registry, settings),
            settings=settings,
        )
        pipeline._owned_clients = [snapshot_client, chain, pinning]
        return pipeline

    async def close(self):
        for client in self._owned_clients:
            await client.close()
        self._owned_clients = []

    # Helpers

    def _get_proposal(self, proposal_id: int) -> Proposal:
        proposal = self.repository.get_proposal(proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        return proposal

    async def _external(self, service: str, call: Awaitable):
        """Run an external call under the configured timeout"""
        try:
            return await asyncio.wait_for(call, timeout=self.settings.external_call_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Call to {service} timed out after {self.settings.external_call_timeout}s")
            raise DependencyError(service, "request timed out")
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Call to {service} failed: {e}")
            raise DependencyError(service, "request failed")

    def _check_liveness(self, proposal: Proposal):
        if self.settings.is_dev:
            return
        if not proposal.is_live():
            raise AuthorizationError("User cannot vote on inactive proposal.")

    def _check_snapshot_ready(self, proposal: Proposal, strategy: VotingStrategy):
        if strategy.requires_snapshot() and proposal.snapshot_status in SNAPSHOT_NOT_READY:
            raise AuthorizationError("Proposal balance snapshot is not ready.")

    def _check_blocklist(self, addr: str, proposal: Proposal):
        if not self.settings.validate_blocklist:
            return
        blocked = {entry.lower() for entry in self.repository.get_blocklist(proposal.community_id)}
        if addr.lower() in blocked:
            logger.warning(f"Address {addr} is on blocklist for community id {proposal.community_id}.")
            raise AuthorizationError("User does not have permission.")

    @staticmethod
    def _account(addr: str) -> str:
        try:
            return checksum_address(addr)
        except ValueError:
            raise ValidationError(f"Invalid account address: {addr}")

    @staticmethod
    def _sealed_record(vote: Vote, voucher: Optional[Voucher]) -> Dict[str, Any]:
        return {
            "vote": vote.model_dump(mode="json", exclude={"id", "cid", "created_at"}),
            "voucher": voucher.model_dump(mode="json", by_alias=True) if voucher else None,
        }

    # Admission

    async def admit_vote(self, proposal_id: int, request: CreateVoteRequest) -> VoteWithBalance:
        """Admit a vote or raise the ServiceError describing the rejection"""
        proposal = self._get_proposal(proposal_id)
        strategy = self.registry.get(proposal.strategy)
        addr = request.addr

        if self.repository.get_vote(proposal.id, addr) is not None:
            logger.warning(f"Address {addr} has already voted for proposal {proposal.id}.")
            raise ConflictError("Address has already voted for this proposal.")

        self._check_liveness(proposal)
        self._check_snapshot_ready(proposal, strategy)

        self._check_blocklist(addr, proposal)
        proposal.validate_choice(request.choice)

        canonical = await self.verifier.verify_intent(addr, request.intent(), proposal)
        if canonical.choice != request.choice:
            raise ValidationError("Signed choice does not match submitted choice")
        self.verifier.validate_timestamp(
            canonical.timestamp, self.settings.vote_timestamp_expiry_seconds
        )

        empty_balance = Balance(
            addr=addr,
            proposal_id=proposal.id,
            block_height=proposal.block_height or 0,
        )
        balance = await self._external(
            "balance-resolver", strategy.fetch_balance(empty_balance, proposal)
        )

        vote = Vote(
            proposal_id=proposal.id,
            addr=addr,
            choice=request.choice,
            message=canonical.signed_message,
            composite_signatures=canonical.signatures,
        )
        weight = strategy.get_vote_weight_for_balance(
            VoteWithBalance.from_vote(vote, balance), proposal
        )

        try:
            proposal.validate_balance(weight)
        except AuthorizationError:
            logger.warning(f"Weight {weight} for {addr} is below proposal {proposal.id} minimum")
            raise

        vote.cid = await self._external(
            "pinning-service", self.content_store.pin_json(self._sealed_record(vote, request.voucher))
        )

        try:
            stored = self.repository.create_vote(vote)
        except UniqueConstraintViolation:
            logger.warning(f"Concurrent duplicate vote from {addr} on proposal {proposal.id} rejected")
            raise ConflictError("Address has already voted for this proposal.")

        admitted = VoteWithBalance.from_vote(stored, balance)
        admitted.weight = weight
        logger.info(f"Admitted vote from {addr} on proposal {proposal.id} with weight {weight}")
        return admitted

    # Read paths

    def compute_results(self, proposal_id: int) -> ProposalResults:
        proposal = self._get_proposal(proposal_id)
        strategy = self.registry.get(proposal.strategy)

        votes = self.repository.get_all_votes_for_proposal(proposal.id)
        results = ProposalResults.seed(proposal.id, proposal.choices)
        return strategy.tally_votes(votes, results, proposal)

    def list_votes_with_weight(self, proposal_id: int,
                               page: Optional[PageParams] = None) -> Tuple[List[VoteWithBalance], PageParams]:
        proposal = self._get_proposal(proposal_id)
        strategy = self.registry.get(proposal.strategy)
        page = page or PageParams(count=self.settings.default_page_size)

        votes, total = self.repository.get_votes_for_proposal(proposal.id, page)
        page.total_records = total
        return strategy.get_votes(votes, proposal), page

    def get_vote_with_weight(self, proposal_id: int, addr: str) -> VoteWithBalance:
        proposal = self._get_proposal(proposal_id)
        strategy = self.registry.get(proposal.strategy)
        addr = self._account(addr)

        vote = self.repository.get_vote(proposal.id, addr)
        if vote is None:
            raise NotFoundError("Vote", f"{proposal.id}:{addr}")
        vote.weight = strategy.get_vote_weight_for_balance(vote, proposal)
        return vote

    def list_votes_for_address(self, addr: str, proposal_ids: Optional[Sequence[int]] = None,
                               page: Optional[PageParams] = None) -> Tuple[List[VoteWithBalance], PageParams]:
        """An address's votes across proposals, each weighed by its own proposal's strategy"""
        addr = self._account(addr)
        page = page or PageParams(count=self.settings.default_page_size)
        votes, total = self.repository.get_votes_for_address(addr, proposal_ids, page)

        proposals: Dict[int, Proposal] = {}
        for vote in votes:
            if vote.proposal_id not in proposals:
                proposals[vote.proposal_id] = self._get_proposal(vote.proposal_id)
            proposal = proposals[vote.proposal_id]
            vote.weight = self.registry.get(proposal.strategy).get_vote_weight_for_balance(vote, proposal)

        page.total_records = total
        return votes, page

    async def advance_snapshot_status(self, proposal_id: int) -> Optional[SnapshotStatus]:
        return await self.snapshot_tracker.advance_by_id(proposal_id)
