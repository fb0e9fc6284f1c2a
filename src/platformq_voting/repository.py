"""
SQLAlchemy persistence for proposals, votes and balances.

Each call runs in its own session and transaction so readers only ever see
committed rows. Uniqueness of (proposal, voter) and (voter, proposal) balance
rows is enforced by table constraints; violations surface as
UniqueConstraintViolation.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, asc, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from .db.models import BalanceRecord, BlocklistEntry, ProposalRecord, VoteRecord
from .errors import UniqueConstraintViolation
from .models import (
    Balance, PageParams, Proposal, SnapshotStatus, Vote, VoteWithBalance, checksum_address
)

logger = logging.getLogger(__name__)


def _to_vote_with_balance(vote_rec: VoteRecord,
                          balance_rec: Optional[BalanceRecord]) -> VoteWithBalance:
    vote = Vote.model_validate(vote_rec)
    balance = Balance.model_validate(balance_rec) if balance_rec is not None else None
    return VoteWithBalance.from_vote(vote, balance)


class SqlAlchemyVoteRepository:
    """VoteRepository backed by a SQLAlchemy session factory"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # Proposals

    def create_proposal(self, proposal: Proposal) -> Proposal:
        record = ProposalRecord(
            id=proposal.id,
            community_id=proposal.community_id,
            choices=list(proposal.choices),
            strategy=proposal.strategy,
            min_balance=proposal.min_balance,
            max_weight=proposal.max_weight,
            block_height=proposal.block_height,
            snapshot_status=proposal.snapshot_status.value if proposal.snapshot_status else None,
            start_time=proposal.start_time,
            end_time=proposal.end_time,
            contract=proposal.contract.model_dump() if proposal.contract else None,
        )
        with self._session_factory() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return Proposal.model_validate(record)

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        with self._session_factory() as session:
            record = session.get(ProposalRecord, proposal_id)
            if record is None:
                return None
            return Proposal.model_validate(record)

    def update_snapshot_status(self, proposal_id: int, status: SnapshotStatus) -> None:
        with self._session_factory() as session:
            record = session.get(ProposalRecord, proposal_id)
            if record is None:
                return
            record.snapshot_status = status.value
            session.commit()

    # Community blocklist

    def get_blocklist(self, community_id: int) -> List[str]:
        with self._session_factory() as session:
            rows = session.execute(
                select(BlocklistEntry.addr).where(BlocklistEntry.community_id == community_id)
            ).scalars().all()
            return list(rows)

    def add_to_blocklist(self, community_id: int, addrs: Iterable[str]) -> None:
        """Block addresses for a community; entries are stored in checksum form"""
        existing = set(self.get_blocklist(community_id))
        with self._session_factory() as session:
            for addr in map(checksum_address, addrs):
                if addr not in existing:
                    session.add(BlocklistEntry(community_id=community_id, addr=addr))
                    existing.add(addr)
            session.commit()

    # Votes

    def _vote_select(self):
        return select(VoteRecord, BalanceRecord).outerjoin(
            BalanceRecord,
            and_(
                BalanceRecord.addr == VoteRecord.addr,
                BalanceRecord.proposal_id == VoteRecord.proposal_id,
            )
        )

    def get_vote(self, proposal_id: int, addr: str) -> Optional[VoteWithBalance]:
        with self._session_factory() as session:
            row = session.execute(
                self._vote_select().where(
                    VoteRecord.proposal_id == proposal_id,
                    VoteRecord.addr == addr,
                )
            ).first()
            if row is None:
                return None
            return _to_vote_with_balance(*row)

    def create_vote(self, vote: Vote) -> Vote:
        record = VoteRecord(
            proposal_id=vote.proposal_id,
            addr=vote.addr,
            choice=vote.choice,
            message=vote.message,
            composite_signatures=[sig.model_dump() for sig in vote.composite_signatures],
            cid=vote.cid,
        )
        with self._session_factory() as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise UniqueConstraintViolation(
                    f"vote for proposal {vote.proposal_id} by {vote.addr} already exists"
                ) from e
            session.refresh(record)
            return Vote.model_validate(record)

    def _paginate(self, session, stmt, count_stmt, page: PageParams) -> Tuple[List[VoteWithBalance], int]:
        total = session.execute(count_stmt).scalar_one()
        ordering = asc if page.order == "asc" else desc
        rows = session.execute(
            stmt.order_by(ordering(VoteRecord.created_at), ordering(VoteRecord.id))
            .offset(page.start)
            .limit(page.count)
        ).all()
        return [_to_vote_with_balance(v, b) for v, b in rows], total

    def get_votes_for_proposal(self, proposal_id: int,
                               page: PageParams) -> Tuple[List[VoteWithBalance], int]:
        with self._session_factory() as session:
            stmt = self._vote_select().where(VoteRecord.proposal_id == proposal_id)
            count_stmt = select(func.count(VoteRecord.id)).where(VoteRecord.proposal_id == proposal_id)
            return self._paginate(session, stmt, count_stmt, page)

    def get_all_votes_for_proposal(self, proposal_id: int) -> List[VoteWithBalance]:
        with self._session_factory() as session:
            rows = session.execute(
                self._vote_select()
                .where(VoteRecord.proposal_id == proposal_id)
                .order_by(asc(VoteRecord.id))
            ).all()
            return [_to_vote_with_balance(v, b) for v, b in rows]

    def get_votes_for_address(self, addr: str, proposal_ids: Optional[Sequence[int]],
                              page: PageParams) -> Tuple[List[VoteWithBalance], int]:
        conditions = [VoteRecord.addr == addr]
        if proposal_ids:
            conditions.append(VoteRecord.proposal_id.in_(list(proposal_ids)))
        with self._session_factory() as session:
            stmt = self._vote_select().where(*conditions)
            count_stmt = select(func.count(VoteRecord.id)).where(*conditions)
            return self._paginate(session, stmt, count_stmt, page)

    # Balances

    def get_balance(self, addr: str, proposal_id: int) -> Optional[Balance]:
        with self._session_factory() as session:
            record = session.execute(
                select(BalanceRecord).where(
                    BalanceRecord.addr == addr,
                    BalanceRecord.proposal_id == proposal_id,
                )
            ).scalar_one_or_none()
            if record is None:
                return None
            return Balance.model_validate(record)

    def create_balance(self, balance: Balance) -> Balance:
        record = BalanceRecord(
            addr=balance.addr,
            proposal_id=balance.proposal_id,
            strategy=balance.strategy,
            block_height=balance.block_height,
            primary_account_balance=balance.primary_account_balance,
            secondary_account_balance=balance.secondary_account_balance,
            staking_balance=balance.staking_balance,
            nft_count=balance.nft_count,
        )
        with self._session_factory() as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise UniqueConstraintViolation(
                    f"balance for {balance.addr} on proposal {balance.proposal_id} already exists"
                ) from e
            session.refresh(record)
            return Balance.model_validate(record)
