from datetime import datetime

from sqlalchemy import (
    JSON, BigInteger, Column, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ProposalRecord(Base):
    __tablename__ = 'proposals'

    id = Column(Integer, primary_key=True)
    community_id = Column(Integer, nullable=False, index=True)
    choices = Column(JSON, nullable=False)
    strategy = Column(String, nullable=False)
    min_balance = Column(Float, nullable=True)
    max_weight = Column(Float, nullable=True)
    block_height = Column(BigInteger, nullable=True)
    snapshot_status = Column(String, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    contract = Column(JSON, nullable=True)  # {name, addr, public_path, threshold, max_weight}


class BlocklistEntry(Base):
    __tablename__ = 'community_blocklist'

    id = Column(Integer, primary_key=True)
    community_id = Column(Integer, nullable=False, index=True)
    addr = Column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint('community_id', 'addr', name='_community_blocked_addr_uc'),
    )


class VoteRecord(Base):
    __tablename__ = 'votes'

    id = Column(Integer, primary_key=True)
    proposal_id = Column(Integer, ForeignKey('proposals.id'), nullable=False, index=True)
    addr = Column(String, nullable=False, index=True)
    choice = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    composite_signatures = Column(JSON, nullable=False, default=list)
    cid = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Authoritative one-vote-per-address guarantee
    __table_args__ = (
        UniqueConstraint('proposal_id', 'addr', name='_proposal_voter_uc'),
    )


class BalanceRecord(Base):
    __tablename__ = 'balances'

    id = Column(Integer, primary_key=True)
    addr = Column(String, nullable=False, index=True)
    proposal_id = Column(Integer, ForeignKey('proposals.id'), nullable=False)
    strategy = Column(String, nullable=True)
    block_height = Column(BigInteger, nullable=False, default=0)
    primary_account_balance = Column(BigInteger, nullable=False, default=0)
    secondary_account_balance = Column(BigInteger, nullable=False, default=0)
    staking_balance = Column(BigInteger, nullable=False, default=0)
    nft_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('addr', 'proposal_id', name='_balance_addr_proposal_uc'),
    )
