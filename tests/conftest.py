"""
Shared fixtures for the voting core tests.

Persistence runs against an in-memory SQLite database; every external
collaborator (snapshot service, chain gateway, pinning service) is an
AsyncMock so no network is touched.
"""

from unittest.mock import AsyncMock

import pytest
from eth_account import Account
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from platformq_voting.config import Settings
from platformq_voting.db import Base, init_db
from platformq_voting.models import SnapshotStatus
from platformq_voting.pipeline import VotePipeline
from platformq_voting.repository import SqlAlchemyVoteRepository
from platformq_voting.signatures import EthIdentityAdapter, SignatureVerifier
from platformq_voting.snapshot import SnapshotStatusTracker
from platformq_voting.strategies import default_registry

from vote_helpers import DEFAULT_BALANCE, OTHER_KEY, VOTER_KEY

# --- Fixtures ---

@pytest.fixture
def voter():
    return Account.from_key(VOTER_KEY)


@pytest.fixture
def other_account():
    return Account.from_key(OTHER_KEY)


@pytest.fixture(scope="function")
def session_factory():
    """
    A fresh in-memory database per test.

    StaticPool keeps the single in-memory connection alive across sessions.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def repository(session_factory):
    return SqlAlchemyVoteRepository(session_factory)


@pytest.fixture
def settings():
    return Settings(
        app_env="PROD",
        validate_sigs=True,
        validate_blocklist=True,
        validate_timestamps=True,
        external_call_timeout=1.0,
    )


@pytest.fixture
def mock_snapshot_client():
    """Mock snapshot service"""
    client = AsyncMock()
    client.get_address_balance_at_block_height = AsyncMock(return_value={
        "primary_account_balance": DEFAULT_BALANCE,
        "secondary_account_balance": 0,
        "staking_balance": DEFAULT_BALANCE,
    })
    client.get_snapshot_status_at_block_height = AsyncMock(return_value=SnapshotStatus.COMPLETED)
    return client


@pytest.fixture
def mock_chain():
    """Mock blockchain gateway"""
    chain = AsyncMock()
    chain.get_nft_ids = AsyncMock(return_value=[1, 2, 3])
    return chain


@pytest.fixture
def mock_content_store():
    """Mock pinning service"""
    store = AsyncMock()
    store.pin_json = AsyncMock(return_value="QmTestVoteCid")
    return store


@pytest.fixture
def registry(mock_snapshot_client, repository, mock_chain):
    return default_registry(mock_snapshot_client, repository, mock_chain)


@pytest.fixture
def verifier(settings):
    return SignatureVerifier(EthIdentityAdapter(), settings)


@pytest.fixture
def tracker(repository, mock_snapshot_client, registry, settings):
    return SnapshotStatusTracker(repository, mock_snapshot_client, registry, settings)


@pytest.fixture
def pipeline(repository, registry, verifier, mock_content_store, tracker, settings):
    return VotePipeline(
        repository=repository,
        registry=registry,
        verifier=verifier,
        content_store=mock_content_store,
        snapshot_tracker=tracker,
        settings=settings,
    )
