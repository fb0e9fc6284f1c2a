"""
PlatformQ Voting

Vote admission, signature verification, balance weighting and tallying for
token and role based governance proposals.
"""

from .config import Settings, get_settings
from .errors import (
    AuthorizationError,
    ConflictError,
    DependencyError,
    ErrorCode,
    InternalError,
    NotFoundError,
    RejectionBody,
    ServiceError,
    ValidationError,
    add_error_handlers
)
from .models import (
    Balance,
    CompositeSignature,
    Contract,
    CreateVoteRequest,
    DelegatedIntent,
    DirectIntent,
    PageParams,
    Proposal,
    ProposalResults,
    SnapshotStatus,
    Vote,
    VoteIntent,
    VoteWithBalance,
    Voucher
)
from .pipeline import VotePipeline
from .repository import SqlAlchemyVoteRepository
from .signatures import EthIdentityAdapter, SignatureVerifier
from .snapshot import SnapshotStatusTracker
from .strategies import StrategyRegistry, VotingStrategy, default_registry
from .types import SignatureRole, StrategyName

__all__ = [
    # Config
    "Settings",
    "get_settings",

    # Errors
    "AuthorizationError",
    "ConflictError",
    "DependencyError",
    "ErrorCode",
    "InternalError",
    "NotFoundError",
    "RejectionBody",
    "ServiceError",
    "ValidationError",
    "add_error_handlers",

    # Models
    "Balance",
    "CompositeSignature",
    "Contract",
    "CreateVoteRequest",
    "DelegatedIntent",
    "DirectIntent",
    "PageParams",
    "Proposal",
    "ProposalResults",
    "SnapshotStatus",
    "Vote",
    "VoteIntent",
    "VoteWithBalance",
    "Voucher",

    # Types
    "SignatureRole",
    "StrategyName",

    # Components
    "EthIdentityAdapter",
    "SignatureVerifier",
    "SnapshotStatusTracker",
    "SqlAlchemyVoteRepository",
    "StrategyRegistry",
    "VotePipeline",
    "VotingStrategy",
    "default_registry",
]

__version__ = "1.0.0"
