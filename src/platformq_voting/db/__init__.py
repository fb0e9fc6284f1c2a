from .models import Base, BalanceRecord, BlocklistEntry, ProposalRecord, VoteRecord
from .session import create_session_factory, init_db

__all__ = [
    "Base",
    "BalanceRecord",
    "BlocklistEntry",
    "ProposalRecord",
    "VoteRecord",
    "create_session_factory",
    "init_db",
]
