"""
Weighting strategies for token and role based governance
"""

from .balance_of_nfts import BalanceOfNfts
from .one_address_one_vote import OneAddressOneVote
from .registry import StrategyRegistry, default_registry
from .strategy import VotingStrategy
from .token_weighted import (
    StakedTokenWeightedDefault, TokenWeightedDefault, TotalTokenWeightedDefault
)

__all__ = [
    "BalanceOfNfts",
    "OneAddressOneVote",
    "StakedTokenWeightedDefault",
    "StrategyRegistry",
    "TokenWeightedDefault",
    "TotalTokenWeightedDefault",
    "VotingStrategy",
    "default_registry",
]
