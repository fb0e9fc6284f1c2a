"""
Registry for voting strategies.
"""

import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from ..errors import InternalError
from ..interfaces import BalanceSnapshotService, ChainReader, VoteRepository
from .balance_of_nfts import BalanceOfNfts
from .one_address_one_vote import OneAddressOneVote
from .strategy import VotingStrategy
from .token_weighted import (
    StakedTokenWeightedDefault, TokenWeightedDefault, TotalTokenWeightedDefault
)

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """
    Maps strategy names stored on proposals to strategy instances.

    Strategies are registered once at startup; after ``freeze()`` the
    registry is read-only.
    """

    def __init__(self):
        self._strategies: Mapping[str, VotingStrategy] = {}
        self._frozen = False

    def register(self, strategy: VotingStrategy):
        """Register a voting strategy under its name"""
        if self._frozen:
            raise InternalError(f"Cannot register {strategy.name}: strategy registry is frozen")
        if not strategy.name:
            raise InternalError(f"{strategy.__class__.__name__} has no strategy name")
        if strategy.name in self._strategies:
            raise InternalError(f"Strategy already registered: {strategy.name}")

        self._strategies[strategy.name] = strategy
        logger.info(f"Registered voting strategy: {strategy.name}")

    def freeze(self) -> "StrategyRegistry":
        self._strategies = MappingProxyType(dict(self._strategies))
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: Optional[str]) -> VotingStrategy:
        strategy = self._strategies.get(name) if name else None
        if strategy is None:
            logger.error(f"Unknown voting strategy: {name}")
            raise InternalError(f"Strategy not found: {name}")
        return strategy

    def __contains__(self, name: str) -> bool:
        return name in self._strategies

    def get_available_strategies(self) -> List[str]:
        return list(self._strategies.keys())


def default_registry(snapshot_client: BalanceSnapshotService,
                     repository: VoteRepository,
                     chain: Optional[ChainReader] = None,
                     config: Optional[Dict] = None) -> StrategyRegistry:
    """Build and freeze a registry holding the built-in strategies"""
    registry = StrategyRegistry()
    for strategy_class in (
        TokenWeightedDefault,
        StakedTokenWeightedDefault,
        TotalTokenWeightedDefault,
        OneAddressOneVote,
        BalanceOfNfts,
    ):
        registry.register(strategy_class(
            snapshot_client=snapshot_client,
            repository=repository,
            chain=chain,
            config=config,
        ))
    return registry.freeze()
