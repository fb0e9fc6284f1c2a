"""
Token-weighted strategies.

Weight is the normalized token amount of one balance component (or all of
them), capped by the proposal's maximum weight.
"""

from typing import Optional

from ..models import VoteWithBalance
from ..types import StrategyName
from .strategy import VotingStrategy


class TokenWeightedDefault(VotingStrategy):
    """Weighted by the voter's primary account balance at the snapshot height"""

    name = StrategyName.TOKEN_WEIGHTED_DEFAULT.value
    balance_field = "primary_account_balance"

    def requires_snapshot(self) -> bool:
        return True


class StakedTokenWeightedDefault(VotingStrategy):
    """Weighted by the voter's staked balance at the snapshot height"""

    name = StrategyName.STAKED_TOKEN_WEIGHTED_DEFAULT.value
    balance_field = "staking_balance"

    def requires_snapshot(self) -> bool:
        return True


class TotalTokenWeightedDefault(VotingStrategy):
    """Weighted by primary, secondary and staked balances combined"""

    name = StrategyName.TOTAL_TOKEN_WEIGHTED_DEFAULT.value

    def requires_snapshot(self) -> bool:
        return True

    def balance_amount(self, vote: VoteWithBalance) -> Optional[int]:
        components = [
            vote.primary_account_balance,
            vote.secondary_account_balance,
            vote.staking_balance,
        ]
        if all(c is None for c in components):
            return None
        return sum(c or 0 for c in components)
