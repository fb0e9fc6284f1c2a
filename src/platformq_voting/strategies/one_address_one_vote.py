"""
One address, one vote.

Every admitted vote weighs exactly 1; no balance is read from the chain.
"""

from ..models import Balance, Proposal, VoteWithBalance
from ..types import StrategyName
from .strategy import VotingStrategy


class OneAddressOneVote(VotingStrategy):

    name = StrategyName.ONE_ADDRESS_ONE_VOTE.value

    def requires_snapshot(self) -> bool:
        return False

    async def fetch_balance(self, balance: Balance, proposal: Proposal) -> Balance:
        return balance.model_copy(update={"strategy": self.name})

    def get_vote_weight_for_balance(self, vote: VoteWithBalance, proposal: Proposal) -> float:
        return 1.0
