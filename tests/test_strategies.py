import math
from unittest.mock import AsyncMock

import pytest

from platformq_voting.errors import DependencyError, InternalError
from platformq_voting.models import Balance, ProposalResults, VoteWithBalance
from platformq_voting.strategies import (
    BalanceOfNfts,
    OneAddressOneVote,
    StrategyRegistry,
    TokenWeightedDefault,
    TotalTokenWeightedDefault,
    default_registry,
)
from platformq_voting.types import StrategyName

from vote_helpers import make_proposal


def weighted_vote(choice="a", addr="0xabc", **balances) -> VoteWithBalance:
    return VoteWithBalance(proposal_id=1, addr=addr, choice=choice, message="0x", **balances)


class TestRegistry:
    """Strategy registration and lookup"""

    def test_default_registry_has_all_strategies(self, registry):
        assert set(registry.get_available_strategies()) == {s.value for s in StrategyName}
        assert registry.frozen

    def test_unknown_strategy(self, registry):
        with pytest.raises(InternalError, match="Strategy not found"):
            registry.get("quadratic")

    def test_missing_strategy_name(self, registry):
        with pytest.raises(InternalError):
            registry.get(None)

    def test_frozen_registry_rejects_registration(self, registry):
        with pytest.raises(InternalError, match="frozen"):
            registry.register(OneAddressOneVote())

    def test_duplicate_registration(self):
        registry = StrategyRegistry()
        registry.register(OneAddressOneVote())
        with pytest.raises(InternalError, match="already registered"):
            registry.register(OneAddressOneVote())

    def test_contains(self, registry):
        assert "one-address-one-vote" in registry
        assert "quadratic" not in registry


class TestTokenWeighted:

    def test_weight_is_capped_by_max_weight(self):
        strategy = TokenWeightedDefault()
        proposal = make_proposal(max_weight=2.0)

        assert strategy.get_vote_weight_for_balance(
            weighted_vote(primary_account_balance=250_000_000), proposal
        ) == 2.0

    def test_weight_without_cap(self):
        strategy = TokenWeightedDefault()
        weight = strategy.get_vote_weight_for_balance(
            weighted_vote(primary_account_balance=250_000_000), make_proposal()
        )
        assert weight == 2.5

    def test_weight_is_deterministic(self):
        strategy = TokenWeightedDefault()
        proposal = make_proposal(max_weight=10.0)
        vote = weighted_vote(primary_account_balance=123_456_789)

        weights = {strategy.get_vote_weight_for_balance(vote, proposal) for _ in range(5)}
        assert weights == {1.23456789}

    def test_missing_balance_weighs_zero(self):
        assert TokenWeightedDefault().get_vote_weight_for_balance(weighted_vote(), make_proposal()) == 0.0

    def test_zero_balance_weighs_zero(self):
        strategy = TokenWeightedDefault()
        assert strategy.get_vote_weight_for_balance(
            weighted_vote(primary_account_balance=0), make_proposal()
        ) == 0.0

    def test_negative_balance_is_an_internal_error(self):
        strategy = TokenWeightedDefault()
        with pytest.raises(InternalError, match="no weight found"):
            strategy.get_vote_weight_for_balance(
                weighted_vote(primary_account_balance=-5), make_proposal()
            )

    def test_total_sums_components(self):
        strategy = TotalTokenWeightedDefault()
        vote = weighted_vote(
            primary_account_balance=100_000_000,
            secondary_account_balance=50_000_000,
            staking_balance=25_000_000,
        )
        assert strategy.get_vote_weight_for_balance(vote, make_proposal()) == 1.75

    def test_requires_snapshot(self, registry):
        assert registry.get("token-weighted-default").requires_snapshot()
        assert registry.get("staked-token-weighted-default").requires_snapshot()
        assert not registry.get("one-address-one-vote").requires_snapshot()


class TestTally:

    def test_integer_results_truncate_each_vote(self):
        strategy = TokenWeightedDefault()
        proposal = make_proposal()
        votes = [
            weighted_vote("a", addr="0x1", primary_account_balance=150_000_000),
            weighted_vote("b", addr="0x2", primary_account_balance=200_000_000),
            weighted_vote("a", addr="0x3", primary_account_balance=0),
        ]

        results = strategy.tally_votes(votes, ProposalResults.seed(1, proposal.choices), proposal)

        assert results.results == {"a": 1, "b": 2}
        assert results.results_float == {"a": 1.5, "b": 2.0}

    def test_tally_is_order_independent(self):
        strategy = TokenWeightedDefault()
        proposal = make_proposal(max_weight=3.0)
        votes = [
            weighted_vote("a", addr=f"0x{i}", primary_account_balance=i * 70_000_000)
            for i in range(1, 7)
        ]

        forward = strategy.tally_votes(votes, ProposalResults.seed(1, proposal.choices), proposal)
        backward = strategy.tally_votes(list(reversed(votes)), ProposalResults.seed(1, proposal.choices), proposal)

        assert forward.results == backward.results
        assert math.isclose(forward.results_float["a"], backward.results_float["a"])

    def test_seeded_choices_without_votes_stay_zero(self):
        proposal = make_proposal(choices=["a", "b", "c"])
        results = OneAddressOneVote().tally_votes(
            [weighted_vote("a")], ProposalResults.seed(1, proposal.choices), proposal
        )
        assert results.results == {"a": 1, "b": 0, "c": 0}

    def test_get_votes_sets_weights(self):
        votes = TokenWeightedDefault().get_votes(
            [weighted_vote(primary_account_balance=100_000_000)], make_proposal()
        )
        assert votes[0].weight == 1.0


class TestOneAddressOneVote:

    @pytest.mark.asyncio
    async def test_balance_is_not_persisted(self, repository):
        strategy = OneAddressOneVote(repository=repository)
        proposal = make_proposal(strategy="one-address-one-vote")
        repository.create_proposal(proposal)

        balance = await strategy.fetch_balance(Balance(addr="0xabc", proposal_id=1), proposal)

        assert balance.strategy == "one-address-one-vote"
        assert repository.get_balance("0xabc", 1) is None

    def test_every_vote_weighs_one(self):
        strategy = OneAddressOneVote()
        assert strategy.get_vote_weight_for_balance(weighted_vote(), make_proposal()) == 1.0


class TestBalanceOfNfts:

    @pytest.mark.asyncio
    async def test_weight_is_nft_count(self, repository, mock_chain):
        strategy = BalanceOfNfts(repository=repository, chain=mock_chain)
        proposal = make_proposal(strategy="balance-of-nfts", max_weight=2.0)
        repository.create_proposal(proposal)

        balance = await strategy.fetch_balance(Balance(addr="0xabc", proposal_id=1), proposal)

        assert balance.nft_count == 3
        vote = VoteWithBalance.from_vote(weighted_vote(), balance)
        assert strategy.get_vote_weight_for_balance(vote, proposal) == 2.0

    @pytest.mark.asyncio
    async def test_missing_contract(self, repository, mock_chain):
        strategy = BalanceOfNfts(repository=repository, chain=mock_chain)
        proposal = make_proposal(strategy="balance-of-nfts", contract=None)

        with pytest.raises(InternalError):
            await strategy.fetch_balance(Balance(addr="0xabc", proposal_id=1), proposal)


class TestFetchBalance:

    @pytest.mark.asyncio
    async def test_balance_is_resolved_once(self, repository, mock_snapshot_client):
        strategy = TokenWeightedDefault(snapshot_client=mock_snapshot_client, repository=repository)
        proposal = make_proposal()
        repository.create_proposal(proposal)
        empty = Balance(addr="0xabc", proposal_id=1, block_height=1000)

        first = await strategy.fetch_balance(empty, proposal)
        second = await strategy.fetch_balance(empty, proposal)

        assert first.id == second.id
        assert first.primary_account_balance == 250_000_000
        assert first.strategy == "token-weighted-default"
        mock_snapshot_client.get_address_balance_at_block_height.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrently_stored_balance_is_reused(self, repository, mock_snapshot_client):
        strategy = TokenWeightedDefault(snapshot_client=mock_snapshot_client, repository=repository)
        proposal = make_proposal()
        repository.create_proposal(proposal)
        existing = repository.create_balance(
            Balance(addr="0xabc", proposal_id=1, block_height=1000, primary_account_balance=7)
        )

        # Simulate losing the race: the initial lookup misses, the insert collides
        original_get = repository.get_balance
        calls = []

        def racing_get(addr, proposal_id):
            calls.append(addr)
            return None if len(calls) == 1 else original_get(addr, proposal_id)

        repository.get_balance = racing_get
        balance = await strategy.fetch_balance(Balance(addr="0xabc", proposal_id=1, block_height=1000), proposal)

        assert balance.id == existing.id
        assert balance.primary_account_balance == 7

    @pytest.mark.asyncio
    async def test_snapshot_failure_stores_nothing(self, repository):
        snapshot_client = AsyncMock()
        snapshot_client.get_address_balance_at_block_height = AsyncMock(
            side_effect=DependencyError("snapshot-service", "request failed")
        )
        strategy = TokenWeightedDefault(snapshot_client=snapshot_client, repository=repository)
        proposal = make_proposal()
        repository.create_proposal(proposal)

        with pytest.raises(DependencyError):
            await strategy.fetch_balance(Balance(addr="0xabc", proposal_id=1), proposal)
        assert repository.get_balance("0xabc", 1) is None

    def test_strategy_metadata(self):
        metadata = TokenWeightedDefault(config={"decimals": 8}).get_strategy_metadata()
        assert metadata == {
            "name": "token-weighted-default",
            "requires_snapshot": True,
            "config": {"decimals": 8},
        }


def test_default_registry_shares_collaborators(mock_snapshot_client, repository, mock_chain):
    registry = default_registry(mock_snapshot_client, repository, mock_chain)
    for name in registry.get_available_strategies():
        assert registry.get(name).repository is repository
