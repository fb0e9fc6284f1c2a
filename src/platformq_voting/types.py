"""
Core types and constants for vote admission.
"""

from enum import Enum


# Token amounts are integers in the smallest on-chain unit
TOKEN_DECIMALS = 8
TOKEN_SCALE = 10 ** TOKEN_DECIMALS


class SignatureRole(Enum):
    """Which verification key set a signature is checked against"""
    USER = "USER"  # personal message signed by the voter
    TRANSACTION = "TRANSACTION"  # transaction envelope signature


class StrategyName(str, Enum):
    """Names of the built-in weighting strategies"""
    TOKEN_WEIGHTED_DEFAULT = "token-weighted-default"
    STAKED_TOKEN_WEIGHTED_DEFAULT = "staked-token-weighted-default"
    TOTAL_TOKEN_WEIGHTED_DEFAULT = "total-token-weighted-default"
    ONE_ADDRESS_ONE_VOTE = "one-address-one-vote"
    BALANCE_OF_NFTS = "balance-of-nfts"
