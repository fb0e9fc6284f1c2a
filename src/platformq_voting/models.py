"""
Core data models for vote admission and tallying.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from eth_utils import to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import AuthorizationError, ValidationError


def checksum_address(value: str) -> str:
    """Canonical EIP-55 form of an account address; raises ValueError when malformed"""
    try:
        return to_checksum_address(value)
    except (TypeError, ValueError):
        raise ValueError(f"invalid account address: {value!r}")


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SnapshotStatus(str, Enum):
    """Readiness of a proposal's balance snapshot"""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SnapshotStatus.PROCESSING


class Contract(BaseModel):
    """On-chain token or NFT contract a strategy reads balances from"""
    name: Optional[str] = None
    addr: Optional[str] = None
    public_path: Optional[str] = None
    threshold: Optional[float] = None
    max_weight: Optional[float] = None


class Proposal(BaseModel):
    """A ballot: valid choices, voting window and weighting strategy"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    community_id: int
    choices: List[str]
    strategy: str
    min_balance: Optional[float] = None
    max_weight: Optional[float] = None
    block_height: Optional[int] = None
    snapshot_status: Optional[SnapshotStatus] = None
    start_time: datetime
    end_time: datetime
    contract: Optional[Contract] = None

    @field_validator("choices")
    @classmethod
    def _choices_unique(cls, choices: List[str]) -> List[str]:
        if not choices:
            raise ValueError("proposal must define at least one choice")
        if len(set(choices)) != len(choices):
            raise ValueError("proposal choices must be unique")
        return choices

    @field_validator("start_time", "end_time")
    @classmethod
    def _window_in_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def is_live(self, now: Optional[datetime] = None) -> bool:
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        return self.start_time <= now <= self.end_time

    def validate_choice(self, choice: str):
        if choice not in self.choices:
            raise ValidationError("Invalid choice for proposal")

    def validate_balance(self, weight: float):
        if self.min_balance is not None and self.min_balance > 0 and weight < self.min_balance:
            raise AuthorizationError("Account balance is too low to vote on this proposal.")


class CompositeSignature(BaseModel):
    """One signer's contribution to a multi-signature authentication"""
    model_config = ConfigDict(populate_by_name=True)

    f_type: str = "CompositeSignature"
    f_vsn: str = "1.0.0"
    addr: str
    key_id: int = Field(0, alias="keyId")
    signature: str

    @field_validator("addr")
    @classmethod
    def _checksum_addr(cls, addr: str) -> str:
        return checksum_address(addr)


class VoucherArgument(BaseModel):
    type: str
    value: Any


class ProposalKey(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: str
    key_id: int = Field(0, alias="keyId")
    sequence_num: int = Field(0, alias="sequenceNum")


class VoucherSignature(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: str
    key_id: int = Field(0, alias="keyId")
    sig: str

    @field_validator("address")
    @classmethod
    def _checksum_address(cls, address: str) -> str:
        return checksum_address(address)


class Voucher(BaseModel):
    """Delegated-transaction envelope carrying vote intent and its own signatures"""
    model_config = ConfigDict(populate_by_name=True)

    cadence: str = ""
    ref_block: str = Field("", alias="refBlock")
    compute_limit: int = Field(0, alias="computeLimit")
    arguments: List[VoucherArgument]
    proposal_key: ProposalKey = Field(..., alias="proposalKey")
    payer: str
    authorizers: List[str]
    payload_sigs: List[VoucherSignature] = Field(default_factory=list, alias="payloadSigs")
    envelope_sigs: List[VoucherSignature] = Field(default_factory=list, alias="envelopeSigs")

    @field_validator("authorizers")
    @classmethod
    def _checksum_authorizers(cls, authorizers: List[str]) -> List[str]:
        return [checksum_address(addr) for addr in authorizers]


class Vote(BaseModel):
    """One voter's choice on a proposal; immutable once stored"""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    proposal_id: int
    addr: str
    choice: str
    message: str
    composite_signatures: List[CompositeSignature] = Field(default_factory=list)
    cid: Optional[str] = None
    created_at: Optional[datetime] = None


class Balance(BaseModel):
    """Balance components for an address at a proposal's snapshot height"""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    addr: str
    proposal_id: int
    strategy: Optional[str] = None
    block_height: int = 0
    primary_account_balance: int = 0
    secondary_account_balance: int = 0
    staking_balance: int = 0
    nft_count: int = 0
    created_at: Optional[datetime] = None


class VoteWithBalance(Vote):
    """A vote joined with the balance its weight is derived from"""
    primary_account_balance: Optional[int] = None
    secondary_account_balance: Optional[int] = None
    staking_balance: Optional[int] = None
    nft_count: Optional[int] = None
    block_height: Optional[int] = None
    weight: Optional[float] = None

    @classmethod
    def from_vote(cls, vote: Vote, balance: Optional[Balance] = None) -> "VoteWithBalance":
        data = vote.model_dump()
        if balance is not None:
            data.update(
                primary_account_balance=balance.primary_account_balance,
                secondary_account_balance=balance.secondary_account_balance,
                staking_balance=balance.staking_balance,
                nft_count=balance.nft_count,
                block_height=balance.block_height,
            )
        return cls(**data)


class ProposalResults(BaseModel):
    """Per-choice tally with an integer and a float view"""
    proposal_id: int
    results: Dict[str, int] = Field(default_factory=dict)
    results_float: Dict[str, float] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def seed(cls, proposal_id: int, choices: List[str]) -> "ProposalResults":
        return cls(
            proposal_id=proposal_id,
            results={choice: 0 for choice in choices},
            results_float={choice: 0.0 for choice in choices},
        )


@dataclass(frozen=True)
class DirectIntent:
    """Hex-encoded personal message signed directly by the voter"""
    message: str
    composite_signatures: List[CompositeSignature]


@dataclass(frozen=True)
class DelegatedIntent:
    """Vote intent carried by a transaction voucher"""
    voucher: Voucher


VoteIntent = Union[DirectIntent, DelegatedIntent]


class CreateVoteRequest(BaseModel):
    """Inbound vote submission"""
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    addr: str
    choice: str
    message: Optional[str] = None
    composite_signatures: Optional[List[CompositeSignature]] = Field(None, alias="compositeSignatures")
    voucher: Optional[Voucher] = None

    @field_validator("addr")
    @classmethod
    def _checksum_addr(cls, addr: str) -> str:
        # One form for storage, blocklist and the uniqueness constraint
        return checksum_address(addr)

    def intent(self) -> VoteIntent:
        if self.voucher is not None:
            return DelegatedIntent(voucher=self.voucher)
        if not self.message or not self.composite_signatures:
            raise ValidationError("Vote must carry a signed message or a voucher")
        return DirectIntent(message=self.message, composite_signatures=self.composite_signatures)


@dataclass
class PageParams:
    """Ordered pagination window for vote listings"""
    start: int = 0
    count: int = 25
    order: str = "desc"
    total_records: int = 0

    def __post_init__(self):
        self.start = max(self.start, 0)
        if self.count <= 0:
            self.count = 25
        if self.order not in ("asc", "desc"):
            self.order = "desc"
