"""
Vote-intent message codec.

A vote intent is the canonical string ``<proposalId>:<choice>:<timestamp>``.
Direct votes carry it hex-encoded; voucher votes carry it as the first three
transaction arguments, and what the envelope signers actually signed is the
RLP encoding of the voucher's transaction envelope.
"""

import binascii
import json
import logging
from typing import List, NamedTuple

import rlp
from eth_utils import decode_hex, encode_hex

from .errors import ValidationError
from .models import (
    CompositeSignature, DelegatedIntent, DirectIntent, Proposal, VoteIntent, Voucher
)
from .types import SignatureRole

logger = logging.getLogger(__name__)

MESSAGE_SEPARATOR = ":"


def validate_vote_message(message: str, proposal: Proposal):
    """Check a canonical vote message against the proposal it targets"""
    parts = message.split(MESSAGE_SEPARATOR)
    if len(parts) != 3:
        raise ValidationError("Invalid vote message format, expected <proposalId>:<choice>:<timestamp>")

    proposal_id, choice, timestamp = parts
    if proposal_id != str(proposal.id):
        raise ValidationError("Vote message does not match proposal")
    if choice not in proposal.choices:
        raise ValidationError("Invalid choice for proposal")
    if not timestamp.isdigit():
        raise ValidationError("Invalid vote message timestamp")


def decode_hex_message(message: str) -> str:
    try:
        return decode_hex(message).decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError):
        raise ValidationError("Vote message is not valid hex-encoded text")


def _hex_bytes(value: str) -> bytes:
    try:
        return decode_hex(value) if value else b""
    except (binascii.Error, ValueError):
        raise ValidationError(f"Voucher field is not valid hex: {value!r}")


def _encode_argument(argument) -> bytes:
    return json.dumps(
        {"type": argument.type, "value": argument.value},
        sort_keys=True,
        separators=(",", ":")
    ).encode("utf-8")


def message_from_voucher(voucher: Voucher) -> str:
    """Re-assemble the canonical vote message from the voucher arguments"""
    if len(voucher.arguments) < 3:
        raise ValidationError("Voucher must carry proposal id, choice and timestamp arguments")
    return MESSAGE_SEPARATOR.join(str(arg.value) for arg in voucher.arguments[:3])


def _payload_fields(voucher: Voucher) -> list:
    return [
        voucher.cadence.encode("utf-8"),
        [_encode_argument(arg) for arg in voucher.arguments],
        _hex_bytes(voucher.ref_block),
        voucher.compute_limit,
        _hex_bytes(voucher.proposal_key.address),
        voucher.proposal_key.key_id,
        voucher.proposal_key.sequence_num,
        _hex_bytes(voucher.payer),
        [_hex_bytes(addr) for addr in voucher.authorizers],
    ]


def encode_voucher_message(voucher: Voucher) -> str:
    """RLP-encode the voucher's transaction envelope; this is what envelope signers sign"""
    payload_sigs = [
        [_hex_bytes(sig.address), sig.key_id, _hex_bytes(sig.sig)]
        for sig in voucher.payload_sigs
    ]
    return encode_hex(rlp.encode([_payload_fields(voucher), payload_sigs]))


def decode_voucher_message(message: str) -> str:
    """Recover the canonical vote message from an encoded voucher envelope"""
    try:
        payload, _ = rlp.decode(decode_hex(message))
        arguments = [json.loads(raw.decode("utf-8"))["value"] for raw in payload[1]]
    except (binascii.Error, ValueError, TypeError, IndexError, KeyError,
            UnicodeDecodeError, rlp.DecodingError) as e:
        logger.warning(f"Could not decode voucher envelope: {e}")
        raise ValidationError("Vote message is not a valid voucher envelope")

    if len(arguments) < 3:
        raise ValidationError("Voucher must carry proposal id, choice and timestamp arguments")
    return MESSAGE_SEPARATOR.join(str(value) for value in arguments[:3])


def composite_signatures_from_voucher(voucher: Voucher) -> List[CompositeSignature]:
    return [
        CompositeSignature(addr=sig.address, key_id=sig.key_id, signature=sig.sig)
        for sig in voucher.envelope_sigs
    ]


class CanonicalIntent(NamedTuple):
    signed_message: str  # what the signatures must cover
    canonical: str  # <proposalId>:<choice>:<timestamp>
    signatures: List[CompositeSignature]
    role: SignatureRole

    @property
    def choice(self) -> str:
        return self.canonical.split(MESSAGE_SEPARATOR)[1]

    @property
    def timestamp(self) -> str:
        return self.canonical.split(MESSAGE_SEPARATOR)[2]


def canonicalize(intent: VoteIntent, proposal: Proposal) -> CanonicalIntent:
    """Validate a vote intent against its proposal and normalize both encodings"""
    if isinstance(intent, DelegatedIntent):
        canonical = message_from_voucher(intent.voucher)
        validate_vote_message(canonical, proposal)
        return CanonicalIntent(
            signed_message=encode_voucher_message(intent.voucher),
            canonical=canonical,
            signatures=composite_signatures_from_voucher(intent.voucher),
            role=SignatureRole.TRANSACTION,
        )
    if isinstance(intent, DirectIntent):
        canonical = decode_hex_message(intent.message)
        validate_vote_message(canonical, proposal)
        return CanonicalIntent(
            signed_message=intent.message,
            canonical=canonical,
            signatures=list(intent.composite_signatures),
            role=SignatureRole.USER,
        )

    raise ValidationError("Unsupported vote intent")
