"""
Signature verification for vote intents.

The verifier only orchestrates: it applies the feature gate, enforces the
voucher authorizer binding, and delegates the cryptographic check to a
ChainIdentity capability. Failures are reported to callers as a generic
authentication error; the underlying reason is only logged.
"""

import asyncio
import binascii
import logging
import time
from typing import List, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import decode_hex

from .codec import CanonicalIntent, canonicalize
from .config import Settings
from .errors import AuthorizationError, DependencyError, ServiceError, ValidationError
from .interfaces import ChainIdentity
from .models import CompositeSignature, DelegatedIntent, Proposal, VoteIntent, Voucher
from .types import SignatureRole

logger = logging.getLogger(__name__)

AUTHENTICATION_FAILED = "authentication failed"

DOMAIN_TAG_LENGTH = 32
DOMAIN_TAGS = {
    SignatureRole.USER: b"PLATFORMQ-V1.0-user",
    SignatureRole.TRANSACTION: b"PLATFORMQ-V1.0-transaction",
}


def _same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


def domain_tagged(message: str, role: SignatureRole) -> bytes:
    """Role-specific domain tag, right-padded to 32 bytes, followed by the message bytes"""
    tag = DOMAIN_TAGS[role].ljust(DOMAIN_TAG_LENGTH, b"\x00")
    return tag + decode_hex(message)


class SignatureVerificationError(Exception):
    """Raised by identity adapters when a signature does not check out"""
    pass


class EthIdentityAdapter:
    """
    ChainIdentity backed by eth-account key recovery.

    Every composite signature must recover to its own signer address, and at
    least one of them must belong to the claimed account.
    """

    async def verify_signatures(self, addr: str, message: str,
                                signatures: List[CompositeSignature],
                                role: SignatureRole) -> None:
        if not signatures:
            raise SignatureVerificationError("no signatures supplied")

        try:
            signable = encode_defunct(primitive=domain_tagged(message, role))
        except (binascii.Error, ValueError) as e:
            raise SignatureVerificationError(f"message is not hex encoded: {e}")

        signed_by_account = False
        for sig in signatures:
            try:
                recovered = Account.recover_message(signable, signature=decode_hex(sig.signature))
            except Exception as e:
                raise SignatureVerificationError(f"could not recover signer for {sig.addr}: {e}")

            if not _same_address(recovered, sig.addr):
                raise SignatureVerificationError(
                    f"signature recovered to {recovered}, expected {sig.addr}"
                )
            if _same_address(sig.addr, addr):
                signed_by_account = True

        if not signed_by_account:
            raise SignatureVerificationError(f"no signature from account {addr}")


class SignatureVerifier:
    """Authenticates vote intents against the claimed voter address"""

    def __init__(self, identity: ChainIdentity, settings: Settings):
        self.identity = identity
        self.settings = settings

    async def verify(self, addr: str, message: str,
                     signatures: List[CompositeSignature],
                     role: SignatureRole) -> None:
        if not self.settings.validate_sigs:
            return

        try:
            await asyncio.wait_for(
                self.identity.verify_signatures(addr, message, signatures, role),
                timeout=self.settings.external_call_timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"Signature verification for {addr} timed out")
            raise DependencyError("chain-identity", "signature verification timed out")
        except ServiceError:
            raise
        except Exception as e:
            logger.warning(f"{role.value} signature verification failed for {addr}: {e}")
            raise AuthorizationError(AUTHENTICATION_FAILED)

    def check_voucher_binding(self, addr: str, voucher: Voucher) -> None:
        """The first authorizer must be both the voter and the first envelope signer"""
        if not voucher.authorizers or not voucher.envelope_sigs:
            logger.warning(f"Voucher from {addr} has no authorizer or envelope signature")
            raise AuthorizationError("authorizer address must match voter address and envelope signer")

        authorizer = voucher.authorizers[0]
        signer = voucher.envelope_sigs[0].address
        if not _same_address(authorizer, addr) or not _same_address(authorizer, signer):
            logger.warning(
                f"Voucher authorizer {authorizer} does not match voter {addr} and signer {signer}"
            )
            raise AuthorizationError("authorizer address must match voter address and envelope signer")

    async def verify_intent(self, addr: str, intent: VoteIntent, proposal: Proposal) -> CanonicalIntent:
        """
        Authenticate a vote intent.

        The returned signed_message is what gets stored with the vote: the hex
        personal message for direct votes, the encoded voucher envelope for
        delegated ones.
        """
        if isinstance(intent, DelegatedIntent):
            self.check_voucher_binding(addr, intent.voucher)

        canonical = canonicalize(intent, proposal)
        await self.verify(addr, canonical.signed_message, canonical.signatures, canonical.role)
        return canonical

    def validate_timestamp(self, timestamp: str, expiry: Optional[int] = None) -> None:
        """Reject a signed millisecond timestamp older than ``expiry`` seconds"""
        if not self.settings.validate_timestamps:
            return

        expiry = expiry if expiry is not None else self.settings.timestamp_expiry_seconds
        try:
            stamp_ms = int(timestamp)
        except (TypeError, ValueError):
            raise ValidationError("Invalid request timestamp")

        age = time.time() - stamp_ms / 1000
        if age > expiry:
            logger.warning(f"Request timestamp expired {age:.1f}s ago (limit {expiry}s)")
            raise AuthorizationError("Timestamp on request has expired.")
