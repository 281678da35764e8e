"""
Encrypted Trust Signals (Dark Social Graph)

A trust signal is a directed, weighted edge "truster trusts trustee" that
hides the trustee from everyone except the trustee, while anyone can still
check that the truster authored it.

    nonce       = 32 random bytes (hex)
    commitment  = SHA-256(trustee_hex + nonce_hex)
    encrypted   = encrypt({"trustee", "nonce"}, X25519(trustee))
    signature   = Ed25519(truster, "CLOUT_TRUST_SIGNAL_V1:<commitment>:<weight>:<timestamp>")

The trustee decrypts, recomputes the commitment and checks the signature.
Third parties check the signature alone and learn nothing about the trustee.
Commitments use a fresh nonce every time, so two signals for the same edge
are unlinkable and cannot be deduplicated from the commitment.
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Union

from .config import TRUST_SIGNAL_DOMAIN
from .encryption import EncryptedPayload, decrypt, encrypt
from .primitives import (
    KEY_SIZE,
    SIGNATURE_SIZE,
    CryptoError,
    constant_time_compare,
    ed25519_priv_to_x25519,
    ed25519_to_x25519,
    from_hex,
    get_public_key,
    get_x25519_public_key,
    hash_data,
    parse_public_key,
    random_bytes,
    sign,
    verify,
)


logger = logging.getLogger(__name__)

Weight = Union[int, float]

_LOWER_HEX = re.compile(r"[0-9a-f]+")


@dataclass(frozen=True)
class TrustSignal:
    """
    Immutable encrypted trust attestation.

    Attributes:
        truster: Truster's Ed25519 public key (32 bytes)
        trustee_commitment: SHA-256 commitment to the trustee (32 bytes)
        encrypted_trustee: {trustee, nonce} encrypted to the trustee
        signature: Truster's Ed25519 signature (64 bytes)
        weight: Trust weight in (0, 1]
        timestamp: Creation time in milliseconds
    """
    truster: bytes
    trustee_commitment: bytes
    encrypted_trustee: EncryptedPayload
    signature: bytes
    weight: float
    timestamp: int

    def to_dict(self) -> Dict:
        """Convert to the hex wire shape"""
        return {
            'truster': self.truster.hex(),
            'trusteeCommitment': self.trustee_commitment.hex(),
            'encryptedTrustee': self.encrypted_trustee.to_dict(),
            'signature': self.signature.hex(),
            'weight': self.weight,
            'timestamp': self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'TrustSignal':
        """
        Create from the hex wire shape.

        Raises:
            ValueError: If a field is missing or malformed
        """
        try:
            commitment = from_hex(data['trusteeCommitment'])
            signature = from_hex(data['signature'])
            signal = cls(
                truster=parse_public_key(data['truster']),
                trustee_commitment=commitment,
                encrypted_trustee=EncryptedPayload.from_dict(data['encryptedTrustee']),
                signature=signature,
                weight=data['weight'],
                timestamp=data['timestamp']
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed trust signal: {e}")
        if len(commitment) != KEY_SIZE:
            raise ValueError(f"trusteeCommitment must be {KEY_SIZE} bytes, got {len(commitment)}")
        if len(signature) != SIGNATURE_SIZE:
            raise ValueError(f"signature must be {SIGNATURE_SIZE} bytes, got {len(signature)}")
        return signal


@dataclass(frozen=True)
class TrusteeReveal:
    """What the trustee learns from a signal addressed to them (both hex)"""
    trustee: str
    nonce: str


def canonical_weight(weight: Weight) -> str:
    """
    Format a weight with exactly two decimals.

    Rounds half-up on the exact binary value so every implementation signs
    and verifies the same string for the same float.

    Raises:
        ValueError: If weight is not a finite number
    """
    if isinstance(weight, bool) or not isinstance(weight, (int, float)):
        raise ValueError(f"weight must be a number, got {type(weight).__name__}")
    if not math.isfinite(weight):
        raise ValueError("weight must be finite")
    return str(Decimal(weight).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def signature_input(commitment: bytes, weight: Weight, timestamp: int) -> bytes:
    """Message the truster signs"""
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        raise ValueError(f"timestamp must be an integer, got {type(timestamp).__name__}")
    text = f"{TRUST_SIGNAL_DOMAIN}:{commitment.hex()}:{canonical_weight(weight)}:{timestamp}"
    return text.encode("utf-8")


def compute_commitment(trustee_hex: str, nonce_hex: str) -> bytes:
    return hash_data(trustee_hex + nonce_hex)


def _is_hex_field(value) -> bool:
    return isinstance(value, str) and len(value) == 2 * KEY_SIZE and _LOWER_HEX.fullmatch(value) is not None


def _parse_trustee_data(plaintext: str) -> TrusteeReveal:
    """
    Parse the decrypted {trustee, nonce} document.

    Raises:
        ValueError: Unless it is an object holding two 64-character lowercase hex strings
    """
    try:
        data = json.loads(plaintext)
    except RecursionError:
        raise ValueError("Trustee data is nested too deeply") from None
    if not isinstance(data, dict):
        raise ValueError("Trustee data must be a JSON object")
    trustee, nonce = data.get('trustee'), data.get('nonce')
    if not _is_hex_field(trustee) or not _is_hex_field(nonce):
        raise ValueError("Trustee data fields must be 32-byte lowercase hex")
    return TrusteeReveal(trustee=trustee, nonce=nonce)


def create_encrypted_trust_signal(
    truster_seed: bytes,
    truster_public: bytes,
    trustee_public: bytes,
    weight: Weight,
    timestamp: int
) -> TrustSignal:
    """
    Create an encrypted trust signal.

    Args:
        truster_seed: Truster's 32-byte Ed25519 seed
        truster_public: Truster's Ed25519 public key
        trustee_public: Trustee's Ed25519 public key
        weight: Trust weight in (0, 1]
        timestamp: Creation time in milliseconds

    Returns:
        TrustSignal ready to be published

    Raises:
        ValueError: On malformed keys, a weight outside (0, 1] or a non-integer timestamp
    """
    if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not 0 < weight <= 1:
        raise ValueError(f"Trust weight must be in (0, 1], got {weight!r}")
    if len(trustee_public) != KEY_SIZE:
        raise ValueError(f"trustee public key must be {KEY_SIZE} bytes, got {len(trustee_public)}")
    if get_public_key(truster_seed) != bytes(truster_public):
        raise ValueError("truster public key does not match truster seed")

    trustee_hex = bytes(trustee_public).hex()
    nonce_hex = random_bytes(KEY_SIZE).hex()
    commitment = compute_commitment(trustee_hex, nonce_hex)

    # Trustee needs the nonce to check the commitment
    trustee_data = json.dumps({'trustee': trustee_hex, 'nonce': nonce_hex}, separators=(",", ":"))
    encrypted = encrypt(trustee_data, ed25519_to_x25519(trustee_public))

    signature = sign(signature_input(commitment, weight, timestamp), truster_seed)

    return TrustSignal(
        truster=bytes(truster_public),
        trustee_commitment=commitment,
        encrypted_trustee=encrypted,
        signature=signature,
        weight=weight,
        timestamp=timestamp
    )


def decrypt_trust_signal(
    signal: TrustSignal,
    truster_public: bytes,
    recipient_seed: bytes,
    recipient_public: Optional[bytes] = None
) -> Optional[TrusteeReveal]:
    """
    Open a trust signal as its trustee.

    Decrypts the trustee data, recomputes the commitment and checks the
    truster's signature. Every failure returns None, whichever check failed.

    Args:
        signal: The received signal
        truster_public: Truster's Ed25519 public key
        recipient_seed: Our Ed25519 seed
        recipient_public: Our Ed25519 public key, derived if omitted

    Returns:
        TrusteeReveal if the signal is addressed to us and authentic, else None
    """
    try:
        x25519_secret = ed25519_priv_to_x25519(recipient_seed)
        if recipient_public is not None:
            x25519_public = ed25519_to_x25519(recipient_public)
        else:
            x25519_public = get_x25519_public_key(x25519_secret)

        plaintext = decrypt(
            signal.encrypted_trustee.ephemeral_public_key,
            signal.encrypted_trustee.ciphertext,
            x25519_secret,
            x25519_public
        )
        reveal = _parse_trustee_data(plaintext)

        expected = compute_commitment(reveal.trustee, reveal.nonce)
        if not constant_time_compare(expected, bytes(signal.trustee_commitment)):
            logger.debug("Rejected trust signal")
            return None

        message = signature_input(signal.trustee_commitment, signal.weight, signal.timestamp)
        if not verify(message, signal.signature, truster_public):
            logger.debug("Rejected trust signal")
            return None

        return reveal
    except (CryptoError, ValueError, KeyError, TypeError):
        # Not addressed to us, or malformed
        logger.debug("Rejected trust signal")
        return None


def verify_encrypted_trust_signature(
    commitment: bytes,
    truster_public: bytes,
    signature: bytes,
    weight: Weight,
    timestamp: int
) -> bool:
    """
    Check a trust signal's signature as a third party.

    Confirms the truster authored this commitment, weight and timestamp
    without revealing the trustee. Never raises.
    """
    try:
        return verify(signature_input(commitment, weight, timestamp), signature, truster_public)
    except (ValueError, TypeError, AttributeError):
        return False


def verify_trust_signal(signal: TrustSignal) -> bool:
    """verify_encrypted_trust_signature() using the signal's own fields"""
    return verify_encrypted_trust_signature(
        signal.trustee_commitment,
        signal.truster,
        signal.signature,
        signal.weight,
        signal.timestamp
    )
