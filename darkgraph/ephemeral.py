"""
Deterministic Ephemeral Key Rotation

Ephemeral X25519 key pairs are derived from a master secret and a time
window (epoch) instead of being generated and stored. Anyone holding the
master secret and agreeing on the rotation period can recompute the key
for the current or any past epoch:

    epoch  = floor(timestamp / rotation_period_ms)
    info   = epoch (8 bytes BE) || rotation_period_ms (8 bytes BE)
    secret = HKDF(master_secret, EPHEMERAL_KEY_SALT, info, 32)

An ephemeral key proof is an Ed25519 signature by the long-term identity
over the ephemeral public key, so relying parties can accept the ephemeral
key without every message being signed by the master key.
"""

import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .config import DEFAULT_ROTATION_PERIOD_MS, EPHEMERAL_KEY_PROOF_DOMAIN, EPHEMERAL_KEY_SALT
from .primitives import (
    KEY_SIZE,
    SIGNATURE_SIZE,
    derive_key,
    get_x25519_public_key,
    is_valid_public_key_hex,
    sign,
    verify,
)


@dataclass(frozen=True)
class EphemeralKeyPair:
    """
    Ephemeral key pair for one rotation window.

    Attributes:
        secret: 32-byte X25519 secret
        public: 32-byte X25519 public key
        epoch: Window number the key belongs to
        rotation_period_ms: Window length used for the derivation
    """
    secret: bytes
    public: bytes
    epoch: int
    rotation_period_ms: int

    def to_dict(self) -> Dict:
        """Public part only; the secret is never serialized"""
        return {
            'ephemeralPublic': self.public.hex(),
            'epoch': self.epoch,
            'rotationPeriodMs': self.rotation_period_ms
        }


def now_ms() -> int:
    return int(time.time() * 1000)


def current_epoch(rotation_period_ms: int = DEFAULT_ROTATION_PERIOD_MS,
                  timestamp: Optional[int] = None) -> int:
    """Epoch number containing timestamp (defaults to now)"""
    if rotation_period_ms <= 0:
        raise ValueError("rotation_period_ms must be positive")
    if timestamp is None:
        timestamp = now_ms()
    if timestamp < 0:
        raise ValueError("timestamp must not be negative")
    return int(timestamp) // rotation_period_ms


def epoch_bounds(epoch: int, rotation_period_ms: int = DEFAULT_ROTATION_PERIOD_MS) -> Tuple[int, int]:
    """
    Millisecond range covered by an epoch.

    Returns:
        Tuple of (start inclusive, end exclusive)
    """
    start = epoch * rotation_period_ms
    return start, start + rotation_period_ms


def derive_ephemeral_key(
    master_secret: bytes,
    rotation_period_ms: int = DEFAULT_ROTATION_PERIOD_MS,
    timestamp: Optional[int] = None
) -> EphemeralKeyPair:
    """
    Derive the ephemeral key pair for the window containing timestamp.

    Args:
        master_secret: Master secret key material
        rotation_period_ms: Key rotation period in milliseconds (default 24 hours)
        timestamp: Unix time in milliseconds (defaults to now)

    Returns:
        EphemeralKeyPair, identical for every timestamp in the same window
    """
    epoch = current_epoch(rotation_period_ms, timestamp)

    # Period is part of info so changing it never reuses an older key
    info = epoch.to_bytes(8, "big") + rotation_period_ms.to_bytes(8, "big")
    secret = derive_key(master_secret, EPHEMERAL_KEY_SALT, info, KEY_SIZE)

    return EphemeralKeyPair(
        secret=secret,
        public=get_x25519_public_key(secret),
        epoch=epoch,
        rotation_period_ms=rotation_period_ms
    )


def _proof_message(ephemeral_public: bytes) -> bytes:
    return EPHEMERAL_KEY_PROOF_DOMAIN + bytes(ephemeral_public)


def create_ephemeral_key_proof(ephemeral_public: bytes, master_seed: bytes) -> bytes:
    """
    Sign an ephemeral public key with the long-term identity.

    Args:
        ephemeral_public: Ephemeral public key being vouched for
        master_seed: Long-term Ed25519 seed

    Returns:
        64-byte Ed25519 signature
    """
    return sign(_proof_message(ephemeral_public), master_seed)


def verify_ephemeral_key_proof(ephemeral_public: bytes, proof: bytes, master_public: bytes) -> bool:
    """
    Check that an ephemeral key was vouched for by master_public.

    Returns False for any malformed input instead of raising.
    """
    if not isinstance(ephemeral_public, (bytes, bytearray)):
        return False
    if not isinstance(proof, (bytes, bytearray)) or len(proof) != SIGNATURE_SIZE:
        return False
    return verify(_proof_message(ephemeral_public), proof, master_public)


def verify_ephemeral_key_proof_hex(ephemeral_public: bytes, proof: bytes, master_public_hex: str) -> bool:
    """verify_ephemeral_key_proof() for a hex-encoded master public key"""
    if not is_valid_public_key_hex(master_public_hex):
        return False
    return verify_ephemeral_key_proof(ephemeral_public, proof, bytes.fromhex(master_public_hex))
