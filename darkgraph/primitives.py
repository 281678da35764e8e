"""
Cryptographic Primitives for the Dark Social Graph

This module provides the foundational operations the rest of the package is
built from: hashing and canonical JSON, HKDF key derivation, Ed25519
signatures, X25519 key agreement, and the Edwards-to-Montgomery conversion
that lets a single Ed25519 identity key also serve for encryption.
"""

import os
import hmac
import json
import hashlib
from dataclasses import dataclass
from typing import Any, Tuple, Union

import nacl.bindings
import nacl.exceptions
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.kdf.hkdf import HKDF


KEY_SIZE = 32
SIGNATURE_SIZE = 64

HashInput = Union[bytes, str, int]


class CryptoError(Exception):
    """Base exception for cryptographic errors"""
    pass


class DecryptionError(CryptoError):
    """Ciphertext could not be authenticated with the given key"""
    pass


class ProofOfWorkError(CryptoError):
    """Proof-of-work search gave up"""
    pass


def random_bytes(length: int) -> bytes:
    """Draw bytes from the operating system CSPRNG"""
    return os.urandom(length)


def to_hex(data: bytes) -> str:
    return data.hex()


def from_hex(text: str) -> bytes:
    """Decode a hex string. Raises ValueError if it is not valid hex."""
    if not isinstance(text, str):
        raise ValueError(f"Expected hex string, got {type(text).__name__}")
    return bytes.fromhex(text)


# =====================================================================
#  HASHING & CANONICALIZATION
# =====================================================================

def _encode_hash_input(value: HashInput) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, int):
        return value.to_bytes(8, "big", signed=False)
    raise TypeError(f"Cannot hash value of type {type(value).__name__}")


def hash_data(*inputs: HashInput) -> bytes:
    """
    SHA-256 over the concatenation of all inputs.

    Strings are UTF-8 encoded, integers become 8-byte big-endian unsigned
    values and bytes pass through unchanged. Order matters.

    Args:
        *inputs: Values to hash

    Returns:
        32-byte digest
    """
    digest = hashlib.sha256()
    for value in inputs:
        digest.update(_encode_hash_input(value))
    return digest.digest()


def hash_string(text: str) -> str:
    """Hex SHA-256 of a UTF-8 string"""
    return hash_data(text).hex()


def stable_stringify(value: Any) -> str:
    """
    Serialize a JSON-compatible value with object keys sorted at every level.

    Two structurally equal objects with different key insertion order
    produce the same string. Arrays keep their element order.

    Args:
        value: Any JSON-serializable value

    Returns:
        Deterministic compact JSON string
    """
    if isinstance(value, dict):
        pairs = [
            _dump_scalar(str(key)) + ":" + stable_stringify(value[key])
            for key in sorted(value, key=str)
        ]
        return "{" + ",".join(pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(stable_stringify(item) for item in value) + "]"
    return _dump_scalar(value)


def _dump_scalar(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def hash_object(value: Any) -> str:
    """Hex SHA-256 of stable_stringify(value)"""
    return hash_string(stable_stringify(value))


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """
    Constant-time comparison to prevent timing attacks.

    Args:
        a: First byte string
        b: Second byte string

    Returns:
        True if equal, False otherwise
    """
    return hmac.compare_digest(a, b)


def create_commitment(public_key: bytes) -> bytes:
    """
    Commit to a recipient public key with a fresh random nonce.

    Placeholder: a production deployment should replace this with a blinded
    commitment (VOPRF). Changing it requires a new protocol version.
    """
    nonce = random_bytes(KEY_SIZE)
    return hash_data(public_key, nonce)


# =====================================================================
#  KEY VALIDATION
# =====================================================================

def is_valid_public_key_hex(text: Any) -> bool:
    """True if text is exactly 64 hex characters"""
    if not isinstance(text, str) or len(text) != 2 * KEY_SIZE:
        return False
    try:
        bytes.fromhex(text)
    except ValueError:
        return False
    return True


def parse_public_key(text: str) -> bytes:
    """
    Parse a hex-encoded 32-byte public key.

    Raises:
        ValueError: If the input is not 64 hex characters
    """
    if not is_valid_public_key_hex(text):
        got = len(text) if isinstance(text, str) else type(text).__name__
        raise ValueError(f"Invalid public key: expected 64 hex characters, got {got}")
    return bytes.fromhex(text)


def _require_length(name: str, value: bytes, length: int = KEY_SIZE) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise ValueError(f"{name} must be bytes, got {type(value).__name__}")
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(value)}")
    return bytes(value)


# =====================================================================
#  KEY DERIVATION
# =====================================================================

def derive_key(ikm: bytes, salt: bytes, info: Union[bytes, str], length: int = KEY_SIZE) -> bytes:
    """
    Derive a key using HKDF-SHA256 (extract then expand).

    Args:
        ikm: Input key material
        salt: Purpose-specific domain separation constant
        info: Context-specific info; strings are UTF-8 encoded
        length: Output length in bytes

    Returns:
        Derived key of the requested length
    """
    if isinstance(info, str):
        info = info.encode("utf-8")
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info
    )
    return hkdf.derive(ikm)


# =====================================================================
#  SIGNATURES
# =====================================================================

def generate_identity_seed() -> bytes:
    """Random 32-byte Ed25519 seed"""
    return random_bytes(KEY_SIZE)


def get_public_key(seed: bytes) -> bytes:
    """Ed25519 public key for a 32-byte seed"""
    private_key = Ed25519PrivateKey.from_private_bytes(_require_length("seed", seed))
    return private_key.public_key().public_bytes_raw()


def sign(message: Union[bytes, str], seed: bytes) -> bytes:
    """
    Sign a message with Ed25519.

    Args:
        message: Message bytes (strings are UTF-8 encoded)
        seed: 32-byte Ed25519 seed

    Returns:
        64-byte signature
    """
    if isinstance(message, str):
        message = message.encode("utf-8")
    private_key = Ed25519PrivateKey.from_private_bytes(_require_length("seed", seed))
    return private_key.sign(message)


def verify(message: Union[bytes, str], signature: bytes, public_key: bytes) -> bool:
    """
    Verify an Ed25519 signature.

    Never raises: a malformed key or signature is simply not valid.

    Args:
        message: The signed message
        signature: 64-byte signature
        public_key: 32-byte Ed25519 public key

    Returns:
        True if the signature is valid
    """
    if isinstance(message, str):
        message = message.encode("utf-8")
    if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_SIZE:
        return False
    if not isinstance(public_key, (bytes, bytearray)) or len(public_key) != KEY_SIZE:
        return False
    try:
        Ed25519PublicKey.from_public_bytes(bytes(public_key)).verify(bytes(signature), message)
        return True
    except (InvalidSignature, ValueError):
        return False


# =====================================================================
#  KEY AGREEMENT & CURVE CONVERSION
# =====================================================================

def get_x25519_public_key(secret: bytes) -> bytes:
    """X25519 public key for a 32-byte secret (clamped by the curve)"""
    private_key = X25519PrivateKey.from_private_bytes(_require_length("secret", secret))
    return private_key.public_key().public_bytes_raw()


def x25519_shared_secret(secret: bytes, public_key: bytes) -> bytes:
    """
    Perform Diffie-Hellman key exchange.

    Args:
        secret: Our 32-byte X25519 secret
        public_key: Their 32-byte X25519 public key

    Returns:
        32-byte shared secret

    Raises:
        ValueError: If the exchange yields the all-zero point
    """
    private_key = X25519PrivateKey.from_private_bytes(_require_length("secret", secret))
    peer = X25519PublicKey.from_public_bytes(_require_length("public key", public_key))
    return private_key.exchange(peer)


def ed25519_to_x25519(ed_public_key: bytes) -> bytes:
    """
    Convert an Ed25519 public key to its X25519 (Montgomery) form.

    The result matches the X25519 public key of ed25519_priv_to_x25519(seed);
    both sides of an exchange must be converted with this pair.

    Raises:
        ValueError: If the input is not a valid Ed25519 point
    """
    ed_public_key = _require_length("Ed25519 public key", ed_public_key)
    try:
        return nacl.bindings.crypto_sign_ed25519_pk_to_curve25519(ed_public_key)
    except nacl.exceptions.CryptoError:
        raise ValueError("Ed25519 public key is not a valid curve point")


def ed25519_priv_to_x25519(seed: bytes) -> bytes:
    """
    Convert an Ed25519 seed to the matching X25519 scalar.

    Ed25519 derives its scalar as SHA-512(seed)[0:32], clamped; the raw seed
    is not the scalar and would produce non-matching shared secrets.
    """
    seed = _require_length("seed", seed)
    secret_key = bytes(seed) + get_public_key(seed)
    return nacl.bindings.crypto_sign_ed25519_sk_to_curve25519(secret_key)


@dataclass(frozen=True)
class IdentityKeyPair:
    """
    Long-term identity.

    Attributes:
        seed: 32-byte Ed25519 signing seed
        public_key: 32-byte Ed25519 public key
    """
    seed: bytes
    public_key: bytes

    @classmethod
    def generate(cls) -> 'IdentityKeyPair':
        seed = generate_identity_seed()
        return cls(seed=seed, public_key=get_public_key(seed))

    @classmethod
    def from_seed(cls, seed: bytes) -> 'IdentityKeyPair':
        return cls(seed=seed, public_key=get_public_key(seed))

    @property
    def public_hex(self) -> str:
        return self.public_key.hex()

    @property
    def x25519_private(self) -> bytes:
        return ed25519_priv_to_x25519(self.seed)

    @property
    def x25519_public(self) -> bytes:
        return ed25519_to_x25519(self.public_key)

    def sign(self, message: Union[bytes, str]) -> bytes:
        return sign(message, self.seed)


def generate_identity_keypair() -> Tuple[bytes, bytes]:
    """
    Generate an Ed25519 identity.

    Returns:
        Tuple of (seed, public_key)
    """
    identity = IdentityKeyPair.generate()
    return identity.seed, identity.public_key
