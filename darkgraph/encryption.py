"""
Public-Key Authenticated Encryption

Encrypts a message to a recipient's X25519 public key using a fresh
ephemeral key pair per message:

    shared = X25519(ephemeral_secret, recipient_public)
    key    = HKDF(shared, ENCRYPTION_KEY_SALT, ephemeral_public || recipient_public)
    box    = nonce (24 bytes) || XChaCha20-Poly1305(key, nonce, message)

The ephemeral secret is discarded after encryption, so compromising one
payload never exposes another.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import nacl.bindings
import nacl.exceptions

from .config import ENCRYPTION_KEY_SALT
from .primitives import (
    KEY_SIZE,
    DecryptionError,
    derive_key,
    from_hex,
    get_x25519_public_key,
    random_bytes,
    x25519_shared_secret,
)


logger = logging.getLogger(__name__)

NONCE_SIZE = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_NPUBBYTES
TAG_SIZE = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_ABYTES


@dataclass(frozen=True)
class EncryptedPayload:
    """
    Ciphertext addressed to a single recipient.

    Attributes:
        ephemeral_public_key: Sender's one-time X25519 public key (32 bytes)
        ciphertext: nonce + encrypted message + tag
    """
    ephemeral_public_key: bytes
    ciphertext: bytes

    def to_dict(self) -> Dict[str, str]:
        """Convert to the hex wire shape"""
        return {
            'ephemeralPublicKey': self.ephemeral_public_key.hex(),
            'ciphertext': self.ciphertext.hex()
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'EncryptedPayload':
        """Create from the hex wire shape. Raises ValueError on malformed input."""
        ephemeral = from_hex(data['ephemeralPublicKey'])
        if len(ephemeral) != KEY_SIZE:
            raise ValueError(f"ephemeralPublicKey must be {KEY_SIZE} bytes, got {len(ephemeral)}")
        return cls(
            ephemeral_public_key=ephemeral,
            ciphertext=from_hex(data['ciphertext'])
        )


def _message_key(shared_secret: bytes, ephemeral_public: bytes, recipient_public: bytes) -> bytes:
    # Both public keys go into info so the key is bound to this exact pairing
    return derive_key(shared_secret, ENCRYPTION_KEY_SALT, ephemeral_public + recipient_public, KEY_SIZE)


def encrypt(message: str, recipient_public_key: bytes) -> EncryptedPayload:
    """
    Encrypt a message for a recipient.

    Args:
        message: Plaintext string (UTF-8 encoded before encryption)
        recipient_public_key: Recipient's 32-byte X25519 public key

    Returns:
        EncryptedPayload with the ephemeral public key and ciphertext

    Raises:
        ValueError: If the recipient key is malformed or a low-order point
    """
    ephemeral_secret = random_bytes(KEY_SIZE)
    ephemeral_public = get_x25519_public_key(ephemeral_secret)

    shared_secret = x25519_shared_secret(ephemeral_secret, recipient_public_key)
    key = _message_key(shared_secret, ephemeral_public, bytes(recipient_public_key))

    nonce = random_bytes(NONCE_SIZE)
    sealed = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_encrypt(
        message.encode("utf-8"), None, nonce, key
    )
    return EncryptedPayload(ephemeral_public_key=ephemeral_public, ciphertext=nonce + sealed)


def decrypt(
    ephemeral_public_key: bytes,
    ciphertext: bytes,
    recipient_secret: bytes,
    recipient_public_key: Optional[bytes] = None
) -> str:
    """
    Decrypt a message using our X25519 secret.

    Args:
        ephemeral_public_key: Sender's ephemeral public key
        ciphertext: nonce + encrypted message + tag
        recipient_secret: Our 32-byte X25519 secret
        recipient_public_key: Our X25519 public key, derived from the secret if omitted

    Returns:
        Decrypted plaintext

    Raises:
        ValueError: If a key has the wrong length
        DecryptionError: If the payload cannot be authenticated with our key
    """
    if len(ephemeral_public_key) != KEY_SIZE:
        raise ValueError(f"ephemeral public key must be {KEY_SIZE} bytes, got {len(ephemeral_public_key)}")
    if recipient_public_key is None:
        recipient_public_key = get_x25519_public_key(recipient_secret)

    if len(ciphertext) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionError("Ciphertext too short")

    try:
        shared_secret = x25519_shared_secret(recipient_secret, ephemeral_public_key)
    except ValueError:
        # all-zero shared secret from a low-order ephemeral point
        raise DecryptionError("Decryption failed") from None

    key = _message_key(shared_secret, bytes(ephemeral_public_key), bytes(recipient_public_key))
    nonce, sealed = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
    try:
        plaintext = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_decrypt(sealed, None, nonce, key)
        return plaintext.decode("utf-8")
    except (nacl.exceptions.CryptoError, UnicodeDecodeError):
        raise DecryptionError("Decryption failed") from None


def try_decrypt(
    ephemeral_public_key: bytes,
    ciphertext: bytes,
    recipient_secret: bytes,
    recipient_public_key: Optional[bytes] = None
) -> Optional[str]:
    """Like decrypt(), but returns None when the payload is not addressed to us"""
    try:
        return decrypt(ephemeral_public_key, ciphertext, recipient_secret, recipient_public_key)
    except DecryptionError:
        logger.debug("Payload could not be decrypted with this key")
        return None


def decrypt_payload(payload: EncryptedPayload, recipient_secret: bytes,
                    recipient_public_key: Optional[bytes] = None) -> str:
    """Decrypt an EncryptedPayload; see decrypt()"""
    return decrypt(payload.ephemeral_public_key, payload.ciphertext, recipient_secret, recipient_public_key)
