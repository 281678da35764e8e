"""
Identity and privacy cryptography for a peer-to-peer social network.

Implements the Dark Social Graph primitives:
- Public-key authenticated encryption (X25519 + HKDF + XChaCha20-Poly1305)
- Deterministic ephemeral key rotation with ownership proofs
- Encrypted trust signals readable only by their trustee
- Proof-of-work admission puzzles
"""

from .primitives import (
    IdentityKeyPair,
    generate_identity_keypair,
    hash_data,
    hash_object,
    stable_stringify,
    derive_key,
    sign,
    verify,
    ed25519_to_x25519,
    ed25519_priv_to_x25519,
    parse_public_key,
    CryptoError,
    DecryptionError,
    ProofOfWorkError
)
from .encryption import EncryptedPayload, encrypt, decrypt, try_decrypt
from .ephemeral import (
    EphemeralKeyPair,
    derive_ephemeral_key,
    create_ephemeral_key_proof,
    verify_ephemeral_key_proof
)
from .trust_signal import (
    TrustSignal,
    TrusteeReveal,
    create_encrypted_trust_signal,
    decrypt_trust_signal,
    verify_encrypted_trust_signature,
    verify_trust_signal
)

__all__ = [
    'IdentityKeyPair',
    'generate_identity_keypair',
    'hash_data',
    'hash_object',
    'stable_stringify',
    'derive_key',
    'sign',
    'verify',
    'ed25519_to_x25519',
    'ed25519_priv_to_x25519',
    'parse_public_key',
    'CryptoError',
    'DecryptionError',
    'ProofOfWorkError',
    'EncryptedPayload',
    'encrypt',
    'decrypt',
    'try_decrypt',
    'EphemeralKeyPair',
    'derive_ephemeral_key',
    'create_ephemeral_key_proof',
    'verify_ephemeral_key_proof',
    'TrustSignal',
    'TrusteeReveal',
    'create_encrypted_trust_signal',
    'decrypt_trust_signal',
    'verify_encrypted_trust_signature',
    'verify_trust_signal'
]
