"""
Tests for encrypted trust signals (Dark Social Graph).
"""

import dataclasses
import json

import pytest

from darkgraph.encryption import EncryptedPayload, decrypt, encrypt
from darkgraph.primitives import IdentityKeyPair, hash_data
from darkgraph.trust_signal import (
    TrusteeReveal,
    TrustSignal,
    canonical_weight,
    compute_commitment,
    create_encrypted_trust_signal,
    decrypt_trust_signal,
    signature_input,
    verify_encrypted_trust_signature,
    verify_trust_signal,
)

TIMESTAMP = 1700000000000


@pytest.fixture
def alice():
    return IdentityKeyPair.generate()


@pytest.fixture
def bob():
    return IdentityKeyPair.generate()


@pytest.fixture
def carol():
    return IdentityKeyPair.generate()


@pytest.fixture
def signal(alice, bob):
    return create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key, 0.75, TIMESTAMP)


def test_end_to_end_scenario(alice, bob, carol, signal):
    """Alice trusts Bob: Bob can read it, everyone can verify it, Carol learns nothing"""
    reveal = decrypt_trust_signal(signal, alice.public_key, bob.seed)
    assert isinstance(reveal, TrusteeReveal)
    assert reveal.trustee == bob.public_hex, "Trustee should be Bob"
    assert len(reveal.nonce) == 64

    assert verify_encrypted_trust_signature(
        signal.trustee_commitment, alice.public_key, signal.signature, 0.75, TIMESTAMP
    ), "Third-party verification failed"
    assert not verify_encrypted_trust_signature(
        signal.trustee_commitment, alice.public_key, signal.signature, 0.76, TIMESTAMP
    ), "Changed weight accepted"

    assert decrypt_trust_signal(signal, alice.public_key, carol.seed) is None, "Carol decrypted Bob's signal"


def test_signal_fields(alice, signal):
    assert signal.truster == alice.public_key
    assert len(signal.trustee_commitment) == 32
    assert len(signal.signature) == 64
    assert signal.weight == 0.75
    assert signal.timestamp == TIMESTAMP


def test_recipient_public_key_may_be_supplied(alice, bob, signal):
    reveal = decrypt_trust_signal(signal, alice.public_key, bob.seed, bob.public_key)
    assert reveal is not None and reveal.trustee == bob.public_hex


def test_commitment_integrity(alice, bob, signal):
    """Recomputing the commitment from the decrypted fields gives the original"""
    reveal = decrypt_trust_signal(signal, alice.public_key, bob.seed)
    assert compute_commitment(reveal.trustee, reveal.nonce) == signal.trustee_commitment


def test_encrypted_payload_is_addressed_to_converted_key(bob, signal):
    plaintext = decrypt(
        signal.encrypted_trustee.ephemeral_public_key,
        signal.encrypted_trustee.ciphertext,
        bob.x25519_private
    )
    data = json.loads(plaintext)
    assert set(data) == {"trustee", "nonce"}
    assert data["trustee"] == bob.public_hex


@pytest.mark.parametrize("field,value", [
    ("trustee_commitment", b"\x00" * 32),
    ("weight", 0.5),
    ("timestamp", TIMESTAMP + 1),
])
def test_signature_binding(alice, bob, signal, field, value):
    """Changing any signed field breaks both verification paths"""
    tampered = dataclasses.replace(signal, **{field: value})

    assert decrypt_trust_signal(tampered, alice.public_key, bob.seed) is None
    assert not verify_trust_signal(tampered)


def test_wrong_truster_key_rejected(bob, carol, signal):
    assert decrypt_trust_signal(signal, carol.public_key, bob.seed) is None
    assert not verify_encrypted_trust_signature(
        signal.trustee_commitment, carol.public_key, signal.signature, 0.75, TIMESTAMP
    )


def test_tampered_ciphertext_rejected(alice, bob, signal):
    ciphertext = bytearray(signal.encrypted_trustee.ciphertext)
    ciphertext[30] ^= 0x80
    tampered = dataclasses.replace(
        signal,
        encrypted_trustee=EncryptedPayload(signal.encrypted_trustee.ephemeral_public_key, bytes(ciphertext))
    )
    assert decrypt_trust_signal(tampered, alice.public_key, bob.seed) is None
    assert verify_trust_signal(tampered), "Third parties only check the signature"


def test_swapped_payload_fails_commitment_check(alice, bob):
    """A valid payload for Bob attached to another signal's commitment is rejected"""
    first = create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key, 0.75, TIMESTAMP)
    second = create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key, 0.75, TIMESTAMP)
    mixed = dataclasses.replace(first, encrypted_trustee=second.encrypted_trustee)

    assert decrypt_trust_signal(mixed, alice.public_key, bob.seed) is None


def test_commitments_unlinkable_across_reissues(alice, bob):
    first = create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key, 1.0, TIMESTAMP)
    second = create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key, 1.0, TIMESTAMP)
    assert first.trustee_commitment != second.trustee_commitment
    assert first.encrypted_trustee.ephemeral_public_key != second.encrypted_trustee.ephemeral_public_key


def test_failures_are_indistinguishable(alice, bob, carol, signal):
    """Every failed check yields the same None"""
    results = [
        decrypt_trust_signal(signal, alice.public_key, carol.seed),
        decrypt_trust_signal(dataclasses.replace(signal, trustee_commitment=b"\x01" * 32), alice.public_key, bob.seed),
        decrypt_trust_signal(dataclasses.replace(signal, weight=0.1), alice.public_key, bob.seed),
        decrypt_trust_signal(signal, alice.public_key, b"short"),
    ]
    assert results == [None, None, None, None]


def _forged_signal(truster, trustee, plaintext, commitment):
    """Signal whose payload decrypts for the trustee and whose signature is valid"""
    return TrustSignal(
        truster=truster.public_key,
        trustee_commitment=commitment,
        encrypted_trustee=encrypt(plaintext, trustee.x25519_public),
        signature=truster.sign(signature_input(commitment, 0.75, TIMESTAMP)),
        weight=0.75,
        timestamp=TIMESTAMP
    )


@pytest.mark.parametrize("plaintext", [
    '{"trustee": -1, "nonce": 0}',
    '{"trustee": true, "nonce": true}',
    '{"trustee": 1.5, "nonce": null}',
    '{"trustee": "ab"}',
    '{}',
    '["trustee", "nonce"]',
    '"just a string"',
    '42',
    'not json at all',
    "[" * 100000 + "]" * 100000,
])
def test_malformed_trustee_data_rejected(alice, bob, plaintext):
    """Authentic-looking signals carrying a malformed payload yield None"""
    signal = _forged_signal(alice, bob, plaintext, hash_data(2))
    assert decrypt_trust_signal(signal, alice.public_key, bob.seed) is None


def test_non_string_fields_rejected_even_when_commitment_matches(alice, bob):
    """True + True hashes like 2; booleans must never come back as a reveal"""
    signal = _forged_signal(alice, bob, '{"trustee": true, "nonce": true}', hash_data(2))
    assert verify_trust_signal(signal), "Signature itself is valid"
    assert decrypt_trust_signal(signal, alice.public_key, bob.seed) is None


def test_uppercase_or_short_hex_fields_rejected(alice, bob):
    nonce = "cd" * 32
    for trustee in [bob.public_hex.upper(), bob.public_hex[:62]]:
        plaintext = json.dumps({"trustee": trustee, "nonce": nonce})
        signal = _forged_signal(alice, bob, plaintext, compute_commitment(trustee, nonce))
        assert decrypt_trust_signal(signal, alice.public_key, bob.seed) is None


def test_well_formed_forged_payload_still_accepted(alice, bob):
    """The same construction with valid fields passes, so the cases above fail on content"""
    nonce = "cd" * 32
    plaintext = json.dumps({"trustee": bob.public_hex, "nonce": nonce})
    signal = _forged_signal(alice, bob, plaintext, compute_commitment(bob.public_hex, nonce))
    assert decrypt_trust_signal(signal, alice.public_key, bob.seed) == TrusteeReveal(bob.public_hex, nonce)


@pytest.mark.parametrize("weight,expected", [
    (0.75, "0.75"),
    (1, "1.00"),
    (1.0, "1.00"),
    (0.3, "0.30"),
    (0.1 + 0.2, "0.30"),
    (0.125, "0.13"),
    (0.005, "0.01"),
    (0.999, "1.00"),
])
def test_canonical_weight(weight, expected):
    assert canonical_weight(weight) == expected


def test_canonical_weight_rejects_non_numbers():
    for bad in [float("nan"), float("inf"), "0.5", None, True]:
        with pytest.raises(ValueError):
            canonical_weight(bad)


def test_float_drift_does_not_break_verification(alice, bob):
    """A weight computed as 0.1 + 0.2 verifies against 0.3"""
    drifted = create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key, 0.1 + 0.2, TIMESTAMP)
    assert verify_encrypted_trust_signature(
        drifted.trustee_commitment, alice.public_key, drifted.signature, 0.3, TIMESTAMP
    )


def test_signature_input_format():
    commitment = bytes(range(32))
    expected = f"CLOUT_TRUST_SIGNAL_V1:{commitment.hex()}:0.75:{TIMESTAMP}".encode()
    assert signature_input(commitment, 0.75, TIMESTAMP) == expected


@pytest.mark.parametrize("weight", [0, -0.1, 1.01, 2, True, "0.5"])
def test_invalid_weight_raises(alice, bob, weight):
    with pytest.raises(ValueError):
        create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key, weight, TIMESTAMP)


def test_invalid_inputs_raise(alice, bob, carol):
    with pytest.raises(ValueError):
        create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key, 0.5, 1.5)
    with pytest.raises(ValueError):
        create_encrypted_trust_signal(alice.seed, alice.public_key, bob.public_key[:31], 0.5, TIMESTAMP)
    with pytest.raises(ValueError):
        create_encrypted_trust_signal(alice.seed, carol.public_key, bob.public_key, 0.5, TIMESTAMP)


def test_third_party_verify_never_raises(alice, signal):
    assert not verify_encrypted_trust_signature(signal.trustee_commitment, alice.public_key, b"", 0.75, TIMESTAMP)
    assert not verify_encrypted_trust_signature(signal.trustee_commitment, b"bad", signal.signature, 0.75, TIMESTAMP)
    assert not verify_encrypted_trust_signature(
        signal.trustee_commitment, alice.public_key, signal.signature, float("nan"), TIMESTAMP
    )
    assert not verify_encrypted_trust_signature(
        signal.trustee_commitment, alice.public_key, signal.signature, 0.75, str(TIMESTAMP)
    )
    assert not verify_encrypted_trust_signature(None, alice.public_key, signal.signature, 0.75, TIMESTAMP)


def test_wire_round_trip(alice, bob, signal):
    data = json.loads(json.dumps(signal.to_dict()))

    assert set(data) == {"truster", "trusteeCommitment", "encryptedTrustee", "signature", "weight", "timestamp"}
    assert len(data["truster"]) == 64
    assert len(data["trusteeCommitment"]) == 64
    assert len(data["signature"]) == 128

    restored = TrustSignal.from_dict(data)
    assert restored == signal
    assert verify_trust_signal(restored)
    assert decrypt_trust_signal(restored, restored.truster, bob.seed).trustee == bob.public_hex


def test_from_dict_rejects_malformed(signal):
    data = signal.to_dict()
    for key, value in [("signature", "ab" * 63), ("trusteeCommitment", "ab" * 31), ("truster", "xyz")]:
        broken = dict(data, **{key: value})
        with pytest.raises(ValueError):
            TrustSignal.from_dict(broken)

    missing = dict(data)
    del missing["weight"]
    with pytest.raises(ValueError):
        TrustSignal.from_dict(missing)
