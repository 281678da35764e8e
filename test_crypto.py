#!/usr/bin/env python3
"""
Tests for cryptographic primitives: hashing, canonical JSON, HKDF,
Ed25519 signatures and Edwards-to-Montgomery conversion.
"""

import hashlib
import sys

import pytest

from darkgraph.primitives import (
    IdentityKeyPair,
    create_commitment,
    derive_key,
    ed25519_priv_to_x25519,
    ed25519_to_x25519,
    generate_identity_keypair,
    get_public_key,
    get_x25519_public_key,
    hash_data,
    hash_object,
    hash_string,
    is_valid_public_key_hex,
    parse_public_key,
    sign,
    stable_stringify,
    verify,
    x25519_shared_secret,
)
from darkgraph.config import ENCRYPTION_KEY_SALT, EPHEMERAL_KEY_SALT


def test_hash_encodes_mixed_inputs():
    """Test that strings, integers and bytes are encoded as documented"""
    expected = hashlib.sha256(b"abc" + (1700000000000).to_bytes(8, "big") + b"\x00\xff").digest()
    assert hash_data("abc", 1700000000000, b"\x00\xff") == expected, "Mixed input hash mismatch"
    assert len(hash_data(b"")) == 32, "Wrong digest length"


def test_hash_order_is_significant():
    """Test that concatenation order changes the digest"""
    assert hash_data("a", "b") != hash_data("b", "a"), "Order should matter"
    assert hash_data("ab") == hash_data("a", "b"), "Inputs are concatenated"


def test_hash_rejects_unsupported_types():
    with pytest.raises(TypeError):
        hash_data(1.5)


def test_hash_string_is_hex():
    assert hash_string("") == hashlib.sha256(b"").hexdigest()


def test_stable_stringify_sorts_nested_keys():
    """Test canonical JSON at every nesting level"""
    value = {"b": 1, "a": {"d": [3, {"z": 1, "y": 2}], "c": None}}
    assert stable_stringify(value) == '{"a":{"c":null,"d":[3,{"y":2,"z":1}]},"b":1}'


def test_stable_stringify_scalars():
    assert stable_stringify(None) == "null"
    assert stable_stringify("héllo") == '"héllo"'
    assert stable_stringify([2, 1]) == "[2,1]", "Arrays keep their order"


def test_hash_object_order_independent():
    """Test that key insertion order does not change the hash"""
    assert hash_object({"a": 1, "b": 2}) == hash_object({"b": 2, "a": 1})
    assert hash_object({"a": 1, "b": 2}) != hash_object({"a": 2, "b": 1})


def test_derive_key_rfc5869_vector():
    """Test HKDF-SHA256 against RFC 5869 test case 1"""
    ikm = bytes.fromhex("0b" * 22)
    salt = bytes.fromhex("000102030405060708090a0b0c")
    info = bytes.fromhex("f0f1f2f3f4f5f6f7f8f9")
    okm = derive_key(ikm, salt, info, 42)
    assert okm.hex() == (
        "3cb25f25faacd57a90434f64d0362f2a2d2d0a90cf1a5a4c5db02d56ecc4c5bf34007208d5b887185865"
    ), "HKDF output mismatch"


def test_derive_key_domain_separation():
    """Test that the purpose-specific salts yield unrelated keys"""
    ikm = b"same input key material"
    ephemeral = derive_key(ikm, EPHEMERAL_KEY_SALT, b"info")
    encryption = derive_key(ikm, ENCRYPTION_KEY_SALT, b"info")
    assert ephemeral != encryption, "Keys for different purposes must differ"
    assert derive_key(ikm, EPHEMERAL_KEY_SALT, "info") == ephemeral, "String info is UTF-8 encoded"
    assert len(derive_key(ikm, EPHEMERAL_KEY_SALT, b"info", 64)) == 64


def test_ed25519_rfc8032_public_key():
    """Test public key derivation against RFC 8032 test 1"""
    seed = bytes.fromhex("9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60")
    assert get_public_key(seed).hex() == "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"


def test_sign_and_verify():
    """Test Ed25519 signatures"""
    seed, public = generate_identity_keypair()
    signature = sign(b"message", seed)

    assert len(signature) == 64, "Wrong signature length"
    assert verify(b"message", signature, public), "Valid signature rejected"
    assert verify("message", signature, public), "String messages are UTF-8 encoded"
    assert not verify(b"messagf", signature, public), "Tampered message accepted"

    _, other_public = generate_identity_keypair()
    assert not verify(b"message", signature, other_public), "Wrong key accepted"


def test_verify_never_raises_on_malformed_input():
    seed, public = generate_identity_keypair()
    signature = sign(b"message", seed)

    assert not verify(b"message", signature[:63], public)
    assert not verify(b"message", signature, public[:31])
    assert not verify(b"message", b"\x00" * 64, public)
    assert not verify(b"message", signature, b"\xff" * 32)
    assert not verify(b"message", "not bytes", public)


def test_sign_rejects_wrong_seed_length():
    with pytest.raises(ValueError):
        sign(b"message", b"short")


def test_curve_conversion_matches():
    """Test that converted private and public keys belong together"""
    identity = IdentityKeyPair.generate()
    x_private = ed25519_priv_to_x25519(identity.seed)

    assert x_private != identity.seed, "X25519 scalar must not be the raw seed"
    assert get_x25519_public_key(x_private) == ed25519_to_x25519(identity.public_key), \
        "Converted key pair does not match"
    assert identity.x25519_public == ed25519_to_x25519(identity.public_key)


def test_converted_scalar_is_clamped_hash():
    seed = bytes(range(32))
    digest = bytearray(hashlib.sha512(seed).digest()[:32])
    digest[0] &= 248
    digest[31] &= 127
    digest[31] |= 64
    assert ed25519_priv_to_x25519(seed) == bytes(digest)


def test_ed25519_priv_to_x25519_rejects_wrong_length():
    with pytest.raises(ValueError):
        ed25519_priv_to_x25519(b"\x01" * 31)


def test_ecdh_symmetry_across_identities():
    """Test that two converted identities agree on a shared secret"""
    for _ in range(5):
        alice = IdentityKeyPair.generate()
        bob = IdentityKeyPair.generate()

        alice_shared = x25519_shared_secret(alice.x25519_private, bob.x25519_public)
        bob_shared = x25519_shared_secret(bob.x25519_private, alice.x25519_public)

        assert alice_shared == bob_shared, "ECDH shared secrets don't match"
        assert len(alice_shared) == 32, "Wrong shared secret length"


def test_raw_seed_breaks_key_agreement():
    """Using the raw seed instead of the converted scalar silently disagrees"""
    alice = IdentityKeyPair.generate()
    bob = IdentityKeyPair.generate()

    wrong = x25519_shared_secret(alice.seed, bob.x25519_public)
    right = x25519_shared_secret(bob.x25519_private, alice.x25519_public)
    assert wrong != right


def test_ed25519_to_x25519_rejects_wrong_length():
    with pytest.raises(ValueError):
        ed25519_to_x25519(b"\x01" * 31)


def test_parse_public_key():
    """Test hex public key validation at the boundary"""
    key = "ab" * 32
    assert is_valid_public_key_hex(key)
    assert parse_public_key(key) == bytes.fromhex(key)
    assert parse_public_key(key.upper()) == bytes.fromhex(key)

    for bad in ["ab" * 31, "zz" * 32, "", None, b"\x00" * 32]:
        assert not is_valid_public_key_hex(bad)
        with pytest.raises(ValueError):
            parse_public_key(bad)


def test_create_commitment_uses_fresh_nonce():
    public = generate_identity_keypair()[1]
    first = create_commitment(public)
    second = create_commitment(public)
    assert len(first) == 32
    assert first != second, "Commitments should not be linkable"


def run_all_tests():
    """Run all tests without pytest"""
    print("\n" + "=" * 50)
    print("Running Cryptographic Tests")
    print("=" * 50 + "\n")

    tests = [value for name, value in sorted(globals().items()) if name.startswith("test_")]
    try:
        for test in tests:
            test()
            print(f"✓ {test.__name__}")
    except AssertionError as e:
        print(f"\n✗ Test failed: {e}")
        return 1

    print("\n" + "=" * 50)
    print("✓ All tests passed!")
    print("=" * 50 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(run_all_tests())
