#!/usr/bin/env python3
"""
Command-line tool for Dark Social Graph identities and artifacts.

Provides a command-line interface for:
- Local identity management in a password-protected keystore
- Creating, decrypting and verifying encrypted trust signals
- Deriving ephemeral keys and their ownership proofs
- Solving and verifying proof-of-work challenges
"""

import argparse
import asyncio
import getpass
import json
import logging
import os
import sys
from typing import Optional

from darkgraph import pow as proof_of_work
from darkgraph.config import Settings
from darkgraph.ephemeral import (
    create_ephemeral_key_proof,
    derive_ephemeral_key,
    now_ms,
    verify_ephemeral_key_proof,
)
from darkgraph.models import TrustSignalSubmission
from darkgraph.primitives import CryptoError, hash_object, parse_public_key
from darkgraph.trust_signal import (
    create_encrypted_trust_signal,
    decrypt_trust_signal,
    verify_trust_signal,
)
from darkgraph_client.keystore import IdentityKeystore


logger = logging.getLogger(__name__)


def _password(confirm: bool = False) -> str:
    password = os.environ.get("DARKGRAPH_PASSWORD")
    if password is not None:
        return password
    password = getpass.getpass("Keystore password: ")
    if confirm and getpass.getpass("Repeat password: ") != password:
        raise ValueError("Passwords do not match")
    return password


def _open_keystore(args: argparse.Namespace) -> IdentityKeystore:
    keystore = IdentityKeystore(args.settings.data_dir)
    keystore.unlock(_password(confirm=not keystore.db_path.exists()))
    return keystore


def _read_json(path: str):
    if path == "-":
        return json.load(sys.stdin)
    with open(path) as f:
        return json.load(f)


# =====================================================================
#  IDENTITY
# =====================================================================

def cmd_identity_create(args: argparse.Namespace) -> int:
    with _open_keystore(args) as keystore:
        stored = keystore.create_identity(args.name, set_default=not args.no_default)
    print(f"Created identity '{stored.name}'")
    print(f"  Public key: {stored.public_key}")
    return 0


def cmd_identity_import(args: argparse.Namespace) -> int:
    with _open_keystore(args) as keystore:
        stored = keystore.import_identity(args.name, args.seed, set_default=args.default)
    print(f"Imported identity '{stored.name}'")
    print(f"  Public key: {stored.public_key}")
    return 0


def cmd_identity_list(args: argparse.Namespace) -> int:
    with _open_keystore(args) as keystore:
        identities = keystore.list_identities()
    if not identities:
        print("No identities. Create one with: darkgraph identity create <name>")
        return 0
    for stored in identities:
        marker = "*" if stored.is_default else " "
        print(f"{marker} {stored.name:<20} {stored.public_key}")
    return 0


def cmd_identity_show(args: argparse.Namespace) -> int:
    with _open_keystore(args) as keystore:
        identity = keystore.get_identity(args.name)
    print(f"Ed25519 public key: {identity.public_hex}")
    print(f"X25519 public key:  {identity.x25519_public.hex()}")
    return 0


def cmd_identity_export(args: argparse.Namespace) -> int:
    with _open_keystore(args) as keystore:
        print(keystore.export_secret(args.name))
    return 0


def cmd_identity_delete(args: argparse.Namespace) -> int:
    with _open_keystore(args) as keystore:
        keystore.delete_identity(args.name)
    print(f"Deleted identity '{args.name}'")
    return 0


def cmd_identity_default(args: argparse.Namespace) -> int:
    with _open_keystore(args) as keystore:
        keystore.set_default(args.name)
    print(f"Default identity is now '{args.name}'")
    return 0


# =====================================================================
#  TRUST SIGNALS
# =====================================================================

def cmd_trust_create(args: argparse.Namespace) -> int:
    trustee = parse_public_key(args.trustee)
    with _open_keystore(args) as keystore:
        identity = keystore.get_identity(args.identity)

    timestamp = args.timestamp if args.timestamp is not None else now_ms()
    signal = create_encrypted_trust_signal(identity.seed, identity.public_key, trustee, args.weight, timestamp)
    print(json.dumps(signal.to_dict(), indent=2))
    return 0


def cmd_trust_decrypt(args: argparse.Namespace) -> int:
    signal = TrustSignalSubmission.model_validate(_read_json(args.file)).to_signal()
    with _open_keystore(args) as keystore:
        identity = keystore.get_identity(args.identity)

    reveal = decrypt_trust_signal(signal, signal.truster, identity.seed, identity.public_key)
    if reveal is None:
        print("Signal is not addressed to this identity or is not authentic")
        return 1
    print(f"Truster {signal.truster.hex()} trusts you")
    print(f"  Weight: {signal.weight}")
    print(f"  Nonce:  {reveal.nonce}")
    return 0


def cmd_trust_verify(args: argparse.Namespace) -> int:
    signal = TrustSignalSubmission.model_validate(_read_json(args.file)).to_signal()
    if verify_trust_signal(signal):
        print(f"Valid signature from {signal.truster.hex()}")
        return 0
    print("Invalid signature")
    return 1


# =====================================================================
#  EPHEMERAL KEYS
# =====================================================================

def cmd_ephemeral_derive(args: argparse.Namespace) -> int:
    with _open_keystore(args) as keystore:
        identity = keystore.get_identity(args.identity)

    period = args.period or args.settings.rotation_period_ms
    ephemeral = derive_ephemeral_key(identity.seed, period, args.timestamp)
    proof = create_ephemeral_key_proof(ephemeral.public, identity.seed)

    output = ephemeral.to_dict()
    output['masterPublic'] = identity.public_hex
    output['proof'] = proof.hex()
    print(json.dumps(output, indent=2))
    return 0


def cmd_ephemeral_verify(args: argparse.Namespace) -> int:
    ephemeral = parse_public_key(args.ephemeral)
    master = parse_public_key(args.master)
    if verify_ephemeral_key_proof(ephemeral, bytes.fromhex(args.proof), master):
        print("Valid ephemeral key proof")
        return 0
    print("Invalid ephemeral key proof")
    return 1


# =====================================================================
#  PROOF OF WORK / HASHING
# =====================================================================

def cmd_pow_solve(args: argparse.Namespace) -> int:
    difficulty = args.difficulty if args.difficulty is not None else args.settings.pow_difficulty
    try:
        nonce = asyncio.run(proof_of_work.solve_async(args.challenge, difficulty, args.timeout))
    except asyncio.TimeoutError:
        print(f"No solution within {args.timeout} seconds", file=sys.stderr)
        return 1
    print(json.dumps({'challenge': args.challenge, 'difficulty': difficulty, 'nonce': nonce}))
    return 0


def cmd_pow_verify(args: argparse.Namespace) -> int:
    difficulty = args.difficulty if args.difficulty is not None else args.settings.pow_difficulty
    if proof_of_work.verify(args.challenge, args.nonce, difficulty):
        print("Valid proof of work")
        return 0
    print("Invalid proof of work")
    return 1


def cmd_hash(args: argparse.Namespace) -> int:
    print(hash_object(_read_json(args.file)))
    return 0


def app() -> argparse.ArgumentParser:
    """Build the argument parser"""
    parser = argparse.ArgumentParser(
        prog="darkgraph",
        description="Dark Social Graph identity and trust-signal tool",
    )
    parser.add_argument('--data-dir', help='Keystore directory (default: $DARKGRAPH_DATA_DIR or ~/.darkgraph)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # identity
    identity = subparsers.add_parser('identity', help='Manage local identities')
    identity_sub = identity.add_subparsers(dest='action', required=True)

    p = identity_sub.add_parser('create', help='Create a new identity')
    p.add_argument('name')
    p.add_argument('--no-default', action='store_true', help='Do not make it the default identity')
    p.set_defaults(func=cmd_identity_create)

    p = identity_sub.add_parser('import', help='Import an identity from a hex seed')
    p.add_argument('name')
    p.add_argument('seed', help='32-byte seed as hex')
    p.add_argument('--default', action='store_true', help='Make it the default identity')
    p.set_defaults(func=cmd_identity_import)

    p = identity_sub.add_parser('list', help='List identities')
    p.set_defaults(func=cmd_identity_list)

    p = identity_sub.add_parser('show', help='Show public keys of an identity')
    p.add_argument('name', nargs='?')
    p.set_defaults(func=cmd_identity_show)

    p = identity_sub.add_parser('export', help='Print the secret seed (backup)')
    p.add_argument('name', nargs='?')
    p.set_defaults(func=cmd_identity_export)

    p = identity_sub.add_parser('delete', help='Delete an identity')
    p.add_argument('name')
    p.set_defaults(func=cmd_identity_delete)

    p = identity_sub.add_parser('default', help='Set the default identity')
    p.add_argument('name')
    p.set_defaults(func=cmd_identity_default)

    # trust
    trust = subparsers.add_parser('trust', help='Encrypted trust signals')
    trust_sub = trust.add_subparsers(dest='action', required=True)

    p = trust_sub.add_parser('create', help='Create a trust signal for a trustee')
    p.add_argument('trustee', help='Trustee Ed25519 public key (hex)')
    p.add_argument('--weight', '-w', type=float, default=1.0, help='Trust weight in (0, 1]')
    p.add_argument('--timestamp', type=int, help='Timestamp in ms (default: now)')
    p.add_argument('--identity', '-i', help='Truster identity name')
    p.set_defaults(func=cmd_trust_create)

    p = trust_sub.add_parser('decrypt', help='Open a trust signal addressed to you')
    p.add_argument('file', help="Signal JSON file, or '-' for stdin")
    p.add_argument('--identity', '-i', help='Recipient identity name')
    p.set_defaults(func=cmd_trust_decrypt)

    p = trust_sub.add_parser('verify', help='Check a trust signal signature as a third party')
    p.add_argument('file', help="Signal JSON file, or '-' for stdin")
    p.set_defaults(func=cmd_trust_verify)

    # ephemeral
    ephemeral = subparsers.add_parser('ephemeral', help='Rotating ephemeral keys')
    ephemeral_sub = ephemeral.add_subparsers(dest='action', required=True)

    p = ephemeral_sub.add_parser('derive', help='Derive the ephemeral key and proof for a time window')
    p.add_argument('--identity', '-i', help='Identity name')
    p.add_argument('--period', type=int, help='Rotation period in ms')
    p.add_argument('--timestamp', type=int, help='Timestamp in ms (default: now)')
    p.set_defaults(func=cmd_ephemeral_derive)

    p = ephemeral_sub.add_parser('verify', help='Verify an ephemeral key proof')
    p.add_argument('ephemeral', help='Ephemeral public key (hex)')
    p.add_argument('proof', help='Proof signature (hex)')
    p.add_argument('master', help='Master Ed25519 public key (hex)')
    p.set_defaults(func=cmd_ephemeral_verify)

    # pow
    pow_parser = subparsers.add_parser('pow', help='Proof-of-work challenges')
    pow_sub = pow_parser.add_subparsers(dest='action', required=True)

    p = pow_sub.add_parser('solve', help='Solve a challenge')
    p.add_argument('challenge')
    p.add_argument('--difficulty', '-d', type=int, help='Leading zero bits')
    p.add_argument('--timeout', type=float, help='Give up after this many seconds')
    p.set_defaults(func=cmd_pow_solve)

    p = pow_sub.add_parser('verify', help='Verify a solution')
    p.add_argument('challenge')
    p.add_argument('nonce', type=int)
    p.add_argument('--difficulty', '-d', type=int, help='Leading zero bits')
    p.set_defaults(func=cmd_pow_verify)

    # hash
    p = subparsers.add_parser('hash', help='Canonical hash of a JSON document')
    p.add_argument('file', help="JSON file, or '-' for stdin")
    p.set_defaults(func=cmd_hash)

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point"""
    parser = app()
    args = parser.parse_args(argv)

    try:
        args.settings = Settings.from_env(args.data_dir)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    level = logging.DEBUG if args.verbose else getattr(logging, args.settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        return args.func(args)
    except (CryptoError, ValueError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
