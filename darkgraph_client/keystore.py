"""
Encrypted local keystore for identities.

Stores Ed25519 identity seeds encrypted on disk with a key derived from the
user's password. Public keys and names are kept in clear so identities can
be listed; every seed is sealed individually with AES-256-GCM.
"""

import os
import sqlite3
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from darkgraph.primitives import CryptoError, IdentityKeyPair, generate_identity_seed


logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100000
_CHECK_VALUE = b"darkgraph-keystore-v1"


class KeystoreError(CryptoError):
    """Keystore is locked, the password is wrong, or a name is unknown"""
    pass


@dataclass(frozen=True)
class StoredIdentity:
    """
    Identity as stored in the keystore.

    Attributes:
        name: Local name of the identity
        public_key: Ed25519 public key (hex)
        created: Creation time in milliseconds
        is_default: True for the default identity
    """
    name: str
    public_key: str
    created: int
    is_default: bool = False


class IdentityKeystore:
    """
    Manages password-protected identity storage.

    Usable as a context manager; the connection is closed on exit.
    """

    def __init__(self, data_dir: Path):
        """
        Initialize the keystore.

        Args:
            data_dir: Directory for the database and salt file
        """
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / "identities.db"
        self.salt_path = self.data_dir / "identities.salt"
        self.encryption_key: Optional[bytes] = None
        self.db: Optional[sqlite3.Connection] = None

    def __enter__(self) -> 'IdentityKeystore':
        return self

    def __exit__(self, *exc_info):
        self.close()

    def derive_key(self, password: str, salt: bytes) -> bytes:
        """
        Derive encryption key from password using PBKDF2.

        Args:
            password: User's password
            salt: Salt for key derivation

        Returns:
            32-byte encryption key
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        return kdf.derive(password.encode())

    def unlock(self, password: str) -> None:
        """
        Unlock the keystore, creating it on first use.

        Raises:
            KeystoreError: If the password does not match the existing keystore
        """
        if not self.db_path.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            salt = os.urandom(16)
            self.salt_path.write_bytes(salt)
            self.encryption_key = self.derive_key(password, salt)
            self._init_database()
            self._set_metadata("check", self._encrypt(_CHECK_VALUE))
            logger.info("Created keystore at %s", self.db_path)
            return

        if not self.salt_path.exists():
            raise KeystoreError(f"Salt file missing for keystore {self.db_path}")

        self.encryption_key = self.derive_key(password, self.salt_path.read_bytes())
        self._init_database()

        check = self._get_metadata("check")
        try:
            valid = check is not None and self._decrypt(check) == _CHECK_VALUE
        except InvalidTag:
            self.close()
            raise KeystoreError("Wrong keystore password") from None
        if not valid:
            self.close()
            raise KeystoreError("Keystore verification record is missing or corrupt")

    def _init_database(self):
        """Initialize SQLite database"""
        self.db = sqlite3.connect(str(self.db_path))
        cursor = self.db.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS identities (
                name TEXT PRIMARY KEY,
                public_key TEXT NOT NULL,
                encrypted_seed BLOB NOT NULL,
                created INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL
            )
        """)

        self.db.commit()

    def _require_unlocked(self) -> sqlite3.Connection:
        if not self.db or not self.encryption_key:
            raise KeystoreError("Keystore not unlocked")
        return self.db

    def _encrypt(self, data: bytes) -> bytes:
        """Encrypt data with storage key"""
        self._require_unlocked()
        nonce = os.urandom(12)
        aesgcm = AESGCM(self.encryption_key)
        return nonce + aesgcm.encrypt(nonce, data, None)

    def _decrypt(self, encrypted_data: bytes) -> bytes:
        """Decrypt data with storage key"""
        self._require_unlocked()
        nonce = encrypted_data[:12]
        ciphertext = encrypted_data[12:]
        aesgcm = AESGCM(self.encryption_key)
        return aesgcm.decrypt(nonce, ciphertext, None)

    def _get_metadata(self, key: str) -> Optional[bytes]:
        cursor = self._require_unlocked().cursor()
        cursor.execute("SELECT value FROM metadata WHERE key = ?", (key,))
        result = cursor.fetchone()
        return result[0] if result else None

    def _set_metadata(self, key: str, value: bytes):
        db = self._require_unlocked()
        db.execute("INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)", (key, value))
        db.commit()

    def _delete_metadata(self, key: str):
        db = self._require_unlocked()
        db.execute("DELETE FROM metadata WHERE key = ?", (key,))
        db.commit()

    def default_identity_name(self) -> Optional[str]:
        value = self._get_metadata("default")
        return value.decode() if value else None

    def _store(self, name: str, identity: IdentityKeyPair, set_default: bool) -> StoredIdentity:
        db = self._require_unlocked()
        if self._row(name) is not None:
            raise KeystoreError(f"Identity '{name}' already exists")

        created = int(time.time() * 1000)
        db.execute(
            "INSERT INTO identities (name, public_key, encrypted_seed, created) VALUES (?, ?, ?, ?)",
            (name, identity.public_hex, self._encrypt(identity.seed), created)
        )
        db.commit()

        if set_default or self.default_identity_name() is None:
            self._set_metadata("default", name.encode())

        logger.info("Stored identity %s (%s)", name, identity.public_hex)
        return StoredIdentity(name, identity.public_hex, created, self.default_identity_name() == name)

    def create_identity(self, name: str, set_default: bool = True) -> StoredIdentity:
        """
        Generate and store a new identity.

        Args:
            name: Local name for the identity
            set_default: Make it the default identity

        Returns:
            The stored identity (public part)
        """
        return self._store(name, IdentityKeyPair.from_seed(generate_identity_seed()), set_default)

    def import_identity(self, name: str, seed_hex: str, set_default: bool = False) -> StoredIdentity:
        """
        Import an identity from a hex-encoded seed.

        Raises:
            ValueError: If the seed is not 32 bytes of hex
        """
        seed = bytes.fromhex(seed_hex)
        return self._store(name, IdentityKeyPair.from_seed(seed), set_default)

    def _row(self, name: str):
        cursor = self._require_unlocked().cursor()
        cursor.execute(
            "SELECT name, public_key, encrypted_seed, created FROM identities WHERE name = ?",
            (name,)
        )
        return cursor.fetchone()

    def _resolve_name(self, name: Optional[str]) -> str:
        resolved = name or self.default_identity_name()
        if not resolved:
            raise KeystoreError("No identity specified and no default identity set")
        return resolved

    def get_identity(self, name: Optional[str] = None) -> IdentityKeyPair:
        """
        Load an identity's key pair.

        Args:
            name: Identity name, the default identity if omitted

        Raises:
            KeystoreError: If the identity does not exist or cannot be decrypted
        """
        name = self._resolve_name(name)
        row = self._row(name)
        if row is None:
            raise KeystoreError(f"Identity '{name}' not found")
        try:
            seed = self._decrypt(row[2])
        except InvalidTag:
            raise KeystoreError(f"Identity '{name}' could not be decrypted") from None
        return IdentityKeyPair.from_seed(seed)

    def list_identities(self) -> List[StoredIdentity]:
        default = self.default_identity_name()
        cursor = self._require_unlocked().cursor()
        cursor.execute("SELECT name, public_key, created FROM identities ORDER BY created, name")
        return [
            StoredIdentity(name, public_key, created, name == default)
            for name, public_key, created in cursor.fetchall()
        ]

    def delete_identity(self, name: str):
        """Delete an identity; the next remaining one becomes default if needed"""
        if self._row(name) is None:
            raise KeystoreError(f"Identity '{name}' not found")

        db = self._require_unlocked()
        db.execute("DELETE FROM identities WHERE name = ?", (name,))
        db.commit()

        if self.default_identity_name() == name:
            remaining = self.list_identities()
            if remaining:
                self._set_metadata("default", remaining[0].name.encode())
            else:
                self._delete_metadata("default")

    def set_default(self, name: str):
        if self._row(name) is None:
            raise KeystoreError(f"Identity '{name}' not found")
        self._set_metadata("default", name.encode())

    def export_secret(self, name: Optional[str] = None) -> str:
        """Hex seed of an identity (for backup)"""
        return self.get_identity(name).seed.hex()

    def close(self):
        """Close database connection"""
        if self.db:
            self.db.close()
            self.db = None
        self.encryption_key = None
