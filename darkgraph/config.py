"""
Configuration for the Dark Social Graph cryptography layer.

Protocol constants live here as module-level values. They are part of the
interoperability contract between peers and are never read from the
environment: a change in semantics needs a new version literal.

Local tooling defaults (data directory, rotation period, proof-of-work
difficulty, log level) can be overridden through environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# HKDF salts, one per purpose
EPHEMERAL_KEY_SALT = b"CLOUT_EPHEMERAL_KEY_V1"
ENCRYPTION_KEY_SALT = b"CLOUT_ENCRYPTION_KEY_V1"

# Signed-message domain separators
EPHEMERAL_KEY_PROOF_DOMAIN = b"CLOUT_EPHEMERAL_KEY_PROOF_V1:"
TRUST_SIGNAL_DOMAIN = "CLOUT_TRUST_SIGNAL_V1"

DEFAULT_ROTATION_PERIOD_MS = 24 * 60 * 60 * 1000  # 24 hours
DEFAULT_POW_DIFFICULTY = 16  # ~65k attempts
MAX_POW_ATTEMPTS = 10_000_000

DEFAULT_DATA_DIR = Path.home() / ".darkgraph"


def _int_from_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}")


@dataclass
class Settings:
    """
    Local settings for the client tooling.

    Attributes:
        data_dir: Directory holding the identity keystore
        rotation_period_ms: Ephemeral key rotation period
        pow_difficulty: Default proof-of-work difficulty in bits
        log_level: Logging level name for the CLI
    """
    data_dir: Path = DEFAULT_DATA_DIR
    rotation_period_ms: int = DEFAULT_ROTATION_PERIOD_MS
    pow_difficulty: int = DEFAULT_POW_DIFFICULTY
    log_level: str = "WARNING"

    def __post_init__(self):
        if self.rotation_period_ms <= 0:
            raise ValueError("rotation_period_ms must be positive")
        if self.pow_difficulty < 0:
            raise ValueError("pow_difficulty must not be negative")

    @classmethod
    def from_env(cls, data_dir: Optional[str] = None) -> 'Settings':
        """
        Build settings from DARKGRAPH_* environment variables.

        Args:
            data_dir: Explicit data directory, takes precedence over the environment

        Returns:
            Settings instance
        """
        env_dir = data_dir or os.environ.get("DARKGRAPH_DATA_DIR")
        return cls(
            data_dir=Path(env_dir).expanduser() if env_dir else DEFAULT_DATA_DIR,
            rotation_period_ms=_int_from_env("DARKGRAPH_ROTATION_PERIOD_MS", DEFAULT_ROTATION_PERIOD_MS),
            pow_difficulty=_int_from_env("DARKGRAPH_POW_DIFFICULTY", DEFAULT_POW_DIFFICULTY),
            log_level=os.environ.get("DARKGRAPH_LOG_LEVEL", "WARNING").upper(),
        )
