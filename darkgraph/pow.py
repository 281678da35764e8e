"""
Proof-of-Work Challenge

Asymmetric-cost admission puzzle: the solver searches nonces until

    SHA-256(challenge + str(nonce))

has at least `difficulty` leading zero bits (about 2^difficulty attempts),
while the verifier recomputes one hash.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .config import DEFAULT_POW_DIFFICULTY, MAX_POW_ATTEMPTS
from .primitives import ProofOfWorkError, hash_string


logger = logging.getLogger(__name__)

MAX_DIFFICULTY = 256


def _check_difficulty(difficulty: int) -> None:
    if isinstance(difficulty, bool) or not isinstance(difficulty, int):
        raise ValueError(f"difficulty must be an integer, got {type(difficulty).__name__}")
    if difficulty < 0 or difficulty > MAX_DIFFICULTY:
        raise ValueError(f"difficulty must be between 0 and {MAX_DIFFICULTY}, got {difficulty}")


def _meets_difficulty(digest_hex: str, difficulty: int) -> bool:
    zero_nibbles = difficulty // 4
    remaining_bits = difficulty % 4

    if not digest_hex.startswith("0" * zero_nibbles):
        return False
    if remaining_bits == 0:
        return True

    # Top `remaining_bits` of the next nibble must be clear
    next_value = int(digest_hex[zero_nibbles], 16)
    mask = (1 << (4 - remaining_bits)) - 1
    return (next_value & ~mask) == 0


def leading_zero_bits(digest_hex: str) -> int:
    """Number of leading zero bits in a hex digest"""
    value = int(digest_hex, 16)
    return len(digest_hex) * 4 - value.bit_length()


def solve(challenge: str, difficulty: int = DEFAULT_POW_DIFFICULTY,
          max_attempts: Optional[int] = None) -> int:
    """
    Find a nonce solving the challenge.

    Runs for an unbounded, data-dependent time; keep it off latency-sensitive
    paths (see solve_async).

    Args:
        challenge: Challenge string
        difficulty: Required leading zero bits
        max_attempts: Highest nonce to try, MAX_POW_ATTEMPTS if omitted

    Returns:
        The first nonce that satisfies the difficulty

    Raises:
        ValueError: If difficulty is out of range
        ProofOfWorkError: If no solution was found within max_attempts
    """
    _check_difficulty(difficulty)
    if max_attempts is None:
        max_attempts = MAX_POW_ATTEMPTS

    nonce = 0
    while nonce <= max_attempts:
        if _meets_difficulty(hash_string(challenge + str(nonce)), difficulty):
            logger.debug("Solved proof-of-work at difficulty %d after %d attempts", difficulty, nonce + 1)
            return nonce
        nonce += 1

    raise ProofOfWorkError(f"Proof-of-work failed: exceeded {max_attempts} attempts at difficulty {difficulty}")


def verify(challenge: str, nonce: int, difficulty: int = DEFAULT_POW_DIFFICULTY) -> bool:
    """
    Check a proof-of-work solution with a single hash.

    Raises:
        ValueError: If difficulty is out of range
    """
    _check_difficulty(difficulty)
    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
        return False
    return _meets_difficulty(hash_string(challenge + str(nonce)), difficulty)


async def solve_async(challenge: str, difficulty: int = DEFAULT_POW_DIFFICULTY,
                      timeout: Optional[float] = None) -> int:
    """
    Run solve() in a background thread and await the result.

    The caller's timeout abandons the wait with asyncio.TimeoutError. The
    solver thread is a daemon and keeps going until it finds a nonce or hits
    the attempt cap, so it never blocks interpreter shutdown.
    """
    _check_difficulty(difficulty)
    if not isinstance(challenge, str):
        raise TypeError(f"challenge must be a string, got {type(challenge).__name__}")
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(setter, value):
        if not future.done():
            setter(value)

    def worker():
        try:
            outcome = (future.set_result, solve(challenge, difficulty))
        except Exception as e:
            # Every failure must reach the awaiting caller
            outcome = (future.set_exception, e)
        try:
            loop.call_soon_threadsafe(deliver, *outcome)
        except RuntimeError:
            # event loop already closed
            logger.debug("Proof-of-work finished after its caller gave up")

    threading.Thread(target=worker, name="pow-solver", daemon=True).start()
    return await asyncio.wait_for(future, timeout)


@dataclass(frozen=True)
class ProofOfWork:
    """
    A challenge together with its solution.

    Attributes:
        challenge: Challenge string
        difficulty: Required leading zero bits
        nonce: Solution nonce
    """
    challenge: str
    difficulty: int
    nonce: int

    @classmethod
    def create(cls, challenge: str, difficulty: int = DEFAULT_POW_DIFFICULTY) -> 'ProofOfWork':
        return cls(challenge=challenge, difficulty=difficulty, nonce=solve(challenge, difficulty))

    def is_valid(self) -> bool:
        return verify(self.challenge, self.nonce, self.difficulty)

    def to_dict(self) -> dict:
        return {'challenge': self.challenge, 'difficulty': self.difficulty, 'nonce': self.nonce}
