import logging
import secrets
from typing import Callable

logger = logging.getLogger(__name__)

# 32 symbols; 0/O and 1/I are left out so codes survive being read aloud
JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH = 6


def generate_join_code() -> str:
    """Return a random 6-character join code from the restricted alphabet."""
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


def normalize_join_code(raw: str) -> str:
    return (raw or "").strip().upper()


def is_well_formed(code: str) -> bool:
    return len(code) == JOIN_CODE_LENGTH and all(ch in JOIN_CODE_ALPHABET for ch in code)


async def assign_unique_join_code(registry, generate: Callable[[], str] = generate_join_code) -> str:
    """
    Draw codes until one is not used by any room, deleted rooms included.

    The loop is unbounded: with 32**6 codes a repeat is rare. The check is not
    atomic with the insert that follows; the unique constraint on
    ``rooms.join_code`` catches the race.
    """
    code = generate()
    while await registry.join_code_exists(code):
        logger.debug(f"Join code {code} already taken, drawing another")
        code = generate()
    return code
