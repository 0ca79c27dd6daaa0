"""Invite code generation for pairing.

Codes are 6-character alphanumeric (A-Z, 0-9), generated server-side
with a cryptographic random source. A unique index on ``users.inviteCode``
backs the existence check below.
"""

from __future__ import annotations

import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.db.models import User

INVITE_CHARSET = string.ascii_uppercase + string.digits  # A-Z, 0-9
INVITE_LENGTH = 6


def generate_invite_code() -> str:
    """Generate a cryptographically random 6-character invite code."""
    return "".join(secrets.choice(INVITE_CHARSET) for _ in range(INVITE_LENGTH))


def normalize_invite_code(code: str) -> str:
    """Normalize an invite code to uppercase for case-insensitive lookup."""
    return code.strip().upper()


def is_well_formed(code: str) -> bool:
    normalized = normalize_invite_code(code)
    return len(normalized) == INVITE_LENGTH and all(c in INVITE_CHARSET for c in normalized)


async def generate_unique_invite_code(db: AsyncSession, max_attempts: int = 10) -> str:
    """Generate an invite code that no existing profile holds."""
    for _ in range(max_attempts):
        code = generate_invite_code()
        existing = await db.execute(select(User.uid).where(User.invite_code == code))
        if existing.scalar_one_or_none() is None:
            return code
    msg = f"Failed to generate unique invite code after {max_attempts} attempts"
    raise RuntimeError(msg)
