"""Generators for verification/reset tokens and one-time codes.

All functions are pure: callers persist the value together with its expiry.
"""

import secrets
from datetime import UTC, datetime, timedelta

TOKEN_BYTES = 32
CODE_MIN = 100000
CODE_MAX = 999999


def issue_opaque_token() -> str:
    """256-bit random token, hex-encoded (64 chars)."""
    return secrets.token_hex(TOKEN_BYTES)


def issue_numeric_code() -> str:
    """Uniformly random 6-digit code in [100000, 999999]."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def expires_in(delta: timedelta, now: datetime | None = None) -> datetime:
    """Expiry timestamp ``delta`` after ``now`` (default: current UTC time)."""
    return (now or datetime.now(UTC)) + delta
