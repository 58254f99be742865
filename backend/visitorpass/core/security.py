from datetime import datetime, timezone
from typing import Optional
from jose import jwt, JWTError

# The backend signs tokens with its own secret; the gateway never verifies
# signatures, it only reads claims to scope requests and spot stale sessions.

def read_token_claims(token: str) -> Optional[dict]:
    """Return the unverified claims of a backend token, or None if unreadable"""
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None

def token_expired(token: str, now: Optional[datetime] = None) -> bool:
    """
    True when the token's `exp` claim is in the past.
    Tokens without `exp` are left for the backend to judge.
    """
    claims = read_token_claims(token)
    if claims is None:
        return True

    exp = claims.get("exp")
    if exp is None:
        return False

    now = now or datetime.now(timezone.utc)
    try:
        return datetime.fromtimestamp(float(exp), tz=timezone.utc) <= now
    except (TypeError, ValueError, OverflowError):
        return True
