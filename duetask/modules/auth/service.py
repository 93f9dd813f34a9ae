import secrets
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext

from duetask.modules.auth.deps import NowUtc, _require_env

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def HashPassword(password: str) -> str:
    return pwd_context.hash(password)


def VerifyPassword(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def NormalizeEmail(value: str) -> str:
    return value.strip().lower()


def CreateAccessToken(user_id: int, email: str) -> tuple[str, int]:
    import jwt

    secret = _require_env("JWT_SECRET_KEY")
    ttl_minutes = int(_require_env("JWT_ACCESS_TTL_MINUTES"))
    now = NowUtc()
    expires = now + timedelta(minutes=ttl_minutes)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
    }
    token = jwt.encode(payload, secret, algorithm="HS256")
    return token, ttl_minutes * 60


def CreateRefreshToken() -> str:
    return secrets.token_urlsafe(48)


def HashRefreshToken(token: str) -> str:
    return pwd_context.hash(token)


def VerifyRefreshToken(token: str, token_hash: str) -> bool:
    return pwd_context.verify(token, token_hash)


def IsAccountLocked(locked_until: datetime | None, now: datetime) -> bool:
    if not locked_until:
        return False
    if locked_until.tzinfo is None:
        locked_until = locked_until.replace(tzinfo=timezone.utc)
    return locked_until > now


def RegisterFailedLogin(
    failed_count: int,
    now: datetime,
    max_attempts: int,
    lockout_minutes: int,
) -> tuple[int, datetime | None]:
    """Returns the new failed-attempt count and lock expiry after a bad password."""
    failed_count = (failed_count or 0) + 1
    if failed_count >= max_attempts:
        return 0, now + timedelta(minutes=lockout_minutes)
    return failed_count, None
