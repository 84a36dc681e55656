from datetime import datetime, timedelta, timezone
from jose import jwt
from passlib.context import CryptContext
from app.core.config import settings

# ── Bcrypt Password Hashing ───────────────────────────────────────────
# "deprecated=auto" → old hashes are silently re-hashed on next login
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Constant-time dummy hash used when no real hash exists,
# prevents timing attacks that could reveal valid emails.
_DUMMY_HASH = "$2b$12$KIXa8pRj6u8OjKvI7bQsqOEkBqYHqFbY3Ku.Fsp7p/e8XGJ0XOGK6"


def hash_password(plain: str) -> str:
    """Hash a plaintext password with bcrypt via passlib (salted per call)."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str | None) -> bool:
    """
    Timing-safe bcrypt comparison via passlib.

    Accounts created through OAuth have no password hash; those, and any
    truncated hash, still run a dummy verify so the response time does not
    reveal which case was hit.
    """
    if not hashed or len(hashed) < 59:
        _dummy_verify(plain)
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        _dummy_verify(plain)
        return False


def _dummy_verify(plain: str) -> None:
    try:
        pwd_context.verify(plain, _DUMMY_HASH)
    except ValueError:
        pass


# ── JWT Token ─────────────────────────────────────────────────────────
def create_access_token(
    subject: str | int,
    role: str,
    email: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    """
    Creates a signed JWT. Change SECRET_KEY in .env to invalidate all tokens.

    Payload contains:
      sub  - account id (student uid or admin id)
      role - "student" | "admin"
      email - for frontend display
      type - guards against using wrong token types
      iat  - issued at
      exp  - expiry (ACCESS_TOKEN_EXPIRE_MINUTES unless overridden)
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub":   str(subject),
        "role":  role,
        "type":  "access",
        "iat":   now,
        "exp":   now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decodes and verifies JWT signature + expiry.
    Raises jose.JWTError on any failure.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
