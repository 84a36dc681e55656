import hashlib
import secrets

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.core.config import settings


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=settings.RESET_LINK_SECRET, salt="password-reset-link")


def create_reset_link_code(email: str, password_fingerprint: str) -> str:
    # fingerprint ties the link to the current hash, so it dies once used
    s = _serializer()
    return s.dumps({"email": email, "pw": password_fingerprint})


def read_reset_link_code(code: str, max_age_seconds: int) -> dict | None:
    """Payload of a valid, unexpired link code, otherwise None."""
    s = _serializer()
    try:
        return s.loads(code, max_age=max_age_seconds)
    except (SignatureExpired, BadSignature):
        return None


def password_fingerprint(password_hash: str | None) -> str:
    return hashlib.sha256((password_hash or "").encode("utf-8")).hexdigest()[:16]


def generate_flow_id() -> str:
    return secrets.token_urlsafe(24)
