"""
Server-side callable functions.

``reset_user_password`` re-checks everything the browser already checked:
the request could come from anywhere.
"""
import logging
from datetime import datetime, timedelta

from app.core.credentials import check_password, normalize_email
from app.core.errors import OtpError, ValidationError
from app.core.otp import utcnow, verify_otp
from app.services.session_store import ResetSessionStore

logger = logging.getLogger(__name__)


def _password_rule_violation(password: str) -> str | None:
    req = check_password(password)
    if not req.min_length:
        return "Password must be at least 8 characters long"
    if not req.has_uppercase:
        return "Password must contain at least one uppercase letter"
    if not req.has_lowercase:
        return "Password must contain at least one lowercase letter"
    if not req.has_number:
        return "Password must contain at least one number"
    return None


async def reset_user_password(
    identity,
    store: ResetSessionStore,
    email: str,
    verification_code: str,
    new_password: str,
    *,
    now: datetime | None = None,
    max_attempts: int | None = None,
    verified_grace: timedelta = timedelta(0),
) -> dict:
    """
    Set a new password for ``email`` if ``verification_code`` matches the live
    reset session. Raises ValidationError, OtpError or ProviderError.

    A session already marked verified stays usable for ``verified_grace``
    past its expiry, so a user who verified just in time can still finish.
    """
    if not email or not verification_code or not new_password:
        raise ValidationError("Missing required fields: email, verificationCode, or newPassword")

    violation = _password_rule_violation(new_password)
    if violation:
        raise ValidationError(violation)

    session = await store.get(email)
    grace = verified_grace if session is not None and session.verified else timedelta(0)
    try:
        verify_otp(session, email, verification_code, now or utcnow(), max_attempts, grace=grace)
    except OtpError as exc:
        if exc.session is not None:
            await store.set(exc.session)
        raise

    await identity.update_password(normalize_email(email), new_password)
    await store.clear(email)
    logger.info("Password reset via verification code for %s", normalize_email(email))
    return {"success": True, "message": "Password reset successfully"}
