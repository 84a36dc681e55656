import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.credentials import normalize_email
from app.core.security import create_access_token, verify_password
from app.models.admin import Admin
from app.schemas.auth import AdminLoginRequest, AdminLoginResponse, AdminProfile, AdminSummary

logger = logging.getLogger(__name__)


async def login(payload: AdminLoginRequest, db: AsyncSession) -> AdminLoginResponse:
    """
    Back-office sign in.

    The hash check runs for unknown emails too and both failures share one
    message. A disabled account is reported only after a correct password.
    """
    email = normalize_email(str(payload.email))
    admin = (await db.execute(select(Admin).where(Admin.email == email))).scalar_one_or_none()

    password_ok = verify_password(payload.password, admin.password_hash if admin else None)
    if admin is None or not password_ok:
        logger.info("Rejected admin sign in for %s", email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if not admin.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This admin account is disabled.")

    admin.last_login_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("Admin %s signed in", admin.id)

    return AdminLoginResponse(
        access_token=create_access_token(admin.id, "admin", admin.email),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        admin=AdminSummary.model_validate(admin),
    )


def admin_profile(admin: Admin) -> AdminProfile:
    return AdminProfile.model_validate(admin)
