from datetime import timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import AuthFlowError
from app.core.security import decode_access_token
from app.models.admin import Admin
from app.models.student import Student
from app.services.flow_registry import SignupFlowRegistry

bearer = HTTPBearer(auto_error=False)

_signup_registry = SignupFlowRegistry(
    idle_timeout=timedelta(minutes=settings.SIGNUP_FLOW_IDLE_MINUTES),
    max_flows=settings.SIGNUP_FLOW_MAX,
)


def get_signup_registry() -> SignupFlowRegistry:
    return _signup_registry


def _not_authenticated_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing token",
        headers={"WWW-Authenticate": "Bearer"},
    )


def flow_http_error(error: AuthFlowError) -> HTTPException:
    """Recorded workflow error -> HTTPException with the same status map everywhere."""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


def _payload_for_role(token: str, role: str) -> dict:
    not_authenticated = _not_authenticated_exception()
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise not_authenticated

    if payload.get("type") != "access" or not payload.get("sub"):
        raise not_authenticated

    if payload.get("role") != role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized as {role}",
        )
    return payload


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> Admin:
    not_authenticated = _not_authenticated_exception()

    if not credentials:
        raise not_authenticated

    payload = _payload_for_role(credentials.credentials, "admin")
    try:
        admin_id = int(payload["sub"])
    except ValueError:
        raise not_authenticated

    result = await db.execute(select(Admin).where(Admin.id == admin_id))
    admin = result.scalar_one_or_none()

    if admin is None:
        raise not_authenticated

    if not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This admin account has been deactivated",
        )

    return admin


async def student_from_token(token: str | None, db: AsyncSession) -> Student:
    """Resolve a student access token (sub = student uid)."""
    not_authenticated = _not_authenticated_exception()

    if not token:
        raise not_authenticated

    payload = _payload_for_role(token, "student")

    result = await db.execute(select(Student).where(Student.uid == str(payload["sub"])))
    student = result.scalar_one_or_none()

    if student is None:
        raise not_authenticated

    if not student.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This student account has been deactivated",
        )

    return student


async def get_current_student(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> Student:
    return await student_from_token(credentials.credentials if credentials else None, db)
