from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.student_auth_controller import call_reset_user_password
from app.core.database import get_db
from app.schemas.student_auth import ResetUserPasswordRequest, ResetUserPasswordResponse

router = APIRouter(prefix="/functions", tags=["Functions"])


@router.post(
    "/reset-user-password",
    response_model=ResetUserPasswordResponse,
    summary="Reset a password with an emailed verification code",
)
async def reset_user_password(payload: ResetUserPasswordRequest, db: AsyncSession = Depends(get_db)):
    return await call_reset_user_password(db, payload.email, payload.verification_code, payload.new_password)
