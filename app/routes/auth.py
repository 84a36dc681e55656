from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import auth_controller as ctl
from app.core.database import get_db
from app.core.dependencies import get_current_admin
from app.models.admin import Admin
from app.schemas.auth import AdminLoginRequest, AdminLoginResponse, AdminProfile

router = APIRouter(prefix="/admin/auth", tags=["Admin - Auth"])


@router.post("/login", response_model=AdminLoginResponse, summary="Back-office sign in")
async def admin_login(payload: AdminLoginRequest, db: AsyncSession = Depends(get_db)):
    """Returns a bearer token whose role is `admin`; student routes reject it with 403."""
    return await ctl.login(payload, db)


@router.get("/me", response_model=AdminProfile)
async def admin_me(admin: Admin = Depends(get_current_admin)):
    return ctl.admin_profile(admin)
