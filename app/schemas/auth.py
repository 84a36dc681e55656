from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {"email": "admin@devpath.app", "password": "ChangeMe2025"}
        }
    }


class AdminSummary(BaseModel):
    """What the back-office nav needs; no hash, no flags."""
    id: int
    name: str
    email: str
    role: Literal["admin"] = "admin"

    model_config = {"from_attributes": True}


class AdminLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    admin: AdminSummary


class AdminProfile(AdminSummary):
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime
