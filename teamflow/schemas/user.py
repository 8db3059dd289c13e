# teamflow/schemas/user.py
from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional
from datetime import datetime

from teamflow.models.user import StaffRole

# Spellings the web client and older data use for each department
ROLE_ALIASES = {
    "MANAGER": StaffRole.MANAGER,
    "DESIGNER": StaffRole.DESIGNER,
    "SELLER": StaffRole.SELLER,
    "CS": StaffRole.CS,
    "CUSTOMER SERVICE": StaffRole.CS,
    "CUSTOMER_SERVICE": StaffRole.CS,
}


def normalize_role(value):
    """Accept any casing or the long 'Customer Service' form; store the canonical enum"""
    if value is None or isinstance(value, StaffRole):
        return value
    key = " ".join(str(value).strip().upper().split())
    if key not in ROLE_ALIASES:
        raise ValueError(f"Unknown role '{value}'")
    return ROLE_ALIASES[key]


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: StaffRole
    avatar: Optional[str] = None

    @field_validator('role', mode='before')
    @classmethod
    def _normalize_role(cls, v):
        return normalize_role(v)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserBasic(BaseModel):
    id: int
    name: str
    email: str
    role: StaffRole
    avatar: Optional[str] = None

    model_config = {
        "from_attributes": True
    }


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: StaffRole
    avatar: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
