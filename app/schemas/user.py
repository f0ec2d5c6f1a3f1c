from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

StaffRole = Literal["admin", "staff", "finance"]


class UserCreate(BaseModel):
    email: EmailStr
    fullName: str = ""
    role: StaffRole = "staff"
    password: str = Field(min_length=8)


class UserUpdate(BaseModel):
    fullName: Optional[str] = None
    role: Optional[StaffRole] = None
    isActive: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=8)
