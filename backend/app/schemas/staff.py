"""Schemas for staff accounts and the restaurant's staff roles."""

from pydantic import BaseModel, ConfigDict, EmailStr


class StaffCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    assigned_role_id: int | None = None


class StaffRead(BaseModel):
    id: int
    name: str
    email: EmailStr
    status: str
    restaurant_id: int
    assigned_role_id: int | None = None

    model_config = ConfigDict(from_attributes=True)


class StaffAssignment(BaseModel):
    assigned_role_id: int | None = None


class StaffRoleCreate(BaseModel):
    name: str
    description: str | None = None


class StaffRoleRead(StaffRoleCreate):
    id: int
    restaurant_id: int

    model_config = ConfigDict(from_attributes=True)
