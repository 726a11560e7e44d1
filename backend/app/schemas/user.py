# app/schemas/user.py

from pydantic import BaseModel, ConfigDict, EmailStr


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str


class RegisterRequest(UserCreate):
    # Required for every registration except the very first (admin) one.
    restaurant_name: str | None = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: str
    restaurant_id: int | None = None

    model_config = ConfigDict(from_attributes=True)


class UserMeResponse(UserResponse):
    assigned_role_id: int | None = None
    permissions: list[str]


class UserLogin(BaseModel):
    email: EmailStr
    password: str
