from pydantic import BaseModel, EmailStr
from app.schemas.user import UserResponse


class LoginRequest(BaseModel):
    """Request schema for email/password login."""
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    """Response schema for a successful login."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
