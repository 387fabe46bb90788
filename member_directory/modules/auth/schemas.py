from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class SignInRequest(BaseModel):
    email: EmailStr
    remember_me: bool = True


class SignUpRequest(BaseModel):
    email: EmailStr
    community_password: str


class VerifyRequest(BaseModel):
    email: EmailStr
    code: str = Field(min_length=1, max_length=16)


class ResendRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    message: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user_id: str
    email: str


class RegisterResponse(BaseModel):
    user_id: str
    email: str
    message: str


class SessionResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[int] = None


class MeResponse(BaseModel):
    id: str
    email: Optional[str] = None
    needs_profile_setup: bool
