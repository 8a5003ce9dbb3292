from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class SignupRequest(BaseModel):
    username: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)
    role: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    role: str


class AuthResponse(BaseModel):
    success: bool = True
    message: str
    user: UserOut
    token: str


class VerifyTokenResponse(BaseModel):
    success: bool = True
    message: str = "Token is valid"
    user: UserOut


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[dict] = None
