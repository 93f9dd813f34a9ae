from datetime import datetime

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    AccessToken: str
    RefreshToken: str
    TokenType: str = "bearer"
    ExpiresIn: int
    Email: str
    Name: str | None = None


class LoginRequest(BaseModel):
    Email: str = Field(..., max_length=254)
    Password: str = Field(..., max_length=200)


class RegisterRequest(BaseModel):
    Email: str = Field(..., min_length=3, max_length=254)
    Password: str = Field(..., max_length=200)
    Name: str | None = Field(default=None, max_length=120)


class RefreshRequest(BaseModel):
    RefreshToken: str = Field(..., max_length=400)


class ChangePasswordRequest(BaseModel):
    CurrentPassword: str = Field(..., max_length=200)
    NewPassword: str = Field(..., max_length=200)


class UserOut(BaseModel):
    Id: int
    Email: str
    Name: str | None = None
    AvatarUrl: str | None = None
    Location: str | None = None
    Bio: str | None = None
    CreatedAt: datetime
