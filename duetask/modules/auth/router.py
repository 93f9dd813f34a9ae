from datetime import timedelta
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from duetask.db import GetDb
from duetask.modules.auth.deps import NowUtc, RequireAuthenticated, UserContext, _require_env
from duetask.modules.auth.models import RefreshToken, User, UserPreferences
from duetask.modules.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserOut,
)
from duetask.modules.auth.service import (
    CreateAccessToken,
    CreateRefreshToken,
    HashPassword,
    HashRefreshToken,
    IsAccountLocked,
    NormalizeEmail,
    RegisterFailedLogin,
    VerifyPassword,
    VerifyRefreshToken,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("app.auth")


def _IssueTokens(db: Session, user: User) -> TokenResponse:
    access_token, expires_in = CreateAccessToken(user.Id, user.Email)
    refresh_token = CreateRefreshToken()
    refresh_ttl_days = int(_require_env("JWT_REFRESH_TTL_DAYS"))
    db.add(
        RefreshToken(
            UserId=user.Id,
            TokenHash=HashRefreshToken(refresh_token),
            ExpiresAt=NowUtc() + timedelta(days=refresh_ttl_days),
        )
    )
    db.commit()
    return TokenResponse(
        AccessToken=access_token,
        RefreshToken=refresh_token,
        ExpiresIn=expires_in,
        Email=user.Email,
        Name=user.Name,
    )


def _ValidatePasswordLength(password: str) -> None:
    min_length = int(_require_env("AUTH_PASSWORD_MIN_LENGTH"))
    if len(password) < min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {min_length} characters",
        )


@router.post("/login", response_model=TokenResponse)
def Login(payload: LoginRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    email = NormalizeEmail(payload.Email)
    user = db.query(User).filter(User.Email == email).first()
    now = NowUtc()
    if user and IsAccountLocked(user.LockedUntil, now):
        logger.warning("login blocked for locked account user_id=%s", user.Id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account locked. Try again later.")

    if not user or not VerifyPassword(payload.Password, user.PasswordHash):
        if user:
            user.FailedLoginCount, user.LockedUntil = RegisterFailedLogin(
                user.FailedLoginCount,
                now,
                int(_require_env("AUTH_LOGIN_MAX_ATTEMPTS")),
                int(_require_env("AUTH_LOGIN_LOCKOUT_MINUTES")),
            )
            db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user.FailedLoginCount = 0
    user.LockedUntil = None
    return _IssueTokens(db, user)


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def Register(payload: RegisterRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    email = NormalizeEmail(payload.Email)
    if "@" not in email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Valid email required")

    existing = db.query(User).filter(User.Email == email).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    _ValidatePasswordLength(payload.Password)

    now = NowUtc()
    record = User(
        Email=email,
        PasswordHash=HashPassword(payload.Password),
        Name=payload.Name.strip() if payload.Name else None,
        FailedLoginCount=0,
        CreatedAt=now,
        UpdatedAt=now,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    db.refresh(record)

    db.add(UserPreferences(UserId=record.Id, CreatedAt=now, UpdatedAt=now))
    logger.info("registered user_id=%s", record.Id)
    return _IssueTokens(db, record)


@router.post("/refresh", response_model=TokenResponse)
def Refresh(payload: RefreshRequest, db: Session = Depends(GetDb)) -> TokenResponse:
    now = NowUtc()
    tokens = (
        db.query(RefreshToken)
        .filter(RefreshToken.RevokedAt.is_(None), RefreshToken.ExpiresAt > now)
        .all()
    )
    matched = None
    for token in tokens:
        if VerifyRefreshToken(payload.RefreshToken, token.TokenHash):
            matched = token
            break

    if not matched:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = db.query(User).filter(User.Id == matched.UserId).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    matched.RevokedAt = now
    db.add(matched)
    return _IssueTokens(db, user)


@router.post("/logout")
def Logout(
    payload: RefreshRequest,
    user: UserContext = Depends(RequireAuthenticated),
    db: Session = Depends(GetDb),
) -> dict:
    tokens = db.query(RefreshToken).filter(RefreshToken.UserId == user.Id, RefreshToken.RevokedAt.is_(None)).all()
    for token in tokens:
        if VerifyRefreshToken(payload.RefreshToken, token.TokenHash):
            token.RevokedAt = NowUtc()
            db.add(token)
            db.commit()
            return {"status": "ok"}
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Refresh token not found")


@router.post("/change-password")
def ChangePassword(
    payload: ChangePasswordRequest,
    user: UserContext = Depends(RequireAuthenticated),
    db: Session = Depends(GetDb),
) -> dict:
    _ValidatePasswordLength(payload.NewPassword)

    record = db.query(User).filter(User.Id == user.Id).first()
    if not record or not VerifyPassword(payload.CurrentPassword, record.PasswordHash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    now = NowUtc()
    record.PasswordHash = HashPassword(payload.NewPassword)
    record.FailedLoginCount = 0
    record.LockedUntil = None
    record.UpdatedAt = now

    tokens = db.query(RefreshToken).filter(RefreshToken.UserId == record.Id, RefreshToken.RevokedAt.is_(None)).all()
    for token in tokens:
        token.RevokedAt = now
        db.add(token)

    db.add(record)
    db.commit()
    return {"status": "ok"}


@router.get("/me", response_model=UserOut)
def Me(
    user: UserContext = Depends(RequireAuthenticated),
    db: Session = Depends(GetDb),
) -> UserOut:
    record = db.query(User).filter(User.Id == user.Id).first()
    if not record:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return UserOut(
        Id=record.Id,
        Email=record.Email,
        Name=record.Name,
        AvatarUrl=record.AvatarUrl,
        Location=record.Location,
        Bio=record.Bio,
        CreatedAt=record.CreatedAt,
    )
