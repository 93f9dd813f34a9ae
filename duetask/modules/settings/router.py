from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from duetask.db import GetDb
from duetask.modules.auth.deps import RequireAuthenticated, UserContext
from duetask.modules.auth.models import User
from duetask.modules.settings.schemas import (
    DeleteAccountRequest,
    PreferencesOut,
    PreferencesUpdate,
    ProfileOut,
    ProfileUpdate,
    UserStatsOut,
)
from duetask.modules.settings.services import (
    DeleteAccount,
    EnsurePreferences,
    GetUserStats,
    SettingsError,
    UpdatePreferences,
    UpdateProfile,
)

router = APIRouter(prefix="/api/user", tags=["settings"])


def _LoadUser(db: Session, user: UserContext) -> User:
    record = db.query(User).filter(User.Id == user.Id).first()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return record


def _BuildProfileOut(record: User) -> ProfileOut:
    return ProfileOut(
        Id=record.Id,
        Email=record.Email,
        Name=record.Name,
        AvatarUrl=record.AvatarUrl,
        Location=record.Location,
        Bio=record.Bio,
        CreatedAt=record.CreatedAt,
    )


def _BuildPreferencesOut(record) -> PreferencesOut:
    return PreferencesOut(
        NotificationsEnabled=record.NotificationsEnabled,
        DefaultView=record.DefaultView or "list",
        Theme=record.Theme or "system",
        TimeZone=record.TimeZone,
    )


@router.get("/profile", response_model=ProfileOut)
def GetProfile(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ProfileOut:
    return _BuildProfileOut(_LoadUser(db, user))


@router.patch("/profile", response_model=ProfileOut)
def UpdateProfileItem(
    payload: ProfileUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ProfileOut:
    record = _LoadUser(db, user)
    try:
        record = UpdateProfile(db, record, payload.model_dump(exclude_unset=True))
    except SettingsError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _BuildProfileOut(record)


@router.get("/preferences", response_model=PreferencesOut)
def GetPreferences(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> PreferencesOut:
    return _BuildPreferencesOut(EnsurePreferences(db, user.Id))


@router.patch("/preferences", response_model=PreferencesOut)
def UpdatePreferencesItem(
    payload: PreferencesUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> PreferencesOut:
    try:
        record = UpdatePreferences(db, user.Id, payload.model_dump(exclude_unset=True))
    except SettingsError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _BuildPreferencesOut(record)


@router.delete("/account", status_code=status.HTTP_204_NO_CONTENT)
def DeleteAccountItem(
    payload: DeleteAccountRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> None:
    record = _LoadUser(db, user)
    try:
        DeleteAccount(db, record, payload.Confirmation)
    except SettingsError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/stats", response_model=UserStatsOut)
def GetStats(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> UserStatsOut:
    stats = GetUserStats(db, user.Id)
    return UserStatsOut(
        TotalTasks=stats.TotalTasks,
        CompletedTasks=stats.CompletedTasks,
        PendingTasks=stats.PendingTasks,
        OverdueTasks=stats.OverdueTasks,
        CompletionRate=stats.CompletionRate,
    )
