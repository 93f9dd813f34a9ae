from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class DefaultViewOption(str, Enum):
    List = "list"
    Grid = "grid"


class ThemeOption(str, Enum):
    Light = "light"
    Dark = "dark"
    System = "system"


class ProfileOut(BaseModel):
    Id: int
    Email: str
    Name: str | None = None
    AvatarUrl: str | None = None
    Location: str | None = None
    Bio: str | None = None
    CreatedAt: datetime


class ProfileUpdate(BaseModel):
    Name: str | None = Field(default=None, min_length=2, max_length=120)
    AvatarUrl: str | None = Field(default=None, max_length=400)
    Location: str | None = Field(default=None, max_length=120)
    Bio: str | None = Field(default=None, max_length=500)


class PreferencesOut(BaseModel):
    NotificationsEnabled: bool
    DefaultView: DefaultViewOption
    Theme: ThemeOption
    TimeZone: str | None = None


class PreferencesUpdate(BaseModel):
    NotificationsEnabled: bool | None = None
    DefaultView: DefaultViewOption | None = None
    Theme: ThemeOption | None = None
    TimeZone: str | None = None


class DeleteAccountRequest(BaseModel):
    Confirmation: str


class UserStatsOut(BaseModel):
    TotalTasks: int
    CompletedTasks: int
    PendingTasks: int
    OverdueTasks: int
    CompletionRate: int
