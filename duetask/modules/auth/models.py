from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Unicode
from sqlalchemy.orm import relationship

from duetask.db import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"schema": "auth"}

    Id = Column(Integer, primary_key=True, index=True)
    Email = Column(String(254), nullable=False, unique=True, index=True)
    PasswordHash = Column(String(255), nullable=False)
    Name = Column(Unicode(120))
    AvatarUrl = Column(String(400))
    Location = Column(Unicode(120))
    Bio = Column(Unicode(500))
    FailedLoginCount = Column(Integer, default=0, nullable=False)
    LockedUntil = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    RefreshTokens = relationship("RefreshToken", back_populates="User")
    Preferences = relationship("UserPreferences", back_populates="User", uselist=False)


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    __table_args__ = {"schema": "auth"}

    Id = Column(Integer, primary_key=True, index=True)
    UserId = Column(Integer, ForeignKey("auth.users.Id"), nullable=False, index=True)
    TokenHash = Column(String(255), nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    ExpiresAt = Column(DateTime(timezone=True), nullable=False)
    RevokedAt = Column(DateTime(timezone=True))

    User = relationship("User", back_populates="RefreshTokens")


class UserPreferences(Base):
    __tablename__ = "user_preferences"
    __table_args__ = {"schema": "auth"}

    Id = Column(Integer, primary_key=True, index=True)
    UserId = Column(Integer, ForeignKey("auth.users.Id"), nullable=False, unique=True, index=True)
    NotificationsEnabled = Column(Boolean, nullable=False, default=True)
    DefaultView = Column(String(10), nullable=False, default="list")
    Theme = Column(String(10), nullable=False, default="system")
    TimeZone = Column(String(64))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    User = relationship("User", back_populates="Preferences")
