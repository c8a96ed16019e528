from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from database.connection import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(120), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(120), nullable=True)
    role = Column(String(20), nullable=False, default="owner")  # owner | staff | admin
    is_active = Column(Boolean, nullable=False, default=True)

    # Lockout after repeated failed logins
    failed_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    hotels = relationship("Hotel", back_populates="owner", cascade="all, delete-orphan")

    def is_locked(self) -> bool:
        return bool(self.locked_until and self.locked_until > datetime.utcnow())


class RevokedToken(Base):
    """Access tokens invalidated through logout"""
    __tablename__ = "revoked_tokens"

    id = Column(Integer, primary_key=True)
    jti = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    revoked_at = Column(DateTime, default=datetime.utcnow)
