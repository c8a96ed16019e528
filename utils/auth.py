"""
JWT and password helpers
"""
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import (
    SECRET_KEY,
    ALGORITHM,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    REFRESH_TOKEN_EXPIRE_DAYS,
)


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ========== PASSWORDS ==========

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hashes a password.
    Bcrypt only looks at the first 72 bytes, so longer input is truncated.
    """
    if len(password.encode("utf-8")) > 72:
        password = password.encode("utf-8")[:72].decode("utf-8", errors="ignore")
    return pwd_context.hash(password)


def is_password_secure(password: str) -> tuple[bool, list[str]]:
    """
    Returns (is_valid, errors) for the password policy
    """
    errors = []
    if len(password) < 8:
        errors.append("Must be at least 8 characters long")
    if not any(c.isalpha() for c in password):
        errors.append("Must contain at least one letter")
    if not any(c.isdigit() for c in password):
        errors.append("Must contain at least one number")
    return (len(errors) == 0, errors)


# ========== JWT ==========

def _encode(data: dict, expire: datetime, token_type: str) -> str:
    to_encode = data.copy()
    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": token_type,
        "jti": uuid.uuid4().hex,
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return _encode(data, expire, "access")


def create_refresh_token(data: dict) -> str:
    expire = datetime.utcnow() + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(data, expire, "refresh")


def verify_token(token: str, token_type: str = "access") -> dict:
    """
    Verifies and decodes a JWT

    Args:
        token: the encoded JWT
        token_type: expected token type ("access" or "refresh")

    Returns:
        dict: the decoded payload

    Raises:
        HTTPException: if the token is invalid, expired or of the wrong type
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        # jose checks "exp" while decoding
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception

    if payload.get("type") != token_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token type, expected '{token_type}'",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if payload.get("exp") is None or payload.get("jti") is None:
        raise credentials_exception

    return payload
