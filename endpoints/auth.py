"""
Authentication endpoints
"""
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import ACCESS_TOKEN_EXPIRE_MINUTES, LOCKOUT_MINUTES, MAX_FAILED_LOGINS, RATE_LIMIT_LOGIN
from database import connection
from models.user import User, RevokedToken
from schemas.auth import UserCreate, UserRead, Token, RefreshRequest
from utils.auth import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    is_password_secure,
    verify_password,
    verify_token,
)
from utils.dependencies import get_current_user, get_token_payload
from utils.logging_utils import log_event, log_error
from utils.rate_limiter import limiter

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _issue_tokens(user: User) -> Token:
    claims = {"sub": user.username, "user_id": user.id, "role": user.role}
    return Token(
        access_token=create_access_token(claims, expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
        refresh_token=create_refresh_token(claims),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(connection.get_db)):
    """Creates an owner account"""
    ok, errors = is_password_secure(payload.password)
    if not ok:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"password": errors})

    exists = db.query(User).filter(
        or_(User.username == payload.username, User.email == payload.email)
    ).first()
    if exists:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username or email already registered")

    try:
        user = User(
            username=payload.username,
            email=payload.email,
            full_name=payload.full_name,
            hashed_password=get_password_hash(payload.password),
            role="owner",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        log_error("auth", payload.username, "Register failed", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the user")

    log_event("auth", user.username, "Register", f"user_id={user.id}")
    return user


@router.post("/login", response_model=Token)
@limiter.limit(RATE_LIMIT_LOGIN)
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(connection.get_db),
):
    """
    Logs in with username (or email) and password, returns access and refresh tokens
    """
    user = db.query(User).filter(
        or_(User.username == form_data.username, User.email == form_data.username)
    ).first()

    if not user:
        log_event("auth", form_data.username, "Login with unknown user")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.is_locked():
        minutes_left = (user.locked_until - datetime.utcnow()).seconds // 60 + 1
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User temporarily locked. Try again in {minutes_left} minutes",
        )

    if not verify_password(form_data.password, user.hashed_password):
        user.failed_attempts = (user.failed_attempts or 0) + 1

        # Lock after too many failed attempts
        if user.failed_attempts >= MAX_FAILED_LOGINS:
            user.locked_until = datetime.utcnow() + timedelta(minutes=LOCKOUT_MINUTES)
            db.commit()
            log_event("auth", user.username, "User locked after failed logins")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User locked after too many failed attempts. Try again in {LOCKOUT_MINUTES} minutes",
            )

        db.commit()
        log_event("auth", user.username, "Login with wrong password", f"attempts={user.failed_attempts}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is disabled")

    user.failed_attempts = 0
    user.locked_until = None
    user.last_login = datetime.utcnow()
    db.commit()

    log_event("auth", user.username, "Login")
    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
def refresh(payload: RefreshRequest, db: Session = Depends(connection.get_db)):
    claims = verify_token(payload.refresh_token, token_type="refresh")
    user = db.query(User).filter(User.id == claims.get("user_id")).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")
    return _issue_tokens(user)


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/logout")
def logout(
    token_payload: dict = Depends(get_token_payload),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(connection.get_db),
):
    """Revokes the access token used for this request"""
    try:
        db.add(RevokedToken(jti=token_payload["jti"], user_id=current_user.id))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("auth", current_user.username, "Logout failed", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not sign out")

    log_event("auth", current_user.username, "Logout")
    return {"success": True}
