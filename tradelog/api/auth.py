"""Authentication API — register, login, current user, webhook token."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from tradelog.database import get_session
from tradelog.models.user import User
from tradelog.schemas.user import (
    LoginRequest,
    TokenResponse,
    UserCreate,
    UserRead,
    WebhookTokenResponse,
)
from tradelog.services.auth import create_access_token, create_webhook_token, hash_pin, verify_pin
from tradelog.api.deps import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(body: UserCreate, session: Session = Depends(get_session)):
    existing = session.exec(select(User).where(User.username == body.username)).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists",
        )

    user = User(username=body.username, hashed_pin=hash_pin(body.pin))
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"Registered user {user.username} (id {user.id})")
    return TokenResponse(access_token=create_access_token(subject=user.username))


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.username == body.username.strip())).first()

    if not user or not user.is_active or not verify_pin(body.pin, user.hashed_pin):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or PIN",
        )

    token = create_access_token(subject=user.username)
    return TokenResponse(access_token=token)


@router.get("/me", response_model=UserRead)
def me(user: User = Depends(get_current_user)):
    return user


@router.get("/webhook-token", response_model=WebhookTokenResponse)
def webhook_token(user: User = Depends(get_current_user)):
    """Token to paste into the alert service's webhook URL."""
    token = create_webhook_token(user.id)
    return WebhookTokenResponse(token=token, url_path=f"/api/webhook/{token}")
