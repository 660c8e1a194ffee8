"""Shared API dependencies."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session, select

from tradelog.database import get_session
from tradelog.models.user import User
from tradelog.services.auth import decode_access_token
from tradelog.services.lifecycle import PositionLifecycleManager
from tradelog.services.repository import SqlTradeRepository, TradeRepository

bearer_scheme = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    """Validate JWT and return the current user.

    This is the only place a request is resolved to an owner; swapping the
    login strategy means replacing this dependency.
    """
    username = decode_access_token(credentials.credentials)
    if username is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    user = session.exec(select(User).where(User.username == username)).first()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def get_owner_id(user: User = Depends(get_current_user)) -> int:
    return user.id


def get_trade_repository(session: Session = Depends(get_session)) -> TradeRepository:
    return SqlTradeRepository(session)


def get_lifecycle(
    repository: TradeRepository = Depends(get_trade_repository),
) -> PositionLifecycleManager:
    return PositionLifecycleManager(repository)
