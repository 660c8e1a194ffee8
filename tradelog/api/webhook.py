"""Webhook API — automated entry/exit alerts."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlmodel import Session

from tradelog.database import get_session
from tradelog.models.user import User
from tradelog.schemas.trade import TradeRead
from tradelog.schemas.webhook import SignalAction, WebhookSignal
from tradelog.services.auth import resolve_webhook_token
from tradelog.services.lifecycle import PositionLifecycleManager
from tradelog.api.deps import get_lifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["webhook"])


def get_webhook_owner(token: str, session: Session = Depends(get_session)) -> int:
    """Resolve the token in the URL to an active user's id."""
    owner_id = resolve_webhook_token(token)
    user = session.get(User, owner_id) if owner_id is not None else None
    if user is None or not user.is_active:
        logger.warning("Rejected webhook call with an unknown token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook token",
        )
    return user.id


@router.post("/{token}", response_model=TradeRead)
def receive_signal(
    signal: WebhookSignal,
    response: Response,
    owner_id: int = Depends(get_webhook_owner),
    lifecycle: PositionLifecycleManager = Depends(get_lifecycle),
):
    trade = lifecycle.handle_signal(owner_id, signal)
    if signal.action == SignalAction.ENTRY:
        response.status_code = status.HTTP_201_CREATED
    return trade
