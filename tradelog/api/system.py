"""System API — health checks."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from tradelog.database import get_session
from tradelog.services.exceptions import StorageError

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/health/db")
def database_health(session: Session = Depends(get_session)):
    try:
        session.connection().execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise StorageError("Database unavailable", {"error": type(e).__name__}) from e
    return {"status": "ok", "database": "ok"}
