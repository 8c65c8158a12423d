"""
Maintenance endpoints (scheduled jobs)
"""
from typing import Optional
import hmac

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session
import logging

from config import Settings, get_settings
from database import get_db
from core.room_manager import RoomManager

router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])
logger = logging.getLogger(__name__)


@router.post("/cleanup")
def cleanup_expired_rooms(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Delete rooms past their expiry

    When cleanup_token is configured the caller must send
    `Authorization: Bearer <token>`.
    """
    if settings.cleanup_token:
        expected = f"Bearer {settings.cleanup_token}"
        if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
            raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        deleted = RoomManager.cleanup_expired_rooms(db)
        return {"deleted": deleted}

    except Exception as e:
        logger.error(f"Failed to clean up rooms: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
