from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import User
from ..services import notifications as svc

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Most recent notifications shared with every user."""
    return [svc.notification_to_dict(n) for n in svc.list_notifications(db)]


@router.post("/mark-read")
def mark_read(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    updated = svc.mark_all_read(db)
    return {"success": True, "message": "Notifications marked as read", "updated": updated}


@router.delete("/clear")
def clear(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    deleted = svc.clear_all(db)
    return {"success": True, "message": "Notifications cleared", "deleted": deleted}
