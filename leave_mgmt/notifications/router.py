# leave_mgmt/notifications/router.py
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from leave_mgmt.auth.dependencies import get_current_user, is_admin
from leave_mgmt.auth.jwt_handler import decode_jwt
from leave_mgmt.database import get_db, SessionLocal
from leave_mgmt.errors import forbidden, not_found
from leave_mgmt.leaves.service import paginate
from leave_mgmt.notifications.models import Notification, TYPES, CATEGORIES, RECIPIENT_ROLES
from leave_mgmt.notifications.realtime import hub
from leave_mgmt.users.models import User

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
ws_router = APIRouter()


def _visible_to(user: User):
    """Rows addressed to the user plus role broadcasts for the user's role."""
    return or_(
        Notification.user_id == user.id,
        and_(Notification.user_id.is_(None), Notification.recipient_role == (user.role or "").lower()),
    )


def _get_notification(db: Session, notification_id: int) -> Notification:
    n = db.query(Notification).filter(Notification.id == notification_id).first()
    if not n:
        raise not_found("Notification Not Found", "Notification not found")
    return n


def _can_access(user: User, n: Notification) -> bool:
    if n.user_id is not None:
        return n.user_id == user.id
    return bool(n.recipient_role) and n.recipient_role == (user.role or "").lower()


@router.get("")
def list_notifications(
    is_read: Optional[bool] = None,
    type: Optional[str] = Query(None, pattern="^(" + "|".join(TYPES) + ")$"),
    category: Optional[str] = Query(None, pattern="^(" + "|".join(CATEGORIES) + ")$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = db.query(Notification).filter(_visible_to(user))
    if is_read is not None:
        q = q.filter(Notification.is_read.is_(is_read))
    if type:
        q = q.filter(Notification.type == type)
    if category:
        q = q.filter(Notification.category == category)

    items, pagination = paginate(q.order_by(Notification.created_at.desc(), Notification.id.desc()), page, limit)
    log.debug("Notifications for user %s (role %s): %d row(s)", user.id, user.role, len(items))
    return {"notifications": [n.to_dict() for n in items], "pagination": pagination}


@router.get("/unread/count")
def unread_count(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = db.query(Notification).filter(_visible_to(user), Notification.is_read.is_(False)).count()
    return {"unread_count": count}


@router.put("/read-all")
def mark_all_read(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    updated = (
        db.query(Notification)
        .filter(_visible_to(user), Notification.is_read.is_(False))
        .update({"is_read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return {"message": "All notifications marked as read", "updated_count": updated}


@router.get("/audit/all")
def audit_notifications(
    user_id: Optional[int] = None,
    recipient_role: Optional[str] = Query(None, pattern="^(" + "|".join(RECIPIENT_ROLES) + ")$"),
    category: Optional[str] = Query(None, pattern="^(" + "|".join(CATEGORIES) + ")$"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: User = Depends(is_admin),
):
    q = db.query(Notification)
    if user_id:
        q = q.filter(Notification.user_id == user_id)
    if recipient_role:
        q = q.filter(Notification.recipient_role == recipient_role)
    if category:
        q = q.filter(Notification.category == category)

    items, pagination = paginate(q.order_by(Notification.created_at.desc(), Notification.id.desc()), page, limit)
    return {"notifications": [n.to_dict() for n in items], "pagination": pagination}


@router.get("/{notification_id}")
def get_notification(notification_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = _get_notification(db, notification_id)
    if not _can_access(user, n):
        raise forbidden("You can only view your own notifications")
    return {"notification": n.to_dict()}


@router.put("/{notification_id}/read")
def mark_read(notification_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = _get_notification(db, notification_id)
    if not _can_access(user, n):
        raise forbidden("You can only mark your own notifications as read")
    n.is_read = True
    n.read_at = datetime.utcnow()
    db.commit()
    db.refresh(n)
    return {"message": "Notification marked as read", "notification": n.to_dict()}


@router.delete("/{notification_id}")
def delete_notification(notification_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = _get_notification(db, notification_id)
    if n.user_id != user.id:
        raise forbidden("You can only delete your own notifications")
    db.delete(n)
    db.commit()
    return {"message": "Notification deleted successfully"}


# ---------------- Real-time channel ----------------
@ws_router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: Optional[str] = None):
    # browsers opened from the server-rendered pages carry the JWT cookie instead
    token = token or websocket.cookies.get("session")
    payload = decode_jwt(token) if token else None
    if not payload:
        await websocket.close(code=1008)
        return

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == int(payload.get("user_id") or 0)).first()
    finally:
        db.close()
    if not user or not user.is_active:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    hub.connect(websocket, user.id, user.role)
    await websocket.send_json({"event": "connected", "data": {"user_id": user.id, "role": user.role}})
    try:
        while True:
            # clients only listen; reading keeps the socket alive and notices disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        log.info("Websocket for user %s disconnected", user.id)
    finally:
        hub.disconnect(websocket)
