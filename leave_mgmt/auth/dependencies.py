# leave_mgmt/auth/dependencies.py
from typing import Dict, Any, Optional, Callable, Iterable
import logging

from fastapi import Header, HTTPException, Depends, Request
from sqlalchemy.orm import Session

from leave_mgmt.auth.jwt_handler import decode_jwt
from leave_mgmt.database import get_db
from leave_mgmt.users.models import User, APPROVER_ROLES

logger = logging.getLogger(__name__)


# -------------------------------------------
# Helper: Extract Bearer token safely
# -------------------------------------------
def _extract_bearer(auth_header: Optional[str]) -> Optional[str]:
    """
    Extract bearer token from Authorization header.
    Returns None if header missing or malformed.
    """
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


# -------------------------------------------
# JWT header, then JWT cookie, then server session
# -------------------------------------------
def get_current_user_payload_or_session(
    request: Request,
    authorization: Optional[str] = Header(None)
) -> Dict[str, Any]:
    """
    Tries, in order:
      1) Authorization: Bearer <token>
      2) Cookie named 'session' holding the same JWT (set by the login page)
      3) Server-side request.session (SessionMiddleware)
    Returns payload dict or raises 401 if none valid.
    """
    token = _extract_bearer(authorization)
    if token:
        payload = decode_jwt(token)
        if payload:
            logger.debug("Authenticated via JWT header: user_id=%s", payload.get("user_id"))
            return payload
        # an explicit but bad bearer token is never rescued by the cookie
        raise HTTPException(status_code=401, detail={"error": "Invalid Token", "message": "Invalid or expired token"})

    cookie_token = request.cookies.get("session")
    if cookie_token:
        payload = decode_jwt(cookie_token)
        if payload:
            logger.debug("Authenticated via JWT cookie: user_id=%s", payload.get("user_id"))
            return payload
        logger.warning("Invalid/expired cookie token, falling back to server session...")

    session_data = request.scope.get("session")
    if session_data and session_data.get("user_id"):
        return {
            "user_id": int(session_data["user_id"]),
            "role": session_data.get("role", "employee"),
            "name": session_data.get("name", ""),
        }

    raise HTTPException(status_code=401, detail={"error": "Access Denied", "message": "Not authenticated. Please login."})


# -------------------------------------------
# Resolve payload -> real DB user (single source of truth)
# -------------------------------------------
def get_current_user(
    payload: Dict[str, Any] = Depends(get_current_user_payload_or_session),
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the payload to the database user; the role stored on the row wins
    over whatever the token claims.
    """
    user_id = payload.get("user_id") or payload.get("sub") or payload.get("id")
    try:
        uid = int(user_id)
    except (ValueError, TypeError):
        raise HTTPException(status_code=401, detail={"error": "Invalid Token", "message": "Invalid user id in token"})

    user = db.query(User).filter(User.id == uid).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail={"error": "Invalid Token", "message": "User not found or inactive"})
    return user


# -------------------------------------------
# Role check that returns the user object
# Usage: Depends(require_role(["admin"]))
# -------------------------------------------
def require_role(allowed_roles: Iterable[str]) -> Callable:
    allowed = [str(r).lower() for r in allowed_roles]

    def dependency(user: User = Depends(get_current_user)) -> User:
        if str(user.role or "").lower() not in allowed:
            logger.warning("Role check failed: user.id=%s role=%s allowed=%s", user.id, user.role, allowed)
            raise HTTPException(status_code=403, detail={
                "error": "Access Denied",
                "message": "Insufficient role for this action",
            })
        return user
    return dependency


is_manager_or_hr = require_role(APPROVER_ROLES)
is_hr_or_admin = require_role(["hr", "admin"])
is_admin = require_role(["admin"])
