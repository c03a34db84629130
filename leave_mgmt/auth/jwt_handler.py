# leave_mgmt/auth/jwt_handler.py
# Uses python-jose to create/verify JWTs (shared by the HTTP dependencies and the websocket)
from datetime import datetime, timedelta
from typing import Dict, Any, Optional

from jose import jwt, JWTError

from leave_mgmt import config


def create_access_token(payload: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    """
    Create a JWT token with an 'exp' claim.
    payload: a dict, e.g. {"sub": "4", "user_id": 4, "role": "employee"}
    """
    to_encode = payload.copy()
    minutes = expires_minutes if expires_minutes is not None else config.ACCESS_TOKEN_EXPIRE_MINUTES
    to_encode.update({"exp": datetime.utcnow() + timedelta(minutes=minutes)})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_jwt(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT token. Returns payload dict on success, otherwise None."""
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None


def token_for_user(user) -> str:
    return create_access_token({
        "sub": str(user.id),
        "user_id": user.id,
        "role": user.role,
        "name": user.full_name,
    })
