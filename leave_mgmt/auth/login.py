# leave_mgmt/auth/login.py

import logging
import os

from fastapi import APIRouter, Form, Request, Depends, HTTPException
from fastapi.responses import RedirectResponse, HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash

from leave_mgmt.audit.logger import AuditLogger
from leave_mgmt.auth.dependencies import get_current_user
from leave_mgmt.auth.jwt_handler import token_for_user
from leave_mgmt.database import get_db
from leave_mgmt.users.models import User
from leave_mgmt.users.schemas import serialize_user

log = logging.getLogger(__name__)

router = APIRouter()

# Robust templates path relative to this file (avoids cwd issues)
TEMPLATES_DIR = os.path.normpath(os.path.join(os.path.dirname(__file__), "..", "templates"))
templates = Jinja2Templates(directory=TEMPLATES_DIR)


class LoginRequest(BaseModel):
    email: str
    password: str


def authenticate(db: Session, email: str, password: str):
    """Return the active user whose password matches, else None."""
    email = (email or "").strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not user.is_active or not user.password_hash:
        return None
    if not check_password_hash(user.password_hash, password or ""):
        return None
    return user


# ---------------- API login (bearer token) ----------------
@router.post("/api/auth/login")
def api_login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = authenticate(db, payload.email, payload.password)
    if not user:
        log.info("Failed login for %s", payload.email)
        AuditLogger.log_authentication(db, None, "login", False, request, {"email": payload.email})
        raise HTTPException(status_code=401, detail={
            "error": "Authentication Failed",
            "message": "Invalid email or password.",
        })

    AuditLogger.log_authentication(db, user.id, "login", True, request)
    return {"token": token_for_user(user), "user": serialize_user(user)}


@router.get("/api/auth/me")
def read_me(user: User = Depends(get_current_user)):
    return {"user": serialize_user(user)}


# ---------------- Page login (cookie + server session) ----------------
@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request):
    return templates.TemplateResponse(request, "login.html", {})


@router.post("/login")
def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db)
):
    user = authenticate(db, email, password)
    if not user:
        AuditLogger.log_authentication(db, None, "login", False, request, {"email": email})
        return templates.TemplateResponse(
            request, "login.html", {"error": "Invalid email or password."}, status_code=401
        )

    AuditLogger.log_authentication(db, user.id, "login", True, request)
    jwt_token = token_for_user(user)

    request.session["user_id"] = user.id
    request.session["role"] = user.role
    request.session["name"] = user.full_name

    resp = RedirectResponse(url="/dashboard", status_code=303)
    resp.set_cookie(
        key="session",
        value=jwt_token,
        httponly=True,
        secure=False,      # True only if HTTPS
        samesite="lax",
        path="/"
    )
    return resp


def _make_logout_response():
    resp = RedirectResponse(url="/login", status_code=303)
    resp.delete_cookie("session", path="/")
    return resp


@router.get("/logout")
@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return _make_logout_response()
