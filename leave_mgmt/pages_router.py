# leave_mgmt/pages_router.py

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse

from leave_mgmt.auth.dependencies import get_current_user_payload_or_session
from leave_mgmt.auth.login import templates
from leave_mgmt.users.models import APPROVER_ROLES

router = APIRouter()


def _page_payload(request: Request) -> Optional[Dict[str, Any]]:
    try:
        return get_current_user_payload_or_session(request, request.headers.get("authorization"))
    except HTTPException:
        return None


# -----------------------------
# Dashboard (every role)
# -----------------------------
@router.get("/dashboard")
def dashboard(request: Request):
    payload = _page_payload(request)
    if not payload:
        return RedirectResponse("/login", status_code=302)

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "name": payload.get("name", ""),
            "role": payload.get("role", ""),
            "is_approver": payload.get("role") in APPROVER_ROLES,
        },
    )


# -----------------------------
# Leave review (manager / hr / admin)
# -----------------------------
@router.get("/leaves/review")
def leave_review(request: Request):
    payload = _page_payload(request)
    if not payload:
        return RedirectResponse("/login", status_code=302)
    if payload.get("role") not in APPROVER_ROLES:
        raise HTTPException(status_code=403, detail={
            "error": "Access Denied",
            "message": "Managers, HR and admins only",
        })

    return templates.TemplateResponse(
        request,
        "leave_review.html",
        {
            "name": payload.get("name", ""),
            "role": payload.get("role", ""),
        },
    )
