# leave_mgmt/errors.py
from typing import Any

from fastapi import HTTPException, status


def api_error(status_code: int, error: str, message: str, **extra: Any) -> HTTPException:
    """
    Build an HTTPException whose body is {"detail": {"error", "message", ...}}.
    Callers `raise api_error(...)`.
    """
    detail = {"error": error, "message": message}
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


def bad_request(error: str, message: str, **extra: Any) -> HTTPException:
    return api_error(status.HTTP_400_BAD_REQUEST, error, message, **extra)


def forbidden(message: str) -> HTTPException:
    return api_error(status.HTTP_403_FORBIDDEN, "Access Denied", message)


def not_found(error: str, message: str) -> HTTPException:
    return api_error(status.HTTP_404_NOT_FOUND, error, message)


def conflict(error: str, message: str, **extra: Any) -> HTTPException:
    return api_error(status.HTTP_409_CONFLICT, error, message, **extra)


def validation_details(errors) -> list:
    """Flatten pydantic errors into [{"field", "message", "type"}]."""
    details = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        details.append({
            "field": ".".join(loc),
            "message": err.get("msg", ""),
            "type": err.get("type", ""),
        })
    return details
