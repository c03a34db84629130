# leave_mgmt/main.py
import logging
import pathlib

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from leave_mgmt import config
from leave_mgmt.database import init_db
from leave_mgmt.errors import validation_details

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# Create app immediately (safer for circular imports)
app = FastAPI(title="Leave Management Portal")

# ---------------------------------------------------------------------
# Import routers AFTER app creation
# ---------------------------------------------------------------------
from leave_mgmt.auth.login import router as auth_router  # noqa: E402
from leave_mgmt.pages_router import router as pages_router  # noqa: E402
from leave_mgmt.users.router import router as users_router  # noqa: E402
from leave_mgmt.leaves.router import router as leaves_router  # noqa: E402
from leave_mgmt.balances.router import router as admin_balance_router, employee_router as balance_router  # noqa: E402
from leave_mgmt.notifications.router import router as notifications_router, ws_router  # noqa: E402
from leave_mgmt.audit.router import router as audit_router  # noqa: E402

# -------------------- Middleware & static files --------------------
BASE_DIR = pathlib.Path(__file__).resolve().parent

# the JWT cookie is called "session", so the server-side session gets its own name
app.add_middleware(
    SessionMiddleware,
    secret_key=config.SESSION_SECRET,
    session_cookie="lm_session",
    https_only=False,
    same_site="lax",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

static_dir = BASE_DIR / "static"
if static_dir.is_dir():
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

UPLOAD_ROOT = pathlib.Path(config.UPLOAD_PATH)
UPLOAD_ROOT.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_ROOT)), name="uploads")


# -------------------- Error mapping --------------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": {
            "error": "Validation Error",
            "message": "Please check your input data",
            "details": validation_details(exc.errors()),
        }},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": {"error": "Internal Server Error", "message": "An unexpected error occurred"}},
    )


# ------------------- Routers -------------------
app.include_router(auth_router)
app.include_router(pages_router)
app.include_router(users_router)
app.include_router(leaves_router)
app.include_router(admin_balance_router)
app.include_router(balance_router)
app.include_router(notifications_router)
app.include_router(ws_router)
app.include_router(audit_router)


@app.get("/")
def home():
    return RedirectResponse("/dashboard")


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.on_event("startup")
def _startup():
    init_db()
    log.info("Leave Management Portal started (database: %s)", config.DATABASE_URL.split("@")[-1])
