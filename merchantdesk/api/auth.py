"""Authentication API: register, login, logout, session verification, users."""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from merchantdesk.api.deps import require_admin, require_user
from merchantdesk.middleware.auth_middleware import SESSION_COOKIE
from merchantdesk.models.base import get_db
from merchantdesk.models.user import User
from merchantdesk.services import auth_service
from merchantdesk.services.account_sync_service import sync_user_accounts
from merchantdesk.config import get_settings
from merchantdesk.utils.logger import log

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────

class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


def user_out(u: User) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "google_picture": u.google_picture,
        "selected_account": u.selected_account_id,
        "is_active": u.is_active,
        "created_at": u.created_at.isoformat() if u.created_at else None,
        "last_login": u.last_login.isoformat() if u.last_login else None,
    }


def session_response(db: Session, user: User, message: str, status_code: int = 200) -> JSONResponse:
    """Issue a session token and return it in the body and as a cookie."""
    settings = get_settings()
    token = auth_service.create_session(db, user.id)
    db.refresh(user)
    response = JSONResponse(
        status_code=status_code,
        content={"success": True, "message": message, "token": token, "user": user_out(user)},
    )
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=settings.environment != "development",
        samesite="lax",
        max_age=60 * 60 * settings.session_duration_hours,
        path="/",
    )
    return response


async def _sync_quietly(db: Session, user: User) -> None:
    result = await sync_user_accounts(db, user)
    if not result.get("success"):
        log.warning(f"Account sync after sign-in failed for {user.email}: {result.get('message')}")


# ── Auth endpoints ───────────────────────────────────────

@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: Session = Depends(get_db)):
    """Create an email/password account and sign it in."""
    try:
        user = auth_service.register_user(db, body.name, body.email, body.password)
    except auth_service.EmailAlreadyRegistered as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except auth_service.RegistrationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    await _sync_quietly(db, user)
    return session_response(db, user, "User registered successfully", status_code=201)


@router.post("/login")
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return a session token."""
    user = auth_service.authenticate(db, body.email, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    await _sync_quietly(db, user)
    return session_response(db, user, "Login successful")


@router.get("/verify")
async def verify(user: User = Depends(require_user), db: Session = Depends(get_db)):
    """Return the user behind the presented token."""
    fresh = db.get(User, user.id)
    return {"success": True, "user": user_out(fresh or user)}


@router.post("/logout")
async def logout(request: Request, db: Session = Depends(get_db)):
    """Clear session and cookie."""
    token = getattr(request.state, "token", None)
    if token:
        auth_service.delete_session(db, token)
    response = JSONResponse(content={"success": True})
    response.delete_cookie(SESSION_COOKIE, path="/")
    return response


@router.get("/users")
async def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """List all users (admins only)."""
    users = db.query(User).order_by(User.created_at, User.id).all()
    return {"success": True, "users": [user_out(u) for u in users]}
