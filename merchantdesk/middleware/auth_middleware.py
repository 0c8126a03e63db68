"""Authentication middleware: protects all routes except public paths."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from merchantdesk.models.base import session_scope
from merchantdesk.services import auth_service

# Paths that never require authentication
PUBLIC_PREFIXES = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/google",
    "/health",
    "/status",
    "/robots.txt",
    "/docs",
    "/openapi.json",
    "/redoc",
)

SESSION_COOKIE = "session_token"


def extract_token(request: Request) -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE)


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        if path == "/" or any(path.startswith(p) for p in PUBLIC_PREFIXES):
            return await call_next(request)

        token = extract_token(request)
        user = None
        if token:
            with session_scope() as db:
                user = auth_service.validate_session(db, token)

        if user:
            # Attach user to request state for downstream use
            request.state.user = user
            request.state.token = token
            return await call_next(request)

        return JSONResponse(
            status_code=401,
            content={"success": False, "detail": "Not authenticated"},
        )
