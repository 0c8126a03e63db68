"""
MerchantDesk
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from contextlib import asynccontextmanager

from merchantdesk.config import get_settings
from merchantdesk.utils.logger import log
from merchantdesk import __version__

from merchantdesk.api import accounts, auth, email_mappings, google_auth, health, merchant
from merchantdesk.middleware.auth_middleware import AuthMiddleware

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Bootstrap the service-account key from env vars (for Render / PaaS)
    from merchantdesk.utils.credentials import bootstrap_credentials
    bootstrap_credentials()

    try:
        from merchantdesk.models.base import init_db, session_scope
        init_db()
        log.info("Database initialized")

        from merchantdesk.services import auth_service
        with session_scope() as db:
            auth_service.seed_initial_user(db)
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    scheduler_started = False
    if settings.enable_scheduler:
        try:
            from merchantdesk.scheduler import start_scheduler
            start_scheduler()
            scheduler_started = True
        except Exception as e:
            log.error(f"Scheduler startup error: {str(e)}")

    yield

    if scheduler_started:
        from merchantdesk.scheduler import stop_scheduler
        stop_scheduler()
    log.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Google Merchant Center account dashboard API

    - Email/password and Google sign-in
    - Automatic discovery of the Merchant Center accounts a user can see
    - Product catalog merged with approval statuses, searchable and paginated
    - LLM rewrite of product titles and descriptions
    """,
    lifespan=lifespan
)

# Session-based authentication middleware
app.add_middleware(AuthMiddleware)

# CORS is added last so it wraps auth and also decorates 401 responses
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(google_auth.router)
app.include_router(accounts.router)
app.include_router(email_mappings.router)
app.include_router(merchant.router)


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    """Block all crawlers"""
    return "User-agent: *\nDisallow: /\n"


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "register": "POST /api/auth/register",
            "login": "POST /api/auth/login",
            "verify": "GET /api/auth/verify",
            "google_login": "GET /api/auth/google",
            "merchant_accounts": "GET /api/auth/merchant-accounts",
            "select_account": "POST /api/auth/select-account",
            "accounts": "GET /api/accounts",
            "sync_accounts": "POST /api/accounts/sync",
            "switch_account": "POST /api/accounts/{id}/switch",
            "email_mappings": "GET /api/email-mappings",
            "products": "GET /api/merchant/products",
            "stats": "GET /api/merchant/stats",
            "optimize_product": "POST /api/merchant/products/{product_id}/optimize",
            "optimize_text": "POST /api/merchant/optimize",
            "refresh_catalog": "POST /api/merchant/refresh",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "merchantdesk.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=settings.api_workers if not settings.debug else 1
    )
