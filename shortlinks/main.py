"""
Shortlinks — self-hosted URL shortener.
Main application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shortlinks.api.admin import router as admin_router
from shortlinks.api.auth import router as auth_router
from shortlinks.api.links import router as links_router
from shortlinks.api.redirect import router as redirect_router
from shortlinks.config import get_settings
from shortlinks.core.allocator import CodeAllocator
from shortlinks.core.codes import CodePool, CodeSpace
from shortlinks.core.links import LinkStore
from shortlinks.core.resolver import AnalyticsCapture, RedirectResolver
from shortlinks.core.sessions import SessionTokenStore
from shortlinks.core.users import UserStore
from shortlinks.middleware.security import SecurityHeadersMiddleware
from shortlinks.models.database import build_engine, build_session_maker, create_tables

import structlog

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("shortlinks_starting", domain=settings.domain)

        engine = build_engine(settings)
        await create_tables(engine)
        session_maker = build_session_maker(engine)

        # A corrupt pool raises PersistenceError here and startup aborts
        pool = CodePool(settings.codes_file, CodeSpace(settings.code_alphabet, settings.code_length))
        pool.initialize()

        links = LinkStore(session_maker)
        users = UserStore(session_maker, issuer=settings.totp_issuer)

        app.state.pool = pool
        app.state.links = links
        app.state.users = users
        app.state.allocator = CodeAllocator(pool, links)
        app.state.resolver = RedirectResolver(links, AnalyticsCapture.from_settings(settings))
        app.state.sessions = SessionTokenStore()

        # An SL_ADMIN_PASSWORD over 72 bytes raises PasswordTooLong and startup aborts
        uri = await users.bootstrap_admin(settings.admin_username, settings.admin_password)
        if uri:
            logger.warning("admin_account_created", username=settings.admin_username,
                           provisioning_uri=uri,
                           hint="add this URI to an authenticator app, then change the password")

        yield

        await engine.dispose()
        logger.info("shortlinks_shutting_down")

    app = FastAPI(
        title="Shortlinks",
        description="Self-hosted URL shortener.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    # Security headers on every response
    app.add_middleware(SecurityHeadersMiddleware)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "shortlinks", "codes_remaining": app.state.pool.remaining}

    # --- Routes ---
    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(links_router)
    # catch-all /{code}, keep last
    app.include_router(redirect_router)

    return app


app = create_app()
