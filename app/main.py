from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.features.health.routes.health import router as health_router
from app.features.mail.routes.mail import router as mail_router
from app.features.waitlist.routes.waitlist import router as waitlist_router
from app.platform.cache.redis import create_redis
from app.platform.config import Settings, check_required_settings, get_settings
from app.platform.exceptions import add_exception_handlers
from app.platform.logger import get_logger, set_development_mode
from app.platform.services.email import ResendMailer
from app.platform.services.notion import NotionStore
from app.platform.utils.rate_limit import SlidingWindowRateLimiter

logger = get_logger(__name__)


def build_rate_limiter(settings: Settings) -> SlidingWindowRateLimiter:
    redis = None if settings.FORCE_IN_MEMORY_RATE_LIMITER else create_redis(settings.REDIS_URL)
    return SlidingWindowRateLimiter(
        limit=settings.MAIL_RATE_LIMIT,
        window_seconds=settings.MAIL_RATE_WINDOW_SECONDS,
        redis=redis,
        prefix="rl:mail",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    set_development_mode(settings.is_development)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        check_required_settings(settings)
        app.state.waitlist_store = NotionStore.from_settings(settings)
        app.state.mailer = ResendMailer.from_settings(settings)
        app.state.mail_rate_limiter = build_rate_limiter(settings)
        logger.info("Waitlist service started", extra={"source": "app", "context": {"environment": settings.ENVIRONMENT}})
        try:
            yield
        finally:
            await app.state.waitlist_store.close()
            await app.state.mail_rate_limiter.close()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Waitlist signups with referral codes, stored in Notion",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # Root endpoint for basic info
    @app.get("/", tags=["Info"])
    def root():
        return {
            "app_name": settings.APP_NAME,
            "description": "Marketing waitlist with referral links.",
            "version": "1.0.0",
            "docs_url": "/docs",
            "api_base": "/api",
        }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_exception_handlers(app)

    app.include_router(mail_router)
    app.include_router(waitlist_router)
    app.include_router(health_router)

    return app


app = create_app()
