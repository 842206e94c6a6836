import logging
import sys
from contextlib import asynccontextmanager

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from hydration.api.v1 import auth, notifications, scheduler, users, water
from hydration.config import settings
from hydration.db.session import init_db
from hydration.services.engine import build_reminder_engine
from prometheus_client import make_asgi_app


def configure_logging() -> None:
    # Reminder loggers print to stdout so ticks and deliveries show in the terminal
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("hydration").setLevel(logging.DEBUG if settings.debug else logging.INFO)


configure_logging()
logger = logging.getLogger("hydration.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_jwt_config()
    await init_db()

    engine = build_reminder_engine()
    app.state.reminders = engine
    if not engine.transport.is_configured:
        logger.warning(
            "VAPID keys not configured: push reminders are disabled. "
            "Generate with: python scripts/notifications.py generate-vapid"
        )
    if settings.scheduler_autostart:
        engine.scheduler.start()
    try:
        yield
    finally:
        await engine.scheduler.aclose()
        app.state.reminders = None


limiter = Limiter(key_func=get_remote_address, default_limits=["200/minute"])

app = FastAPI(
    title="Hydration Reminder API",
    description="Water-intake reminders: preferences, Web Push subscriptions, scheduler controls",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")
app.include_router(scheduler.router, prefix="/api/v1")
app.include_router(water.router, prefix="/api/v1")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    engine = getattr(request.app.state, "reminders", None)
    return {
        "status": "ok",
        "scheduler": engine.scheduler.mode.value if engine and engine.scheduler.mode else None,
        "push_configured": bool(engine and engine.transport.is_configured),
    }
