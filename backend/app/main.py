"""
MediTrack Backend: pharmaceutical supply-chain tracking.

ARCHITECTURE:
- FastAPI: auth, role gating, custody state machine, public verification
- SQLAlchemy DB: source of truth for drugs, scan events and alerts
- Groq LLM: optional prose explanations, never authoritative

CUSTODY MODEL:
- created -> distributed -> in_pharmacy -> sold, any -> flagged
- Every transition appends one scan event in the same commit
- Every consumer verification appends one consumer event
- LLM unavailability never blocks a transition or a verification
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import auth, drugs, verify, alerts, assistant, analytics
from app.core.config import settings
from app.core.rate_limiter import RateLimitMiddleware
from app.db.init_db import init_db

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables and the bootstrap admin."""
    logger.info("Initializing database...")
    init_db()
    logger.info(
        f"Database initialized (strict custody transitions: {settings.CUSTODY_STRICT_TRANSITIONS}, "
        f"AI explanations: {'on' if settings.GROQ_API_KEY else 'fallback only'})"
    )
    yield


app = FastAPI(
    title="MediTrack API",
    description="Drug registration, custody tracking and public authenticity verification.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=600,
    expose_headers=["Content-Type", "Content-Disposition"],
)

app.add_middleware(RateLimitMiddleware)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.ENVIRONMENT == "production":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(drugs.router, prefix="/drugs", tags=["drugs"])
app.include_router(verify.router, prefix="/verify", tags=["verify"])
app.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
app.include_router(assistant.router, prefix="/assistant", tags=["assistant"])
app.include_router(analytics.router, prefix="/analytics", tags=["analytics"])


@app.get("/health")
def health():
    return {"status": "ok", "strict_custody": settings.CUSTODY_STRICT_TRANSITIONS}
