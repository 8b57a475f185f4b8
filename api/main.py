"""
FastAPI application for the CandiDash auth server.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.auth import router as auth_router
from api.totp import router as totp_router
from api.users import router as users_router
from auth.dependencies import get_cleanup_service, get_totp_crypto
from config import Config

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Validate configuration on startup
Config.validate()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown: check the TOTP key, run registration cleanup in the background."""
    # Raises RuntimeError or ValueError when TOTP_ENCRYPTION_KEY is missing or malformed
    get_totp_crypto()
    cleanup_task = asyncio.create_task(get_cleanup_service().run_forever())
    logger.info("Auth server started (%s)", Config.ENVIRONMENT)
    yield
    cleanup_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await cleanup_task


app = FastAPI(
    title="CandiDash Auth API",
    description="Authentication, session and two-factor API for job-application tracking",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(totp_router, prefix="/api/v1/auth/totp", tags=["totp"])
app.include_router(users_router, prefix="/api/v1/accounts", tags=["accounts"])


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
