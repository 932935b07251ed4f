"""FastAPI application entrypoint. No business logic; only wiring, logging and error mapping."""

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gatekeeper.api.v1 import router as v1_router
from gatekeeper.core.config import settings
from gatekeeper.core.errors import StorageUnavailableError
from gatekeeper.core.security import dummy_password_hash

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

# Build the unknown-user comparison hash now so no login request pays for it.
dummy_password_hash()

app = FastAPI(
    title="Gatekeeper API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(
    request: Request, exc: StorageUnavailableError
) -> JSONResponse:
    """Storage failures are surfaced as 503 so callers can apply their own retry policy."""
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage unavailable"},
    )


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Gatekeeper API"}
