import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import get_settings
from app.deps import aclose_clients, build_scheduler
from app.routers.emails import router as emails_router
from app.routers.scrape import limiter, router as scrape_router
from app.routers.submissions import router as submissions_router
from app.routers.sync import router as sync_router

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": "INFO", "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the Airtable sync timer on startup; on shutdown stop it and close the HTTP clients."""
    scheduler = build_scheduler(settings) if settings.sync_enabled else None
    app.state.sync_scheduler = scheduler
    if scheduler is not None:
        scheduler.start()
    else:
        logger.info("Airtable sync scheduler disabled or not configured")
    yield
    # A manual sync may have built a scheduler after startup.
    scheduler = getattr(app.state, "sync_scheduler", None)
    if scheduler is not None:
        await scheduler.stop()
    await aclose_clients()


app = FastAPI(
    title=settings.app_name,
    description="Scrapes websites, generates directory-listing metadata, mirrors submissions to Airtable, and sends status emails.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(scrape_router)
app.include_router(sync_router)
app.include_router(submissions_router)
app.include_router(emails_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Directory Submission API is running"}


@app.get("/health", summary="Health check")
async def health() -> dict:
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
