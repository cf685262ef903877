import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from prompt_manager.config import settings
from prompt_manager.database import Base, engine
from prompt_manager.exceptions import NotFoundError, PartialFailure, StoreUnavailable, ValidationError
from prompt_manager.logging import logger
from prompt_manager.models import folder, item, user  # noqa: F401  (register tables)
from prompt_manager.routers import auth, folders, items, search, share, tools
from prompt_manager.services.change_feed import ChangeFeed
from prompt_manager.utils.redis import redis_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    app.state.change_feed = ChangeFeed(redis=redis_client if settings.CHANGE_FEED_REDIS else None)
    relay = None
    if settings.CHANGE_FEED_REDIS:
        relay = asyncio.create_task(app.state.change_feed.relay())
    logger.info("Application startup complete")

    yield

    if relay is not None:
        relay.cancel()
        await asyncio.gather(relay, return_exceptions=True)
    await app.state.change_feed.drain()
    logger.info("Application shutdown")


app = FastAPI(
    title="Prompt Manager",
    description="Prompts and website bookmarks organised in folders, with search and sharing",
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,  # Only show docs in debug mode
    redoc_url="/api/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

logger.info(f"Server starting... Version: {settings.APP_VERSION}, Debug: {settings.DEBUG}")

allowed_origins = [
    "http://localhost:3000",          # web client dev server
    "http://localhost:8000",          # FastAPI dev server
]

if settings.CORS_ORIGINS:
    allowed_origins.extend(settings.CORS_ORIGINS.split(","))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    log_dict = {
        "request": {
            "url": str(request.url),
            "method": request.method,
        }
    }
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    log_dict["status"] = response.status_code
    log_dict["process Time"] = process_time
    logger.info(log_dict)
    return response


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable, please retry."})


@app.exception_handler(PartialFailure)
async def partial_failure_handler(request: Request, exc: PartialFailure):
    logger.warning("Partial failure on %s %s: %s (failed: %s)", request.method, request.url.path, exc, exc.failed)
    return JSONResponse(
        status_code=207,
        content=jsonable_encoder({"detail": str(exc), "partial": True, "failed": exc.failed, "result": exc.result}),
    )


# Register all API routers
app.include_router(auth.router)
app.include_router(folders.router)
app.include_router(items.router)
app.include_router(search.router)
app.include_router(share.router)
app.include_router(tools.router)

# Health check endpoint
@app.get("/health")
async def root():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "message": "Prompt Manager API is running"
    }
