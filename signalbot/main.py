import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from signalbot import __version__
from signalbot.config import settings
from signalbot.database import init_db
from signalbot.exceptions import AppError, ExecutionError
from signalbot.routers import webhook_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SignalBot", version=__version__)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook_router.router)


def app_error_body(exc: AppError) -> dict:
    body = {"error": exc.message}
    if isinstance(exc, ExecutionError):
        body["kind"] = exc.kind
        body["retryable"] = exc.retryable
    return body


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=app_error_body(exc))


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.on_event("startup")
async def startup_event():
    logger.info("Initializing database...")
    await init_db()
    disabled = ", ".join(sorted(settings.get_disabled_exchanges())) or "none"
    logger.info(f"Startup complete (disabled exchanges: {disabled})")
