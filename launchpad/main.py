import json
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from launchpad.api.router import router as ai_router
from launchpad.api.routes import router as marketplace_router
from launchpad.config import get_settings
from launchpad.database.database import init_db
from launchpad.exceptions import LaunchPadError
from launchpad.notifications.mirror_notifier import dispatch_pending
from launchpad.storage.supabase import initialize_supabase

settings = get_settings()

# Configure basic logging for structured output
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s"
)

if settings.enable_cloud_logging:
    import google.cloud.logging

    client = google.cloud.logging.Client()
    default_handler = client.get_default_handler()
    default_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    logging.getLogger().addHandler(default_handler)
    client.setup_logging()

logger = logging.getLogger(__name__)

app = FastAPI(title="LaunchPad API")

# CORS: in production, restrict allowed_origins as needed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(json.dumps({
        "event": "request_received",
        "method": request.method,
        "url": str(request.url)
    }))
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(json.dumps({
            "event": "request_error",
            "error": str(e)
        }), exc_info=True)
        raise e
    logger.info(json.dumps({
        "event": "request_completed",
        "status_code": response.status_code,
        "url": str(request.url)
    }))
    return response


app.include_router(ai_router, prefix="/api", tags=["AI"])
app.include_router(marketplace_router, prefix="/api", tags=["Marketplace"])


@app.get("/health")
def health_check():
    logger.info("Health check endpoint accessed")
    return {"status": "ok"}

# ------------------------------------------------------------------
# Exception Handlers
# ------------------------------------------------------------------

@app.exception_handler(LaunchPadError)
async def launchpad_exception_handler(request: Request, exc: LaunchPadError):
    if exc.status_code >= 500:
        logger.error("%s for %s: %s", exc.code, request.url, exc.message)
    else:
        logger.warning("%s for %s: %s", exc.code, request.url, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code}
    )


@app.exception_handler(FastAPIHTTPException)
async def http_exception_handler(request: Request, exc: FastAPIHTTPException):
    if exc.status_code == 404:
        logger.warning("HTTP 404 for %s: %s", request.url, exc.detail)
    else:
        logger.error("HTTPException for %s: %s", request.url, exc.detail, exc_info=True)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception for %s: %s", request.url, str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"}
    )


@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info("Database initialized.")

    initialize_supabase()
    dispatch_pending()

    logger.info(f"MAX_UPLOAD_SIZE_MB is set to {settings.max_upload_size_mb}")
    logger.info(f"PITCH_DECK_BUCKET is set to {settings.pitch_deck_bucket}")
    logger.info("Application startup complete.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown complete.")
