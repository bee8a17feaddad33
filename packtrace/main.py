from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
import asyncio
import logging
import time

from .config import settings

# Configure logging
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

settings.validate()

# Import router after logging is configured
from .api_router import api_router
from . import database, init_db
from .exceptions import InternalError, LedgerError, RequestTimeout

app = FastAPI(
    title="Packaging Plant Traceability System",
    description="Material, production and sales ledger for a bag packaging plant",
)

# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message} {exc.context}")
    else:
        logger.warning(f"{exc.kind} on {request.method} {request.url.path}: {exc.message} {exc.context}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"VALIDATION ERROR on {request.method} {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "kind": "validation_error",
                "message": "Request validation failed",
                "details": jsonable_errors(exc),
            }
        }
    )

@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=InternalError("Database error").to_response())

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=InternalError("Internal server error").to_response())

def jsonable_errors(exc: RequestValidationError):
    """Field errors without the raw input values, which may not serialize"""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]

# ============================================================================
# MIDDLEWARE
# ============================================================================

async def enforce_timeout(request: Request, call_next):
    """
    Abort any request that runs longer than REQUEST_TIMEOUT_SECONDS.

    Sync handlers keep running in their worker thread after the 504, so
    the deadline also travels with the request: sessions from get_db roll
    back at commit time once it has passed.
    """
    request.state.deadline = time.monotonic() + settings.REQUEST_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error(
            f"Request {request.method} {request.url.path} timed out after {settings.REQUEST_TIMEOUT_SECONDS}s"
        )
        error = RequestTimeout(f"Request did not finish within {settings.REQUEST_TIMEOUT_SECONDS} seconds")
        return JSONResponse(status_code=error.status_code, content=error.to_response())

async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
    return response

# Last added runs first: requests are logged including the ones that time out
app.middleware("http")(enforce_timeout)
app.middleware("http")(log_requests)

cors_origins = settings.cors_origins()
logger.info(f"CORS origins: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)

@app.on_event("startup")
async def startup_event():
    """
    Initialize the database on startup.
    """
    logger.info("Initializing database...")
    try:
        # Create tables if they don't exist
        if database.engine is not None:
            from . import models
            models.Base.metadata.create_all(bind=database.engine)
            logger.info("Database tables created successfully")

            # Initialize default data
            init_db.init_db()
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}")

@app.get("/")
async def root():
    return {"message": "Packaging Plant Traceability API is Live"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
