"""
iVisit Emergency Backend - FastAPI Application Entry Point

Emergency request lifecycle and concurrency controller for the iVisit app.
"""

from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.deps import SessionRegistry
from api.v1 import emergency
from core.config import settings
from core.database import AsyncSessionLocal, Base, engine
from core.logging import log_request_middleware, setup_logging
from core.redis import conn as redis_conn
from schemas.responses import StandardErrorResponse
from services.request_status_store import RequestNotFoundError
from services.visit_store import VisitNotFoundError

# Setup logging
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting iVisit Emergency Backend...")

    # Create database tables (for development)
    if settings.ENV == "development":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (development mode)")

    if getattr(app.state, "sessions", None) is None:
        app.state.sessions = SessionRegistry(AsyncSessionLocal, redis_conn)

    yield

    logger.info("Shutting down iVisit Emergency Backend...")


# Create FastAPI application
app = FastAPI(
    title="iVisit Emergency API",
    description="Emergency request lifecycle for ambulance requests and bed bookings",
    version=settings.VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.ENABLE_REQUEST_LOGGING:
    app.middleware("http")(log_request_middleware)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _error(status_code: int, message: str, detail: str = None) -> JSONResponse:
    body = StandardErrorResponse(message=message, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation exceptions."""
    logger.error(
        f"Validation Exception: {exc.errors()} | "
        f"Path: {request.url.path} | "
        f"Method: {request.method} | "
        f"Client: {_client_host(request)}"
    )
    user_message = exc.errors()[0].get("msg", "Invalid input data")
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, user_message, str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error(
        f"HTTP Exception: {exc.detail} | "
        f"Path: {request.url.path} | "
        f"Method: {request.method} | "
        f"Client: {_client_host(request)}"
    )
    return _error(exc.status_code, exc.detail, str(exc))


@app.exception_handler(RequestNotFoundError)
@app.exception_handler(VisitNotFoundError)
async def record_not_found_handler(request: Request, exc: LookupError):
    """A request or visit vanished between the read and the write."""
    logger.warning(
        f"Emergency record not found: {exc} | "
        f"Path: {request.url.path} | "
        f"Method: {request.method}"
    )
    return _error(status.HTTP_404_NOT_FOUND, "Emergency record not found", str(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Server Exception: {exc} | "
        f"Path: {request.url.path} | "
        f"Method: {request.method} | "
        f"Client: {_client_host(request)}"
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc))


@app.get("/")
async def health_check():
    return {"success": True, "message": f"{settings.APP_NAME} is running", "version": settings.VERSION}


# Include API routers
app.include_router(emergency.router, prefix="/api/v1/emergency", tags=["Emergency"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
