"""
Taskflow Backend - FastAPI Application
Main entry point with auth routes configured.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError

from taskflow.config import settings
from taskflow.database import init_db
from taskflow.core.exceptions import TaskflowException, TokenIssueError
from taskflow.schemas.common import HealthResponse

# Import API routers
from taskflow.api import auth

# Import models to ensure they are registered with SQLModel
from taskflow.models import User, AuthToken

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    await init_db()
    yield
    # Shutdown


def create_app(run_migrations: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Task board API: authentication sessions and tokens",
        version=VERSION,
        lifespan=lifespan if run_migrations else None
    )

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TaskflowException)
    async def taskflow_exception_handler(request: Request, exc: TaskflowException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(SQLAlchemyError)
    async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Storage failure on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.exception_handler(TokenIssueError)
    async def token_issue_exception_handler(request: Request, exc: TokenIssueError):
        logger.exception(f"Token issuance failed on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.include_router(auth.router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {
            "message": f"{settings.APP_NAME} is running",
            "version": VERSION,
            "docs": "/docs"
        }

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Detailed health check."""
        return HealthResponse(status="healthy", version=VERSION)

    return app


app = create_app()
