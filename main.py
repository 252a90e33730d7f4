import logging
import subprocess
import sys
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import click
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import EmailStr, TypeAdapter, ValidationError
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from skillforge.core.config import Settings, settings
from skillforge.core.database import Database
from skillforge.core.exceptions import AppException
from skillforge.core.init import initialize_application
from skillforge.core.limiter import custom_rate_limit_exceeded_handler, limiter
from skillforge.core.security import JWTManager, build_token_blacklist
from skillforge.routers import routes
from skillforge.schemas.common import FieldError
from skillforge.services.ai import AIUsageTracker, ChatHistory
from skillforge.utils.ai import AIService
from skillforge.utils.payment_gateway import PaymentGateway, StripeGateway
from skillforge.utils.response import error_response
from skillforge.utils.storage import ObjectStorage, S3Storage

# ============================================================================
# Directory Setup
# ============================================================================
BASE_DIR = Path(__file__).parent
LOG_FILE = BASE_DIR / settings.log_file
LOG_FILE.parent.mkdir(parents=True, exist_ok=True)


# ============================================================================
# Logging Configuration
# ============================================================================
def setup_logging():
    """Configure logging for the application."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] %(message)s"

    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(LOG_FILE, mode="a", encoding="utf-8"),
    ]

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers,
        force=True,
    )

    # Suppress verbose third-party logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = setup_logging()


# ============================================================================
# Application Lifespan
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    logger.info("=" * 80)
    logger.info("Starting application...")
    logger.info("=" * 80)

    try:
        initialize_application(app.state.db, app.state.config)
        logger.info("✓ Application startup completed successfully")
    except Exception as e:
        logger.error(f"✗ Failed during startup: {e}", exc_info=True)
        raise

    yield

    logger.info("=" * 80)
    logger.info("Shutting down application...")
    logger.info("=" * 80)
    await app.state.llm.close()
    logger.info("✓ Application shutdown completed")


# ============================================================================
# Exception Handlers
# ============================================================================
def _field_errors(errors) -> list:
    details = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        details.append(
            FieldError(
                field=".".join(loc),
                message=error.get("msg", "Invalid value"),
                code=error.get("type"),
            ).model_dump()
        )
    return details


async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, errors=exc.errors),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content=error_response("Validation failed", errors=_field_errors(exc.errors())),
    )


async def model_validation_exception_handler(request: Request, exc: ValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content=error_response("Validation failed", errors=_field_errors(exc.errors())),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    config: Settings = request.app.state.config
    return JSONResponse(
        status_code=500,
        content=error_response(
            "Internal server error",
            message=None if config.production else str(exc),
        ),
    )


# ============================================================================
# FastAPI Application
# ============================================================================
def create_app(
    config: Optional[Settings] = None,
    database: Optional[Database] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    storage: Optional[ObjectStorage] = None,
    language_model: Optional[AIService] = None,
) -> FastAPI:
    """
    Build the application with its stores and collaborators.

    Anything not passed in is created from the settings; tests pass fakes.
    """
    config = config or settings

    app = FastAPI(
        title=config.app_name,
        description=config.app_description,
        version=config.app_version,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
        debug=config.debug,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.db = database or Database()
    app.state.jwt_manager = JWTManager(config)
    app.state.token_blacklist = build_token_blacklist(config)
    app.state.payment_gateway = payment_gateway or StripeGateway(config)
    app.state.storage = storage or S3Storage(config)
    app.state.llm = language_model or AIService(config)
    app.state.ai_usage = AIUsageTracker(config.ai_cost_per_1k_tokens)
    app.state.chat_history = ChatHistory(config.ai_chat_history_size)
    app.state.limiter = limiter

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        return response

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # ------------------------------------------------------------------
    # Exception handlers
    # ------------------------------------------------------------------
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, model_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ------------------------------------------------------------------
    # Service endpoints
    # ------------------------------------------------------------------
    @app.get("/")
    async def root():
        """Root endpoint with basic application info."""
        return {
            "app_name": config.app_name,
            "version": config.app_version,
            "status": "healthy",
            "environment": "production" if config.production else "development",
        }

    @app.get("/health")
    @limiter.limit("10/minute")
    async def health_check(request: Request):
        db: Database = request.app.state.db
        return {
            "success": True,
            "status": "healthy",
            "timestamp": time.time(),
            "environment": "production" if config.production else "development",
            "version": config.app_version,
            "stores": {
                "users": len(db.users),
                "courses": len(db.courses),
                "payments": len(db.payments),
            },
        }

    @app.get("/api")
    async def api_info():
        return {
            "success": True,
            "name": config.app_name,
            "version": config.app_version,
            "description": config.app_description,
            "endpoints": {
                "auth": "/api/auth",
                "users": "/api/users",
                "courses": "/api/courses",
                "payments": "/api/payments",
                "ai": "/api/ai",
            },
        }

    for router in routes:
        app.include_router(router)

    logger.info(f"✓ Registered {len(routes)} routers")
    return app


app = create_app()


# ============================================================================
# CLI Commands
# ============================================================================
@click.group()
def cli():
    """Skill Forge API management CLI."""
    pass


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to run the server on")
@click.option("--reload", is_flag=True, help="Enable auto-reload (development only)")
def dev(host: str, port: int, reload: bool):
    """Run development server with Uvicorn."""
    logger.info("Starting development server...")
    logger.info(f"  - Host: {host}")
    logger.info(f"  - Port: {port}")
    logger.info(f"  - Reload: {reload}")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="debug",
        access_log=True,
    )


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to run the server on")
@click.option("--workers", default=1, help="Number of worker processes")
def prod(host: str, port: int, workers: int):
    """
    Run production server with Gunicorn.

    Stores live in process memory, so every worker holds its own copy.
    """
    if workers > 1:
        logger.warning("⚠️  Each worker keeps separate in-memory stores")

    logger.info("Starting production server with Gunicorn...")
    logger.info(f"  - Host: {host}")
    logger.info(f"  - Port: {port}")
    logger.info(f"  - Workers: {workers}")

    cmd = [
        "gunicorn",
        "main:app",
        "--worker-class",
        "uvicorn.workers.UvicornWorker",
        "--workers",
        str(workers),
        "--bind",
        f"{host}:{port}",
        "--access-logfile",
        "-",
        "--error-logfile",
        "-",
        "--log-level",
        "info",
        "--timeout",
        "120",
        "--graceful-timeout",
        "30",
        "--keep-alive",
        "5",
    ]

    try:
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"Gunicorn failed to start: {e}")
        raise click.ClickException(str(e))
    except FileNotFoundError:
        logger.error("Gunicorn not found. Install it with: pip install gunicorn")
        raise click.ClickException("Gunicorn not installed")


@cli.command()
def info():
    """Display application information."""
    click.echo(f"Application: {settings.app_name}")
    click.echo(f"Version: {settings.app_version}")
    click.echo(f"Debug Mode: {settings.debug}")
    click.echo(f"Production: {settings.production}")
    click.echo(f"Log File: {LOG_FILE.absolute()}")
    click.echo(f"Rate Limiting: {settings.rate_limit_enabled}")
    click.echo(f"Redis Token Blacklist: {settings.redis_enabled}")
    click.echo(f"AI Model: {settings.ai_model}")


@cli.command("create-admin")
@click.option("--email", prompt=True, help="Super admin email")
@click.option("--first-name", default="Super", help="Super admin first name")
@click.option("--last-name", default="Admin", help="Super admin last name")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Super admin password",
)
def create_admin(email: str, first_name: str, last_name: str, password: str):
    """
    Print the settings that bootstrap a super admin at startup.

    Stores are per-process, so the account is created by the server itself
    from these ADMIN_DEFAULT_* values.
    """
    try:
        email = TypeAdapter(EmailStr).validate_python(email)
    except ValidationError:
        raise click.BadParameter("Invalid email address", param_hint="--email")
    if len(password) < 6:
        raise click.BadParameter(
            "Password must be at least 6 characters", param_hint="--password"
        )

    click.echo("# Add these lines to your .env file")
    click.echo(f"ADMIN_DEFAULT_EMAIL={email}")
    click.echo(f"ADMIN_DEFAULT_FIRST_NAME={first_name}")
    click.echo(f"ADMIN_DEFAULT_LAST_NAME={last_name}")
    click.echo(f"ADMIN_DEFAULT_PASSWORD={password}")


if __name__ == "__main__":
    cli()
