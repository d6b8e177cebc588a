"""
Main FastAPI Application Entry Point
Expense approval workflow service
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
import time

from expenseflow.config.settings import settings
from expenseflow.config.database import engine, Base
from expenseflow.utils.exceptions import ExpenseFlowError, ExternalServiceError
from expenseflow.utils.logger import setup_logger
from expenseflow.middleware.logging_middleware import LoggingMiddleware
import expenseflow.models  # noqa: F401  registers tables on Base.metadata

# Import routes
from expenseflow.routes import auth, expense, approval, admin, currency

# Setup logger
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for application startup and shutdown
    """
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")
    except Exception as e:
        logger.error(f"Failed to create database tables: {str(e)}")
        raise

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Expense claims with configurable multi-step approval workflows",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)


# Exception handlers
@app.exception_handler(ExpenseFlowError)
async def domain_exception_handler(request: Request, exc: ExpenseFlowError):
    """Render domain errors with their own status code"""
    logger.warning(f"{exc.error} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message,
            "error": exc.error
        }
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Data-store failures outside a unit of work (plain reads)"""
    logger.opt(exception=exc).error(f"Data store failure on {request.method} {request.url.path}")
    return await domain_exception_handler(request, ExternalServiceError("Data store operation failed"))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Validation error",
            "error": "validation_error",
            "errors": jsonable_encoder(exc.errors())
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.opt(exception=exc).error(f"Unhandled exception on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Internal server error",
            "detail": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": time.time()
    }


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(expense.router, prefix="/api/expenses", tags=["Expenses"])
app.include_router(approval.router, prefix="/api/approvals", tags=["Approvals"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(currency.router, prefix="/api/currency", tags=["Currency"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "expenseflow.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
