"""
Main FastAPI application
Style Studio: style extraction and batch marketing image generation
"""
from contextlib import asynccontextmanager
import logging
import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
from stylestudio.config.settings import settings
from stylestudio.database import init_db
from stylestudio.api import auth, concepts, endpoints, prompts, style_lab
from stylestudio.api.dependencies import get_storage
from stylestudio.api.schemas import ErrorResponse

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ROUTERS = (
    (auth.router, "Auth"),
    (endpoints.router, "Generation"),
    (style_lab.router, "Style Lab"),
    (concepts.router, "Concepts"),
    (prompts.router, "Prompts"),
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=LOG_FORMAT,
    handlers=[logging.StreamHandler(), logging.FileHandler(settings.LOG_FILE)]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, the scratch directory and the bootstrap admin"""
    logger.info(f"Starting Style Studio with {settings.STORAGE_BACKEND} storage...")
    if settings.STORAGE_BACKEND == "database":
        try:
            await init_db()
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise
        logger.info("Database initialized successfully")
    os.makedirs(settings.TEMP_DIR, exist_ok=True)

    # Tests swap the storage through dependency overrides
    storage = app.dependency_overrides.get(get_storage, get_storage)()
    await auth.ensure_admin_user(storage)
    yield
    logger.info("Style Studio stopped")


async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    body = ErrorResponse(error="Internal Server Error", detail=str(exc), code="INTERNAL_ERROR")
    return JSONResponse(status_code=500, content=body.model_dump())


def create_app() -> FastAPI:
    """Build the application with every router mounted under /api"""
    application = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=(
            "Extract reusable visual styles from reference images, write marketing concept lists, "
            "batch-generate images of many concepts in one style and edit single results."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for router, tag in ROUTERS:
        application.include_router(router, prefix="/api", tags=[tag])
    application.add_exception_handler(Exception, unhandled_exception)
    return application


app = create_app()


@app.get("/")
async def root():
    """Service information"""
    return {
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/api/health",
        "capabilities": "/api/models/capabilities"
    }


@app.get("/ping")
async def ping():
    return {"message": "pong"}


if __name__ == "__main__":
    uvicorn.run(
        "stylestudio.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_RELOAD,
        log_level=settings.LOG_LEVEL.lower()
    )
