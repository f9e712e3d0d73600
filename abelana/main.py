import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from abelana.api import moderation, photos, users
from abelana.api.dependencies import task_runner
from abelana.core.config import settings
from abelana.core.exceptions import (
    AbelanaError,
    http_exception_handler,
    validation_exception_handler,
)
from abelana.db.database import AsyncSessionLocal, async_engine, init_db
from abelana.tasks.runner import TaskWorker

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    worker = None
    if settings.TASK_WORKER_ENABLED:
        worker = TaskWorker(AsyncSessionLocal, task_runner)
        await worker.start()
    yield
    if worker:
        await worker.stop()
    await async_engine.dispose()

app = FastAPI(
    title=settings.PROJECT_TITLE,
    description=settings.PROJECT_DESCRIPTION,
    version=settings.PROJECT_VERSION,
    lifespan=lifespan
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."}
    )

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception Handlers
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(AbelanaError, http_exception_handler)

# API Routers
api_router = APIRouter(prefix="/api")
api_router.include_router(users.router, tags=["users"])
api_router.include_router(photos.router, tags=["photos"])
api_router.include_router(moderation.router, tags=["moderation"])
app.include_router(api_router)


@app.get("/", include_in_schema=False)
async def health_check():
    return {
        "status": "healthy",
        "version": settings.PROJECT_VERSION,
        "docs": "/docs"
    }
