from fastapi import FastAPI
from contextlib import asynccontextmanager
from app.api.health import router as health_router
from app.api.dispatch import router as dispatch_router
from app.services.firebase import get_firebase_app
from app.logging_config import configure_logging, get_logger
from app.config import settings

configure_logging(settings.log_level, settings.service_name)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler"""
    logger.info(f"🚀 Starting {settings.service_name}")
    try:
        get_firebase_app()
    except Exception as e:
        logger.error(f"Firebase initialization failed: {e}")
        raise

    yield

    logger.info(f"🛑 Shutting down {settings.service_name}")


app = FastAPI(
    title=settings.service_name,
    version="1.0.0",
    lifespan=lifespan
)


@app.get("/")
def index():
    return {"message": "Broadcast Dispatch API running"}


app.include_router(health_router)
app.include_router(dispatch_router)
