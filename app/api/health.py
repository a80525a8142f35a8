from fastapi import APIRouter
from app.config import settings
from app.services import firebase
from app.logging_config import get_logger
from app.models.response import success_response, error_response

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health")
async def health_check():
    """
    Health check for Firebase and Firestore.
    Returns component status in the standardized format.
    """
    health_data = {
        "service": settings.service_name,
        "firebase": "unknown",
        "firestore": "unknown"
    }

    all_healthy = True

    try:
        firebase.get_firebase_app()
        health_data["firebase"] = "initialized"
    except Exception as e:
        health_data["firebase"] = f"uninitialized: {str(e)}"
        all_healthy = False
        logger.error(f"Firebase health check failed: {e}")

    if all_healthy:
        try:
            db = firebase.get_async_db()
            await db.collection(settings.requests_collection).limit(1).get()
            health_data["firestore"] = "connected"
            logger.debug("Firestore health check: OK")
        except Exception as e:
            health_data["firestore"] = f"disconnected: {str(e)}"
            all_healthy = False
            logger.error(f"Firestore health check failed: {e}")

    if all_healthy:
        return success_response(
            data=health_data,
            message="All services healthy"
        )
    return error_response(
        error="One or more services unavailable",
        message="Service health check degraded",
        data=health_data
    )
