"""
Shared Firebase handles.

The Admin SDK app and the Firestore clients are created on first use and
reused for the lifetime of the process.
"""

import logging
import threading
from functools import lru_cache
import firebase_admin
from firebase_admin import credentials, firestore, firestore_async
from app.config import settings

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()


def get_firebase_app() -> firebase_admin.App:
    """Return the default Firebase app, initializing it once"""
    with _init_lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            pass

        options = {}
        if settings.firebase_project_id:
            options["projectId"] = settings.firebase_project_id

        if settings.google_application_credentials:
            cred = credentials.Certificate(settings.google_application_credentials)
        else:
            cred = credentials.ApplicationDefault()

        app = firebase_admin.initialize_app(cred, options or None)
        logger.info(f"✅ Firebase app initialized for project {app.project_id or 'default'}")
        return app


@lru_cache(maxsize=1)
def get_async_db():
    """Async Firestore client used by the stores"""
    return firestore_async.client(get_firebase_app())


@lru_cache(maxsize=1)
def get_db():
    """Sync Firestore client, needed for snapshot listeners"""
    return firestore.client(get_firebase_app())
