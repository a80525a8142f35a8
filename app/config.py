import os
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

INVALID_REGISTRATION_TOKEN = "messaging/invalid-registration-token"
REGISTRATION_TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    firebase_project_id: Optional[str] = os.getenv("FIREBASE_PROJECT_ID")
    google_application_credentials: Optional[str] = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    requests_collection: str = os.getenv("REQUESTS_COLLECTION", "notificationRequests")
    subscriptions_collection: str = os.getenv("SUBSCRIPTIONS_COLLECTION", "pushSubscriptions")
    notification_title: str = os.getenv("NOTIFICATION_TITLE", "Bulldog CO Manager")
    # FCM accepts at most 500 tokens per multicast message
    multicast_batch_size: int = Field(default=500, ge=1, le=500)
    # a claim older than this belongs to an invocation that died mid-flight
    claim_timeout_seconds: int = Field(default=540, ge=1)
    dead_token_codes: List[str] = [
        INVALID_REGISTRATION_TOKEN,
        REGISTRATION_TOKEN_NOT_REGISTERED,
    ]
    dry_run: bool = Field(default=False, validation_alias="FCM_DRY_RUN")
    service_name: str = "broadcast-dispatch-service"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
