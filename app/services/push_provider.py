import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Dict, List, Optional
from firebase_admin import exceptions, messaging
from app.config import settings, INVALID_REGISTRATION_TOKEN, REGISTRATION_TOKEN_NOT_REGISTERED
from app.models.schemas import DeliveryOutcome, MulticastResult
from app.services.firebase import get_firebase_app

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "messaging/unknown-error"

# Most specific classes first: the messaging errors subclass the generic ones
_ERROR_CODES = (
    (messaging.UnregisteredError, REGISTRATION_TOKEN_NOT_REGISTERED),
    (messaging.SenderIdMismatchError, "messaging/mismatched-credential"),
    (messaging.QuotaExceededError, "messaging/message-rate-exceeded"),
    (messaging.ThirdPartyAuthError, "messaging/third-party-auth-error"),
    (exceptions.UnavailableError, "messaging/server-unavailable"),
    (exceptions.InternalError, "messaging/internal-error"),
    (exceptions.DeadlineExceededError, "messaging/deadline-exceeded"),
    (exceptions.UnauthenticatedError, "messaging/authentication-error"),
)


def error_code_for(exc: Optional[BaseException]) -> str:
    """
    Map a per-token FCM exception to a stable error code.

    INVALID_ARGUMENT covers both bad tokens and bad payloads; it is only
    reported as an invalid token when FCM says so in the message.
    """
    if exc is None:
        return UNKNOWN_ERROR
    if isinstance(exc, exceptions.InvalidArgumentError):
        if "registration token" in str(exc).lower():
            return INVALID_REGISTRATION_TOKEN
        return "messaging/invalid-argument"
    for error_class, code in _ERROR_CODES:
        if isinstance(exc, error_class):
            return code
    return UNKNOWN_ERROR


def build_message(tokens: List[str], title: str, body: str, data: Dict[str, str]) -> messaging.MulticastMessage:
    return messaging.MulticastMessage(
        tokens=tokens,
        notification=messaging.Notification(title=title, body=body),
        data=data,
    )


class DeliveryGateway:
    """
    Multicast send over Firebase Cloud Messaging.

    Token lists longer than the FCM cap are split into several requests;
    counts and ordered outcomes are aggregated into one result. Transport
    failures of a whole request propagate to the caller.
    """

    def __init__(self, title: str = None, batch_size: int = None, dry_run: bool = None, app=None):
        self.title = title or settings.notification_title
        self.batch_size = batch_size or settings.multicast_batch_size
        self.dry_run = settings.dry_run if dry_run is None else dry_run
        self._app = app

    @property
    def app(self):
        if self._app is None:
            self._app = get_firebase_app()
        return self._app

    async def send_multicast(self, tokens: List[str], message: str) -> MulticastResult:
        data = {
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        result = MulticastResult()

        for start in range(0, len(tokens), self.batch_size):
            chunk = tokens[start:start + self.batch_size]
            response = await self._send_chunk(build_message(chunk, self.title, message, data))

            for token, resp in zip(chunk, response.responses):
                if resp.success:
                    result.outcomes.append(DeliveryOutcome(token=token, success=True))
                    continue
                code = error_code_for(resp.exception)
                result.outcomes.append(DeliveryOutcome(
                    token=token,
                    success=False,
                    error_code=code,
                    error_message=str(resp.exception) if resp.exception else None,
                ))
                logger.warning(f"⚠️ Failed to send to token {token[:20]}...: {code}")

            result.success_count += response.success_count
            result.failure_count += response.failure_count

        logger.info(
            f"Multicast finished: {result.success_count}/{len(tokens)} sent",
            extra={
                "tokens": len(tokens),
                "successful": result.success_count,
                "failed": result.failure_count,
                "dry_run": self.dry_run
            }
        )
        return result

    async def _send_chunk(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        # The Admin SDK call blocks; keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            partial(messaging.send_each_for_multicast, message, dry_run=self.dry_run, app=self.app)
        )
