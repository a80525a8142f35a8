"""
Dispatch engine: delivers one broadcast request to every registered device.

Sequence for a pending request:
    claim -> load subscriptions -> multicast send -> classify -> prune -> finalize

Any exception in that sequence ends in a terminal ``failed`` write on the
request and is never raised to the caller, so the trigger is not retried.
The write only lands while the request is still pending and not owned by
another invocation.
"""

import logging
import uuid
from functools import lru_cache
from typing import Iterable, Optional
from app.config import settings
from app.logging_config import clear_context, set_context
from app.models.schemas import DispatchResult, DispatchTrigger, RequestStatus
from app.services.pruning import dead_tokens, failure_summary, select_for_pruning
from app.services.push_provider import DeliveryGateway
from app.services.request_store import RequestStore
from app.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


class DispatchEngine:

    def __init__(
        self,
        requests: RequestStore,
        subscriptions: SubscriptionStore,
        gateway: DeliveryGateway,
        dead_token_codes: Optional[Iterable[str]] = None
    ):
        self.requests = requests
        self.subscriptions = subscriptions
        self.gateway = gateway
        codes = settings.dead_token_codes if dead_token_codes is None else dead_token_codes
        self.dead_token_codes = frozenset(codes)

    async def handle(self, trigger: DispatchTrigger) -> DispatchResult:
        """Process one newly created request. Never raises."""
        invocation_id = str(uuid.uuid4())
        set_context(request_id=trigger.request_id, invocation_id=invocation_id)
        try:
            if trigger.status != RequestStatus.PENDING:
                logger.info(f"Request status is {trigger.status!r}, not pending, skipping")
                return DispatchResult(
                    request_id=trigger.request_id,
                    outcome="skipped",
                    reason=f"status is {trigger.status}"
                )

            try:
                return await self._dispatch(trigger.request_id, invocation_id)
            except Exception as e:
                logger.error(f"❌ Dispatch failed for {trigger.request_id}: {e}", exc_info=True)
                error = str(e) or e.__class__.__name__
                recorded = await self._fail(trigger.request_id, invocation_id, error)
                return DispatchResult(
                    request_id=trigger.request_id,
                    outcome="failed",
                    error=error,
                    reason=None if recorded else "failure not recorded on the request"
                )
        finally:
            clear_context()

    async def _dispatch(self, request_id: str, invocation_id: str) -> DispatchResult:
        record = await self.requests.claim(request_id, invocation_id)
        if record is None:
            return DispatchResult(
                request_id=request_id,
                outcome="skipped",
                reason="request is not claimable"
            )

        logger.info(f"📨 Processing notification request {request_id}")

        subscriptions = await self.subscriptions.list_all()
        if not subscriptions:
            logger.info("No subscriptions found")
            if not await self.requests.mark_completed(request_id, invocation_id, sent_count=0):
                return self._claim_lost(request_id)
            return DispatchResult(request_id=request_id, outcome="completed")

        tokens = [subscription.token for subscription in subscriptions]
        logger.info(f"Sending notification to {len(tokens)} devices")
        result = await self.gateway.send_multicast(tokens, record.message)

        pruned = 0
        if result.failures:
            logger.warning(f"Delivery failures by code: {failure_summary(result.outcomes)}")
            dead = dead_tokens(result.outcomes, self.dead_token_codes)
            stale = select_for_pruning(subscriptions, dead)
            pruned = await self.subscriptions.delete_many([s.id for s in stale])

        finalized = await self.requests.mark_completed(
            request_id,
            invocation_id,
            sent_count=result.success_count,
            failed_count=result.failure_count
        )
        if not finalized:
            return self._claim_lost(request_id)

        logger.info(
            f"Successfully sent {result.success_count} notifications, "
            f"{result.failure_count} failed, {pruned} pruned"
        )
        return DispatchResult(
            request_id=request_id,
            outcome="completed",
            sent_count=result.success_count,
            failed_count=result.failure_count,
            pruned_count=pruned
        )

    def _claim_lost(self, request_id: str) -> DispatchResult:
        logger.warning(f"Lost claim on request {request_id} before the terminal write")
        return DispatchResult(
            request_id=request_id,
            outcome="skipped",
            reason="claim lost before terminal write"
        )

    async def _fail(self, request_id: str, invocation_id: str, error: str) -> bool:
        try:
            return await self.requests.mark_failed(request_id, invocation_id, error)
        except Exception as e:
            logger.error(f"Could not record failure on request {request_id}: {e}", exc_info=True)
            return False


@lru_cache(maxsize=1)
def get_engine() -> DispatchEngine:
    """Process-wide engine wired to Firestore and FCM"""
    return DispatchEngine(
        requests=RequestStore(),
        subscriptions=SubscriptionStore(),
        gateway=DeliveryGateway()
    )
