"""
Request Store backed by the Firestore notification requests collection.

Status writes follow the request lifecycle: a pending record is claimed by
exactly one invocation through a conditional update, then moved once to a
terminal status. Every status write is conditional on the document's update
time, so a terminal record is never rewritten.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from app.config import settings
from app.models.schemas import NotificationRequest, RequestStatus
from app.services.firebase import get_async_db

logger = logging.getLogger(__name__)


def is_claimable(data: Dict[str, Any], now: datetime, claim_timeout: timedelta) -> bool:
    """
    Pending and either unclaimed or holding a claim older than ``claim_timeout``.

    Works on the raw document so a malformed terminal record is never parsed.
    """
    if data.get("status") != RequestStatus.PENDING:
        return False
    if not data.get("claimedBy"):
        return True
    claimed_at = data.get("claimedAt")
    if not isinstance(claimed_at, datetime):
        return False
    return now - claimed_at > claim_timeout


def is_owned_by(data: Dict[str, Any], invocation_id: str) -> bool:
    return data.get("status") == RequestStatus.PENDING and data.get("claimedBy") == invocation_id


class RequestStore:
    """Reads and finalizes broadcast requests"""

    def __init__(self, client=None, collection: str = None, claim_timeout_seconds: int = None):
        self._client = client
        self.collection = collection or settings.requests_collection
        self.claim_timeout = timedelta(seconds=claim_timeout_seconds or settings.claim_timeout_seconds)

    @property
    def client(self):
        if self._client is None:
            self._client = get_async_db()
        return self._client

    def _ref(self, request_id: str):
        return self.client.collection(self.collection).document(request_id)

    async def get(self, request_id: str) -> Optional[NotificationRequest]:
        snapshot = await self._ref(request_id).get()
        if not snapshot.exists:
            return None
        return NotificationRequest.from_document(snapshot.id, snapshot.to_dict())

    async def claim(self, request_id: str, invocation_id: str) -> Optional[NotificationRequest]:
        """
        Claim a pending request for one invocation.

        The claim write is conditional on the document's update time, so of
        two invocations reading the same pending record only one succeeds.
        Returns the claimed record, or None when the record is missing,
        no longer pending, claimed by a live invocation, or the race was lost.

        A claim whose owner died before its terminal write keeps the record
        pending. Once the claim is older than ``claim_timeout`` another
        invocation may take it over and send again.

        The document is validated only after the claim is held, so a
        malformed pending request can still be marked failed by its owner.

        Raises:
            ValidationError: stored document is malformed
            GoogleAPIError: store unavailable
        """
        ref = self._ref(request_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            logger.warning(f"Notification request {request_id} not found")
            return None

        data = snapshot.to_dict() or {}
        if not is_claimable(data, datetime.now(timezone.utc), self.claim_timeout):
            logger.info(
                f"Request {request_id} not claimable "
                f"(status={data.get('status')}, claimed_by={data.get('claimedBy')})"
            )
            return None

        if data.get("claimedBy"):
            logger.warning(f"Taking over stale claim {data['claimedBy']} on request {request_id}")

        try:
            await ref.update(
                {"claimedBy": invocation_id, "claimedAt": firestore.SERVER_TIMESTAMP},
                option=self.client.write_option(last_update_time=snapshot.update_time),
            )
        except gcp_exceptions.FailedPrecondition:
            logger.info(f"Request {request_id} changed before claim, another invocation owns it")
            return None

        record = NotificationRequest.from_document(snapshot.id, data)
        return record.model_copy(update={"claimed_by": invocation_id})

    async def mark_completed(
        self,
        request_id: str,
        invocation_id: str,
        sent_count: int,
        failed_count: Optional[int] = None
    ) -> bool:
        """
        Terminal success; ``failed_count`` is omitted when None.

        Written only while this invocation owns the pending record. Returns
        False when the claim was lost.
        """
        fields = {
            "status": RequestStatus.COMPLETED.value,
            "sentCount": sent_count,
            "completedAt": firestore.SERVER_TIMESTAMP,
        }
        if failed_count is not None:
            fields["failedCount"] = failed_count

        written = await self._write_if(request_id, fields, lambda data: is_owned_by(data, invocation_id))
        if written:
            logger.info(f"✅ Request {request_id} completed: {sent_count} sent, {failed_count or 0} failed")
        return written

    async def mark_failed(self, request_id: str, invocation_id: str, error: str) -> bool:
        """
        Terminal failure, written while the record is pending and either
        unclaimed or claimed by this invocation.
        """
        def allowed(data):
            return data.get("status") == RequestStatus.PENDING and data.get("claimedBy") in (None, invocation_id)

        written = await self._write_if(request_id, {
            "status": RequestStatus.FAILED.value,
            "error": error,
            "failedAt": firestore.SERVER_TIMESTAMP,
        }, allowed)
        if written:
            logger.info(f"Request {request_id} marked failed: {error}")
        return written

    async def _write_if(self, request_id: str, fields: Dict[str, Any], allowed) -> bool:
        ref = self._ref(request_id)
        snapshot = await ref.get()
        data = (snapshot.to_dict() or {}) if snapshot.exists else None
        if data is None or not allowed(data):
            logger.warning(
                f"Not writing {fields['status']} to request {request_id}: "
                f"stored status={data and data.get('status')}, claimed_by={data and data.get('claimedBy')}"
            )
            return False

        try:
            await ref.update(fields, option=self.client.write_option(last_update_time=snapshot.update_time))
        except gcp_exceptions.FailedPrecondition:
            logger.warning(f"Request {request_id} changed before {fields['status']} write, skipping")
            return False
        return True
