"""
Pytest fixtures and in-memory collaborators for dispatch tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple
from unittest.mock import AsyncMock, MagicMock
import pytest
from app.config import INVALID_REGISTRATION_TOKEN, REGISTRATION_TOKEN_NOT_REGISTERED
from app.models.schemas import (
    DeliveryOutcome,
    MulticastResult,
    NotificationRequest,
    Subscription,
)
from app.services.dispatch import DispatchEngine
from app.services.request_store import is_claimable, is_owned_by

RATE_LIMITED = "messaging/message-rate-exceeded"


class InMemoryRequestStore:
    """Request store over a dict of raw documents, with the same write conditions"""

    def __init__(self, documents: Optional[Dict[str, dict]] = None):
        self.documents = documents or {}
        self.writes: List[Tuple[str, dict]] = []
        self.claim_timeout = timedelta(seconds=540)

    async def get(self, request_id):
        data = self.documents.get(request_id)
        if data is None:
            return None
        return NotificationRequest.from_document(request_id, data)

    async def claim(self, request_id, invocation_id):
        data = self.documents.get(request_id)
        if data is None or not is_claimable(data, datetime.now(timezone.utc), self.claim_timeout):
            return None
        self._update(request_id, {"claimedBy": invocation_id, "claimedAt": datetime.now(timezone.utc)})
        return NotificationRequest.from_document(request_id, data)

    async def mark_completed(self, request_id, invocation_id, sent_count, failed_count=None):
        if not is_owned_by(self.documents.get(request_id, {}), invocation_id):
            return False
        fields = {"status": "completed", "sentCount": sent_count, "completedAt": "now"}
        if failed_count is not None:
            fields["failedCount"] = failed_count
        self._update(request_id, fields)
        return True

    async def mark_failed(self, request_id, invocation_id, error):
        data = self.documents.get(request_id, {})
        if data.get("status") != "pending" or data.get("claimedBy") not in (None, invocation_id):
            return False
        self._update(request_id, {"status": "failed", "error": error, "failedAt": "now"})
        return True

    def _update(self, request_id, fields):
        self.writes.append((request_id, fields))
        self.documents[request_id].update(fields)


class InMemorySubscriptionStore:

    def __init__(self, subscriptions: Sequence[Subscription] = ()):
        self.subscriptions = {s.id: s for s in subscriptions}
        self.delete_batches: List[List[str]] = []
        self.list_error: Optional[Exception] = None

    async def list_all(self):
        if self.list_error:
            raise self.list_error
        return list(self.subscriptions.values())

    async def delete_many(self, subscription_ids):
        ids = list(dict.fromkeys(subscription_ids))
        if not ids:
            return 0
        self.delete_batches.append(ids)
        for subscription_id in ids:
            self.subscriptions.pop(subscription_id, None)
        return len(ids)

    @property
    def tokens(self):
        return sorted(s.token for s in self.subscriptions.values())


class ScriptedGateway:
    """Gateway returning a scripted error code per token; unlisted tokens succeed"""

    def __init__(self, failures: Optional[Dict[str, str]] = None, error: Optional[Exception] = None):
        self.failures = failures or {}
        self.error = error
        self.calls: List[Tuple[List[str], str]] = []

    async def send_multicast(self, tokens, message):
        self.calls.append((list(tokens), message))
        if self.error:
            raise self.error
        outcomes = [
            DeliveryOutcome(token=t, success=False, error_code=self.failures[t])
            if t in self.failures else DeliveryOutcome(token=t, success=True)
            for t in tokens
        ]
        failed = sum(1 for o in outcomes if not o.success)
        return MulticastResult(
            success_count=len(outcomes) - failed,
            failure_count=failed,
            outcomes=outcomes
        )


@pytest.fixture
def pending_request():
    return {"status": "pending", "message": "Drill moved to 0600"}


@pytest.fixture
def request_store(pending_request):
    return InMemoryRequestStore({"req-1": dict(pending_request)})


@pytest.fixture
def three_subscriptions():
    return [
        Subscription(id="sub-a", token="A"),
        Subscription(id="sub-b", token="B"),
        Subscription(id="sub-c", token="C"),
    ]


@pytest.fixture
def subscription_store(three_subscriptions):
    return InMemorySubscriptionStore(three_subscriptions)


@pytest.fixture
def make_engine(request_store, subscription_store):
    def _make(gateway):
        return DispatchEngine(
            requests=request_store,
            subscriptions=subscription_store,
            gateway=gateway,
            dead_token_codes=[INVALID_REGISTRATION_TOKEN, REGISTRATION_TOKEN_NOT_REGISTERED]
        )
    return _make


@pytest.fixture
def mock_firestore_client():
    """Mock async Firestore client with one document reference"""
    client = MagicMock()
    ref = client.collection.return_value.document.return_value
    ref.get = AsyncMock()
    ref.update = AsyncMock(return_value=None)
    client.write_option = MagicMock(return_value="precondition")
    batch = client.batch.return_value
    batch.commit = AsyncMock(return_value=[])
    return client


def make_snapshot(doc_id: str, data: Optional[dict], update_time="2026-10-18T06:00:00Z"):
    snapshot = MagicMock()
    snapshot.id = doc_id
    snapshot.exists = data is not None
    snapshot.update_time = update_time
    snapshot.to_dict.return_value = data
    return snapshot
