"""
Subscription Store backed by the Firestore push subscriptions collection.
The engine only reads all registrations and deletes dead ones.
"""

import logging
from typing import List, Sequence
from app.config import settings
from app.models.schemas import Subscription
from app.services.firebase import get_async_db

logger = logging.getLogger(__name__)


class SubscriptionStore:
    """Reads and prunes device registrations"""

    def __init__(self, client=None, collection: str = None):
        self._client = client
        self.collection = collection or settings.subscriptions_collection

    @property
    def client(self):
        if self._client is None:
            self._client = get_async_db()
        return self._client

    async def list_all(self) -> List[Subscription]:
        """Load every registration; documents without a token are skipped"""
        subscriptions = []
        async for doc in self.client.collection(self.collection).stream():
            token = (doc.to_dict() or {}).get("token")
            if not token:
                logger.warning(f"Subscription {doc.id} has no token, ignoring")
                continue
            subscriptions.append(Subscription(id=doc.id, token=token))
        return subscriptions

    async def delete_many(self, subscription_ids: Sequence[str]) -> int:
        """
        Delete registrations in a single atomic batch.

        Returns the number of deletions committed. No write is issued when
        there is nothing to delete.
        """
        unique_ids = list(dict.fromkeys(subscription_ids))
        if not unique_ids:
            return 0

        batch = self.client.batch()
        collection = self.client.collection(self.collection)
        for subscription_id in unique_ids:
            batch.delete(collection.document(subscription_id))
        await batch.commit()

        logger.info(f"🧹 Removed {len(unique_ids)} invalid subscriptions")
        return len(unique_ids)
