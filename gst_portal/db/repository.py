from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging

from gst_portal.core.errors import PersistenceFailure, RecordNotFound
from gst_portal.schemas.invoice import InvoiceRecord

logger = logging.getLogger(__name__)

Predicate = Callable[[InvoiceRecord], bool]

# Everything else on a record is fixed at creation
MUTABLE_FIELDS = frozenset({"status", "reconciliation_time", "filing_date"})


def ordered(records: List[InvoiceRecord]) -> List[InvoiceRecord]:
    """Newest upload first."""
    return sorted(records, key=lambda r: r.upload_time, reverse=True)


class Subscription:
    """
    Live view of a tenant's invoices. `latest` always holds the most recent
    snapshot; iterating yields the newest snapshot not yet seen until cancelled.
    A slow reader skips intermediate snapshots rather than queueing them.
    """

    def __init__(self, owner: "InvoiceRepository", tenant_id: str, predicate: Optional[Predicate]):
        self.tenant_id = tenant_id
        self.predicate = predicate
        self.latest: List[InvoiceRecord] = []
        self._owner = owner
        self._queue: "asyncio.Queue[Optional[List[InvoiceRecord]]]" = asyncio.Queue(maxsize=1)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def publish(self, snapshot: List[InvoiceRecord]):
        if self._cancelled:
            return
        self.latest = snapshot
        self._replace(snapshot)

    def cancel(self):
        if self._cancelled:
            return
        self._cancelled = True
        self._owner.unsubscribe(self)
        self._replace(None)

    def _replace(self, item: Optional[List[InvoiceRecord]]):
        if not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    def __aiter__(self):
        return self

    async def __anext__(self) -> List[InvoiceRecord]:
        snapshot = await self._queue.get()
        if snapshot is None:
            raise StopAsyncIteration
        return snapshot


class InvoiceRepository(ABC):
    @abstractmethod
    async def create(self, tenant_id: str, record: InvoiceRecord) -> str:
        pass

    @abstractmethod
    async def update(self, tenant_id: str, invoice_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def get(self, tenant_id: str, invoice_id: str) -> InvoiceRecord:
        pass

    @abstractmethod
    async def snapshot(self, tenant_id: str, predicate: Optional[Predicate] = None) -> List[InvoiceRecord]:
        pass

    @abstractmethod
    def subscribe(self, tenant_id: str, predicate: Optional[Predicate] = None) -> Subscription:
        pass

    @abstractmethod
    def unsubscribe(self, subscription: Subscription):
        pass


class InMemoryInvoiceRepository(InvoiceRepository):
    """
    Per-tenant, insertion-ordered invoice collections.
    Writes never await mid-mutation, so each one is atomic on the event loop;
    concurrent updates to one record resolve last-write-wins.
    """

    def __init__(self):
        self._storage: Dict[str, Dict[str, InvoiceRecord]] = {}
        self._subscriptions: Dict[str, List[Subscription]] = {}

    async def create(self, tenant_id: str, record: InvoiceRecord) -> str:
        collection = self._storage.setdefault(tenant_id, {})
        if record.id in collection:
            raise PersistenceFailure(f"Invoice '{record.id}' already exists")
        collection[record.id] = record
        logger.info(f"Invoice {record.id} stored for tenant {tenant_id} ({record.status.value})")
        self._notify(tenant_id)
        return record.id

    async def update(self, tenant_id: str, invoice_id: str, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise PersistenceFailure(f"Fields {sorted(unknown)} cannot be updated")

        collection = self._storage.get(tenant_id, {})
        if invoice_id not in collection:
            raise RecordNotFound(invoice_id)
        collection[invoice_id] = collection[invoice_id].model_copy(update=fields)
        self._notify(tenant_id)

    async def get(self, tenant_id: str, invoice_id: str) -> InvoiceRecord:
        try:
            return self._storage.get(tenant_id, {})[invoice_id]
        except KeyError:
            raise RecordNotFound(invoice_id)

    async def snapshot(self, tenant_id: str, predicate: Optional[Predicate] = None) -> List[InvoiceRecord]:
        return self._view(tenant_id, predicate)

    def subscribe(self, tenant_id: str, predicate: Optional[Predicate] = None) -> Subscription:
        subscription = Subscription(self, tenant_id, predicate)
        self._subscriptions.setdefault(tenant_id, []).append(subscription)
        subscription.publish(self._view(tenant_id, predicate))
        return subscription

    def unsubscribe(self, subscription: Subscription):
        subscribers = self._subscriptions.get(subscription.tenant_id, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    def _view(self, tenant_id: str, predicate: Optional[Predicate]) -> List[InvoiceRecord]:
        records = list(self._storage.get(tenant_id, {}).values())
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return ordered(records)

    def _notify(self, tenant_id: str):
        for subscription in list(self._subscriptions.get(tenant_id, [])):
            subscription.publish(self._view(tenant_id, subscription.predicate))
