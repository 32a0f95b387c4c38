"""
Document-store client used by the orders engine.

Every engine component receives an `OrderStore` at construction. Production
wiring uses `FirestoreOrderStore`; tests and local runs use
`InMemoryOrderStore`, which honours the same query shapes.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional, Protocol

from google.cloud.firestore_v1.base_query import FieldFilter

from sellerhub.common.logging import log_event

logger = logging.getLogger(__name__)

WatchOp = Literal["==", "array_contains"]


@dataclass(frozen=True)
class StoredDocument:
    id: str
    data: dict[str, Any] = field(default_factory=dict)


SnapshotHandler = Callable[[list[StoredDocument]], None]
Unsubscribe = Callable[[], None]


class OrderStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Return the document data, or None when the document does not exist."""

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge `fields` into an existing document."""

    async def list(self, collection: str) -> list[StoredDocument]:
        """Return every document in a collection."""

    def watch(
        self,
        collection: str,
        on_change: SnapshotHandler,
        *,
        field: Optional[str] = None,
        op: Optional[WatchOp] = None,
        value: Any = None,
    ) -> Unsubscribe:
        """
        Push the full matching result set to `on_change` on every change.

        `on_change` may be invoked from a thread other than the caller's.
        """


class FirestoreOrderStore:
    """
    `OrderStore` over the (synchronous) google-cloud-firestore client.

    Reads/writes run in worker threads so they never block the event loop.
    Listener callbacks are delivered on the SDK's watch thread.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def _doc(self, collection: str, doc_id: str):
        return self._client.collection(collection).document(str(doc_id))

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        snap = await asyncio.to_thread(self._doc(collection, doc_id).get)
        if not snap.exists:
            return None
        return dict(snap.to_dict() or {})

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        ref = self._doc(collection, doc_id)
        await asyncio.to_thread(ref.update, dict(fields))

    async def list(self, collection: str) -> list[StoredDocument]:
        def _read() -> list[StoredDocument]:
            return [StoredDocument(id=s.id, data=dict(s.to_dict() or {})) for s in self._client.collection(collection).stream()]

        return await asyncio.to_thread(_read)

    def watch(
        self,
        collection: str,
        on_change: SnapshotHandler,
        *,
        field: Optional[str] = None,
        op: Optional[WatchOp] = None,
        value: Any = None,
    ) -> Unsubscribe:
        query = self._client.collection(collection)
        if field is not None:
            query = query.where(filter=FieldFilter(field, op or "==", value))

        def _on_snapshot(docs, changes, read_time) -> None:  # noqa: ARG001
            on_change([StoredDocument(id=d.id, data=dict(d.to_dict() or {})) for d in docs])

        watch = query.on_snapshot(_on_snapshot)
        return watch.unsubscribe


@dataclass(eq=False)
class _Watcher:
    collection: str
    on_change: SnapshotHandler
    field: Optional[str]
    op: Optional[WatchOp]
    value: Any
    active: bool = True

    def matches(self, data: dict[str, Any]) -> bool:
        if self.field is None:
            return True
        current = data.get(self.field)
        if self.op == "array_contains":
            return isinstance(current, list) and self.value in current
        return current == self.value


class InMemoryOrderStore:
    """
    Process-local `OrderStore`.

    Watchers receive the current result set immediately (like Firestore's
    initial snapshot) and again after every write to their collection.
    """

    def __init__(self, seed: Optional[dict[str, dict[str, dict[str, Any]]]] = None) -> None:
        self._lock = threading.Lock()
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._watchers: list[_Watcher] = []
        self.reads: list[tuple[str, str]] = []
        self.writes: list[tuple[str, str, dict[str, Any]]] = []
        for coll, docs in (seed or {}).items():
            for doc_id, data in docs.items():
                self._collections.setdefault(coll, {})[str(doc_id)] = copy.deepcopy(data)

    def snapshot(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            data = self._collections.get(collection, {}).get(str(doc_id))
            return copy.deepcopy(data) if data is not None else None

    def put(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[str(doc_id)] = copy.deepcopy(data)
        self._notify(collection)

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        self.reads.append((collection, str(doc_id)))
        return self.snapshot(collection, doc_id)

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            docs = self._collections.get(collection, {})
            if str(doc_id) not in docs:
                raise LookupError(f"{collection}/{doc_id} does not exist")
            docs[str(doc_id)].update(copy.deepcopy(fields))
            self.writes.append((collection, str(doc_id), copy.deepcopy(fields)))
        self._notify(collection)

    async def list(self, collection: str) -> list[StoredDocument]:
        with self._lock:
            return [StoredDocument(id=k, data=copy.deepcopy(v)) for k, v in self._collections.get(collection, {}).items()]

    def watch(
        self,
        collection: str,
        on_change: SnapshotHandler,
        *,
        field: Optional[str] = None,
        op: Optional[WatchOp] = None,
        value: Any = None,
    ) -> Unsubscribe:
        watcher = _Watcher(collection=collection, on_change=on_change, field=field, op=op, value=value)
        with self._lock:
            self._watchers.append(watcher)
        self._deliver(watcher)

        def _unsubscribe() -> None:
            watcher.active = False
            with self._lock:
                if watcher in self._watchers:
                    self._watchers.remove(watcher)

        return _unsubscribe

    def _deliver(self, watcher: _Watcher) -> None:
        with self._lock:
            docs = [
                StoredDocument(id=k, data=copy.deepcopy(v))
                for k, v in self._collections.get(watcher.collection, {}).items()
                if watcher.matches(v)
            ]
        if watcher.active:
            watcher.on_change(docs)

    def _notify(self, collection: str) -> None:
        with self._lock:
            targets = [w for w in self._watchers if w.collection == collection]
        for watcher in targets:
            try:
                self._deliver(watcher)
            except Exception:
                log_event(logger, "store.watch_delivery_failed", severity="ERROR", exc_info=True, collection=collection)
