import asyncio
import json
import sqlite3
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Set

from citecheck.config import ORCHESTRATION_CONFIG, Settings, logger
from citecheck.models import ProgressSnapshot, ProgressUpdate
from .storage import BlobStore

TERMINAL_STATUSES = frozenset({"complete", "failed"})


class ProgressStore(Protocol):
    async def initialize(self) -> None: ...

    async def get(self) -> Optional[ProgressSnapshot]: ...

    async def set(self, update: ProgressUpdate) -> ProgressSnapshot: ...

    def close(self) -> None: ...


class ProgressSubscriber(Protocol):
    async def send_json(self, data: Any) -> None: ...


class SqliteProgressStore:
    """Single-row relational store; the CHECK constraint keeps exactly one snapshot."""

    CREATE_TABLE = (
        "CREATE TABLE IF NOT EXISTS progress ("
        "id INTEGER PRIMARY KEY CHECK (id = 1), "
        "status TEXT NOT NULL, "
        "updated_at TEXT NOT NULL, "
        "footnote_count INTEGER NOT NULL, "
        "verifications_json TEXT NOT NULL, "
        "error TEXT)"
    )
    UPSERT = (
        "INSERT INTO progress (id, status, updated_at, footnote_count, verifications_json, error) "
        "VALUES (1, ?, ?, ?, ?, ?) "
        "ON CONFLICT(id) DO UPDATE SET status = excluded.status, updated_at = excluded.updated_at, "
        "footnote_count = excluded.footnote_count, verifications_json = excluded.verifications_json, "
        "error = excluded.error"
    )

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    async def initialize(self) -> None:
        self.conn.execute(self.CREATE_TABLE)
        self.conn.commit()

    async def get(self) -> Optional[ProgressSnapshot]:
        row = self.conn.execute(
            "SELECT status, updated_at, footnote_count, verifications_json, error FROM progress WHERE id = 1"
        ).fetchone()
        if row is None:
            return None
        return ProgressSnapshot(
            status=row["status"],
            updated_at=row["updated_at"],
            footnote_count=int(row["footnote_count"] or 0),
            verifications=json.loads(row["verifications_json"] or "[]"),
            error=row["error"],
        )

    async def set(self, update: ProgressUpdate) -> ProgressSnapshot:
        snapshot = ProgressSnapshot.from_update(update)
        verifications_json = json.dumps([v.to_wire() for v in snapshot.verifications])
        self.conn.execute(
            self.UPSERT,
            (snapshot.status, snapshot.updated_at, snapshot.footnote_count, verifications_json, snapshot.error),
        )
        self.conn.commit()
        return snapshot


class KeyValueProgressStore:
    """Snapshot kept as one JSON value under a single key of a blob store."""

    def __init__(self, blob_store: BlobStore, key: str = "progress"):
        self.blob_store = blob_store
        self.key = key

    async def initialize(self) -> None:
        return None

    def close(self) -> None:
        return None

    async def get(self) -> Optional[ProgressSnapshot]:
        raw = await self.blob_store.get(self.key)
        if raw is None:
            return None
        return ProgressSnapshot.model_validate_json(raw)

    async def set(self, update: ProgressUpdate) -> ProgressSnapshot:
        snapshot = ProgressSnapshot.from_update(update)
        await self.blob_store.put(self.key, json.dumps(snapshot.to_wire()))
        return snapshot


class ProgressActor:
    """Single writer and broadcaster of one document's progress snapshot.

    `set` and `subscribe` run under one lock, so persistence and fan-out are
    applied in submission order and a new subscriber can never receive a
    snapshot older than one already broadcast. Each send is bounded by
    `send_timeout`; a subscriber that fails or stalls is dropped.
    """

    def __init__(
        self,
        document_id: str,
        store: ProgressStore,
        send_timeout: float = ORCHESTRATION_CONFIG.SUBSCRIBER_SEND_TIMEOUT,
    ):
        self.document_id = document_id
        self.store = store
        self.send_timeout = send_timeout
        self.subscribers: Set[ProgressSubscriber] = set()
        self._lock = asyncio.Lock()
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.store.initialize()
            self._initialized = True

    async def get(self) -> Optional[ProgressSnapshot]:
        async with self._lock:
            await self._ensure_initialized()
            return await self.store.get()

    async def set(self, update: ProgressUpdate) -> ProgressSnapshot:
        async with self._lock:
            await self._ensure_initialized()
            snapshot = await self.store.set(update)
            await self._broadcast(snapshot)
            return snapshot

    async def subscribe(self, subscriber: ProgressSubscriber) -> None:
        async with self._lock:
            await self._ensure_initialized()
            self.subscribers.add(subscriber)
            snapshot = await self.store.get()
            if snapshot is not None:
                await self._send(subscriber, snapshot.to_message())

    def unsubscribe(self, subscriber: ProgressSubscriber) -> None:
        self.subscribers.discard(subscriber)

    async def close_if_idle(self) -> bool:
        """Close the store when the document is finished and nobody is listening."""
        async with self._lock:
            if self.subscribers:
                return False
            await self._ensure_initialized()
            snapshot = await self.store.get()
            if snapshot is None or snapshot.status not in TERMINAL_STATUSES:
                return False
            self.store.close()
            self._initialized = False
            return True

    async def _send(self, subscriber: ProgressSubscriber, message: Dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(subscriber.send_json(message), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.info(
                "Dropping progress subscriber for %s: send stalled for %gs",
                self.document_id,
                self.send_timeout,
            )
        except Exception as e:
            logger.info("Dropping progress subscriber for %s: %s", self.document_id, e)
        self.subscribers.discard(subscriber)
        return False

    async def _broadcast(self, snapshot: ProgressSnapshot) -> None:
        message = snapshot.to_message()
        await asyncio.gather(*(self._send(subscriber, message) for subscriber in list(self.subscribers)))


StoreFactory = Callable[[str], ProgressStore]


class ProgressHub:
    """Hands out exactly one ProgressActor per live document id.

    Actors of finished documents are released once their last subscriber
    leaves; a later request for the same id reopens the persisted snapshot.
    """

    def __init__(
        self,
        store_factory: StoreFactory,
        send_timeout: float = ORCHESTRATION_CONFIG.SUBSCRIBER_SEND_TIMEOUT,
    ):
        self.store_factory = store_factory
        self.send_timeout = send_timeout
        self._actors: Dict[str, ProgressActor] = {}

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._actors

    def actor(self, document_id: str) -> ProgressActor:
        if document_id not in self._actors:
            self._actors[document_id] = ProgressActor(
                document_id,
                self.store_factory(document_id),
                send_timeout=self.send_timeout,
            )
        return self._actors[document_id]

    async def publish(self, document_id: str, update: ProgressUpdate) -> Optional[ProgressSnapshot]:
        """Best-effort write used by the processor; a failed write never aborts a run."""
        try:
            return await self.actor(document_id).set(update)
        except Exception as e:
            logger.warning("Failed to publish progress for %s: %s", document_id, e)
            return None

    async def release(self, document_id: str) -> bool:
        actor = self._actors.get(document_id)
        if actor is None or not await actor.close_if_idle():
            return False
        if self._actors.get(document_id) is actor:
            del self._actors[document_id]
        logger.debug("Released progress actor for %s", document_id)
        return True

    def close(self) -> None:
        for actor in self._actors.values():
            actor.store.close()
        self._actors.clear()


def build_store_factory(settings: Settings, blob_store: BlobStore) -> StoreFactory:
    """Pick the persistence backend once; actors never branch on it afterwards."""
    if settings.PROGRESS_BACKEND == "kv":
        return lambda document_id: KeyValueProgressStore(blob_store, f"progress/{document_id}.json")

    db_dir = Path(settings.PROGRESS_DB_DIR)
    return lambda document_id: SqliteProgressStore(str(db_dir / f"{document_id}.sqlite3"))
