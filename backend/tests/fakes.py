"""
In-memory stand-ins for the Firestore, Redis and FCM ports
"""
import itertools
from copy import deepcopy
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from momento.db.schemas.notification import NotificationPayload
from momento.services.push_transport import MulticastResponse, PushProviderError, PushTransport, SendResponse

_ids = itertools.count(1)


class FakeSnapshot:
    def __init__(self, reference: "FakeDocumentRef", data: Optional[Dict[str, Any]]):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, db: "FakeDocumentStore", path: Tuple[str, ...]):
        self.db = db
        self.path = path
        self.id = path[-1]

    async def get(self, transaction=None) -> FakeSnapshot:
        self.db.reads += 1
        return FakeSnapshot(self, self.db.data.get(self.path))

    async def set(self, data: Dict[str, Any]) -> None:
        self.db.data[self.path] = deepcopy(data)

    async def update(self, data: Dict[str, Any]) -> None:
        if self.path not in self.db.data:
            raise KeyError(f"No document to update: {'/'.join(self.path)}")
        self.db.data[self.path].update(deepcopy(data))


class FakeQuery:
    def __init__(self, db: "FakeDocumentStore", path: Tuple[str, ...]):
        self.db = db
        self.path = path
        self.filters: List[Any] = []
        self.ordering: Optional[Tuple[str, str]] = None
        self._offset = 0
        self._limit: Optional[int] = None

    def _copy(self) -> "FakeQuery":
        query = FakeQuery(self.db, self.path)
        query.filters = list(self.filters)
        query.ordering = self.ordering
        query._offset = self._offset
        query._limit = self._limit
        return query

    def where(self, filter=None) -> "FakeQuery":
        query = self._copy()
        query.filters.append(filter)
        return query

    def order_by(self, field: str, direction: str = "ASCENDING") -> "FakeQuery":
        query = self._copy()
        query.ordering = (field, direction)
        return query

    def offset(self, count: int) -> "FakeQuery":
        query = self._copy()
        query._offset = count
        return query

    def limit(self, count: int) -> "FakeQuery":
        query = self._copy()
        query._limit = count
        return query

    def _matches(self, document: Dict[str, Any]) -> bool:
        for field_filter in self.filters:
            assert field_filter.op_string == "==", "only equality filters are faked"
            if document.get(field_filter.field_path) != field_filter.value:
                return False
        return True

    def _snapshots(self) -> List[FakeSnapshot]:
        depth = len(self.path) + 1
        snapshots = [
            FakeSnapshot(FakeDocumentRef(self.db, path), data)
            for path, data in self.db.data.items()
            if len(path) == depth and path[:-1] == self.path and self._matches(data)
        ]
        if self.ordering:
            field, direction = self.ordering
            snapshots.sort(key=lambda s: s._data.get(field), reverse=direction == "DESCENDING")
        snapshots = snapshots[self._offset:]
        if self._limit is not None:
            snapshots = snapshots[:self._limit]
        return snapshots

    async def get(self) -> List[FakeSnapshot]:
        self.db.reads += 1
        return self._snapshots()

    def count(self):
        query = self

        class _Aggregation:
            async def get(self):
                return [[SimpleNamespace(value=len(query._snapshots()))]]

        return _Aggregation()


class FakeCollection(FakeQuery):
    def document(self, document_id: Optional[str] = None) -> FakeDocumentRef:
        return FakeDocumentRef(self.db, self.path + (document_id or f"doc{next(_ids)}",))


class FakeBatch:
    def __init__(self, db: "FakeDocumentStore"):
        self.db = db
        self.writes: List[Tuple[str, FakeDocumentRef, Dict[str, Any]]] = []

    def set(self, ref: FakeDocumentRef, data: Dict[str, Any]) -> None:
        self.writes.append(("set", ref, data))

    def update(self, ref: FakeDocumentRef, data: Dict[str, Any]) -> None:
        self.writes.append(("update", ref, data))

    async def commit(self) -> None:
        if self.db.fail_commits:
            raise RuntimeError("commit failed")
        assert len(self.writes) <= 500, "batch over the 500 write limit"
        self.db.commits.append(len(self.writes))
        for op, ref, data in self.writes:
            if op == "set":
                self.db.data[ref.path] = deepcopy(data)
            else:
                self.db.data[ref.path].update(deepcopy(data))


class FakeTransaction:
    def __init__(self):
        self.writes: List[Tuple[str, FakeDocumentRef, Dict[str, Any]]] = []

    def update(self, ref: FakeDocumentRef, data: Dict[str, Any]) -> None:
        self.writes.append(("update", ref, data))

    def create(self, ref: FakeDocumentRef, data: Dict[str, Any]) -> None:
        self.writes.append(("create", ref, data))


class FakeDocumentStore:
    """
    Mirrors momento.core.firebase.DocumentStore over a dict keyed by path.

    ``transaction_failures`` makes the next N transactions raise before
    committing anything.
    """

    def __init__(self):
        self.data: Dict[Tuple[str, ...], Dict[str, Any]] = {}
        self.commits: List[int] = []
        self.reads = 0
        self.fail_commits = False
        self.transaction_failures = 0
        self.transaction_calls = 0

    def collection(self, *path: str) -> FakeCollection:
        return FakeCollection(self, tuple(path))

    def document(self, *path: str) -> FakeDocumentRef:
        return FakeDocumentRef(self, tuple(path))

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    async def run_transaction(self, fn):
        self.transaction_calls += 1
        transaction = FakeTransaction()
        result = await fn(transaction)
        if self.transaction_failures > 0:
            self.transaction_failures -= 1
            raise RuntimeError("transaction contention")
        for op, ref, data in transaction.writes:
            if op == "create":
                assert ref.path not in self.data, "create on existing document"
                self.data[ref.path] = deepcopy(data)
            else:
                self.data[ref.path].update(deepcopy(data))
        return result

    def feed(self, collection: str, owner_id: str) -> Dict[str, Dict[str, Any]]:
        """Documents of one feed, keyed by id"""
        prefix = (collection, owner_id, "notifications")
        return {path[-1]: data for path, data in self.data.items() if path[:-1] == prefix}


class FakeRateLimitStore:
    def __init__(self, fail: bool = False):
        self.values: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.fail = fail

    async def get(self, key: str) -> Optional[str]:
        if self.fail:
            raise ConnectionError("redis unavailable")
        return self.values.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.values[key] = value
        self.ttls[key] = ttl_seconds


class FakePushTransport(PushTransport):
    """
    Records every call. Tokens listed in ``errors`` fail with that error;
    ``raise_on_call`` makes the Nth multicast call (1-based) raise.
    """

    def __init__(self, errors: Optional[Dict[str, PushProviderError]] = None, raise_on_call: Optional[int] = None):
        self.errors = errors or {}
        self.raise_on_call = raise_on_call
        self.single_sends: List[Tuple[str, NotificationPayload]] = []
        self.topic_sends: List[Tuple[str, NotificationPayload]] = []
        self.multicasts: List[Tuple[List[str], NotificationPayload]] = []

    async def send_to_token(self, token: str, payload: NotificationPayload) -> str:
        self.single_sends.append((token, payload))
        if token in self.errors:
            raise self.errors[token]
        return f"msg-{len(self.single_sends)}"

    async def send_to_topic(self, topic: str, payload: NotificationPayload) -> str:
        self.topic_sends.append((topic, payload))
        return f"topic-msg-{len(self.topic_sends)}"

    async def send_multicast(self, tokens: Sequence[str], payload: NotificationPayload) -> MulticastResponse:
        self.multicasts.append((list(tokens), payload))
        if self.raise_on_call == len(self.multicasts):
            raise PushProviderError("messaging/internal-error", "provider unavailable")

        responses = []
        for index, token in enumerate(tokens):
            if token in self.errors:
                responses.append(SendResponse(success=False, error=self.errors[token]))
            else:
                responses.append(SendResponse(success=True, message_id=f"m{len(self.multicasts)}-{index}"))

        successes = sum(1 for r in responses if r.success)
        return MulticastResponse(
            responses=responses,
            success_count=successes,
            failure_count=len(responses) - successes,
        )


def make_token(seed: str = "a", length: int = 152) -> str:
    """A well-formed registration token of ``length`` characters"""
    base = f"{seed}:APA91b"
    return (base + "x" * length)[:length]
