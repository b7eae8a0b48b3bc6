"""Shared fixtures: an in-memory stand-in for the Firestore AsyncClient."""

import copy
from datetime import datetime, timezone

import pytest

from nutrisync.shell.collections import RecipeCollection, TemplateCollection
from nutrisync.shell.firestore_client import FirestoreConfig, SyncFirestoreClient
from nutrisync.shell.local_store import InMemoryLocalStore
from nutrisync.shell.sync_engine import SyncEngine


FIXED_NOW = datetime(2025, 2, 23, 12, 0, 0, tzinfo=timezone.utc)


class FakeSnapshot:
    """Mock Firestore document snapshot."""

    def __init__(self, data: dict | None):
        self.exists = data is not None
        self._data = data

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocumentRef:
    """Mock async document reference backed by the fake client's dict."""

    def __init__(self, client: "FakeAsyncClient", path: str):
        self._client = client
        self.path = path

    def collection(self, name: str) -> "FakeCollection":
        return FakeCollection(self._client, f"{self.path}/{name}")

    async def get(self):
        self._client.record("get", self.path)
        return FakeSnapshot(copy.deepcopy(self._client.docs.get(self.path)))

    async def set(self, data):
        self._client.record("set", self.path)
        self._client.docs[self.path] = copy.deepcopy(data)

    async def delete(self):
        self._client.record("delete", self.path)
        self._client.docs.pop(self.path, None)


class FakeCollection:
    def __init__(self, client: "FakeAsyncClient", path: str):
        self._client = client
        self.path = path

    def document(self, doc_id: str) -> FakeDocumentRef:
        return FakeDocumentRef(self._client, f"{self.path}/{doc_id}")


class FakeBatch:
    """Mock write batch: applies all queued writes on commit, or none."""

    def __init__(self, client: "FakeAsyncClient"):
        self._client = client
        self._writes: list[tuple[str, dict]] = []

    def set(self, ref: FakeDocumentRef, data: dict):
        self._writes.append((ref.path, copy.deepcopy(data)))

    async def commit(self):
        self._client.record("commit", ",".join(path for path, _ in self._writes))
        if self._client.fail_commit is not None:
            raise self._client.fail_commit
        for path, data in self._writes:
            self._client.docs[path] = data
        self._client.commits.append([path for path, _ in self._writes])


class FakeAsyncClient:
    """Mock Firestore AsyncClient.

    Attributes:
        docs: path -> document data
        calls: (operation, path) in call order
        failures: (operation, path) -> exception raised instead of running
        fail_commit: exception raised by every batch commit
    """

    def __init__(self):
        self.docs: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.commits: list[list[str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.fail_commit: Exception | None = None

    def record(self, op: str, path: str):
        self.calls.append((op, path))
        error = self.failures.get((op, path))
        if error is not None:
            raise error

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    def ops(self, op: str) -> list[str]:
        return [path for o, path in self.calls if o == op]


@pytest.fixture
def fake_firestore():
    return FakeAsyncClient()


@pytest.fixture
def remote(fake_firestore):
    return SyncFirestoreClient(FirestoreConfig(enabled=True), client=fake_firestore)


@pytest.fixture
def local_store():
    return InMemoryLocalStore()


@pytest.fixture
def engine(remote, local_store):
    ids = iter(f"generated-{n}" for n in range(1000))
    return SyncEngine(
        remote=remote,
        local=local_store,
        recipes=RecipeCollection(),
        templates=TemplateCollection(),
        clock=lambda: FIXED_NOW,
        id_factory=lambda: next(ids),
    )
