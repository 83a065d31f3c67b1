# tests/conftest.py
import asyncio
import copy
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from clinic_agenda.config import Settings
from clinic_agenda.context import AppContext
from clinic_agenda.main import create_app
from clinic_agenda.service.crud_appointments import AppointmentStore
from clinic_agenda.service.identity import IdentityProvider

ADMIN_EMAIL = "doctora@clinica.test"


class FakeCursor:
    def __init__(self, collection):
        self._collection = collection

    async def to_list(self, length=None):
        self._collection._check("find")
        return [copy.deepcopy(d) for d in self._collection.docs.values()]


class FakeChangeStream:
    def __init__(self, collection, pipeline):
        self._collection = collection
        self._queue = asyncio.Queue()
        self._match = None
        for stage in pipeline or []:
            self._match = stage.get("$match", {}).get("documentKey._id")

    async def __aenter__(self):
        self._collection._check("watch")
        self._collection.streams.add(self)
        return self

    async def __aexit__(self, *exc):
        self._collection.streams.discard(self)

    def __aiter__(self):
        return self

    async def __anext__(self):
        event = await self._queue.get()
        if isinstance(event, Exception):
            raise event
        return event

    def publish(self, event):
        if self._match is None or self._match == event["documentKey"]["_id"]:
            self._queue.put_nowait(event)


class FakeCollection:
    """In-memory stand-in for the slice of the motor collection API the store uses."""

    def __init__(self):
        self.docs = {}
        self.streams = set()
        self.calls = []
        self._failure = None

    def fail_next(self, error):
        self._failure = error

    def break_streams(self, error):
        for stream in list(self.streams):
            stream._queue.put_nowait(error)

    def _check(self, op):
        self.calls.append(op)
        if self._failure is not None:
            error, self._failure = self._failure, None
            raise error

    def _publish(self, op, oid):
        for stream in list(self.streams):
            stream.publish({"operationType": op, "documentKey": {"_id": oid}})

    def find(self, query=None):
        return FakeCursor(self)

    async def find_one(self, query):
        self._check("find_one")
        doc = self.docs.get(query["_id"])
        return copy.deepcopy(doc) if doc is not None else None

    async def insert_one(self, doc):
        self._check("insert_one")
        doc.setdefault("_id", ObjectId())
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        self._publish("insert", doc["_id"])
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query, changes):
        self._check("update_one")
        doc = self.docs.get(query["_id"])
        if doc is None or any(doc.get(k) != v for k, v in query.items() if k != "_id"):
            return SimpleNamespace(matched_count=0, modified_count=0)
        for key, value in changes.get("$set", {}).items():
            doc[key] = copy.deepcopy(value)
        for key in changes.get("$unset", {}):
            doc.pop(key, None)
        for key, value in changes.get("$push", {}).items():
            doc.setdefault(key, []).append(copy.deepcopy(value))
        self._publish("update", query["_id"])
        return SimpleNamespace(matched_count=1, modified_count=1)

    async def delete_one(self, query):
        self._check("delete_one")
        if self.docs.pop(query["_id"], None) is None:
            return SimpleNamespace(deleted_count=0)
        self._publish("delete", query["_id"])
        return SimpleNamespace(deleted_count=1)

    def watch(self, pipeline=None):
        return FakeChangeStream(self, pipeline)


def fake_verifier(credential):
    accounts = {
        "admin-credential": {"email": ADMIN_EMAIL, "email_verified": True, "name": "Doctora"},
        "other-credential": {"email": "intruso@example.com", "email_verified": True},
    }
    if credential not in accounts:
        raise ValueError("Token used too late or malformed")
    return accounts[credential]


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ADMIN_EMAIL=ADMIN_EMAIL,
        PUBLIC_BASE_URL="https://clinica.test/",
        CLINIC_TIMEZONE="UTC",
    )


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def store(collection):
    return AppointmentStore(collection)


@pytest.fixture
def identity():
    return IdentityProvider(fake_verifier, admin_email=ADMIN_EMAIL, ttl_minutes=60)


@pytest.fixture
def client(settings, collection):
    def build_context(s):
        return AppContext(
            s,
            AppointmentStore(collection),
            IdentityProvider(fake_verifier, admin_email=s.ADMIN_EMAIL),
        )

    app = create_app(settings, context_factory=build_context)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_token(client):
    resp = client.post("/api/auth/sign-in", json={"credential": "admin-credential"})
    return resp.json()["session"]["session_id"]


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}
