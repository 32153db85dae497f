"""Shared test fixtures."""

import copy
import smtplib
from types import SimpleNamespace

import bson
import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from pymongo.errors import ConnectionFailure

from config import Settings, get_settings
from database import get_db
from mailer import Mailer, get_mailer
from main import app

TEST_SECRET = "test-secret-key-with-enough-bytes-for-hs256"


def matches(doc: dict, query: dict) -> bool:
    return all(key in doc and doc[key] == value for key, value in query.items())


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    async def to_list(self, length=None):
        return self.docs if length is None else self.docs[:length]


class FakeCollection:
    """In-memory stand-in for an AsyncCollection, exact-match queries only.

    Queries go through the BSON encoder so values the driver would refuse fail here too.
    """

    def __init__(self):
        self.docs = []
        self.acknowledged = True

    def find(self, query):
        bson.encode(query)
        return FakeCursor([copy.deepcopy(d) for d in self.docs if matches(d, query)])

    async def find_one(self, query):
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        if self.acknowledged:
            self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(acknowledged=self.acknowledged, inserted_id=doc["_id"])

    async def insert_many(self, docs):
        for doc in docs:
            await self.insert_one(doc)
        return SimpleNamespace(acknowledged=self.acknowledged)

    async def update_one(self, query, update):
        bson.encode(query)
        fields = update["$set"]
        for doc in self.docs:
            if matches(doc, query):
                changed = any(doc.get(k, object()) != v for k, v in fields.items())
                doc.update(fields)
                return SimpleNamespace(matched_count=1, modified_count=int(changed))
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    def __init__(self):
        self.collections = {}
        self.available = True

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    async def command(self, name):
        if not self.available:
            raise ConnectionFailure("connection refused")
        return {"ok": 1}


class RecordingMailer(Mailer):
    """Mailer that records messages instead of talking to a relay."""

    def __init__(self):
        super().__init__("smtp.test", 465, sender="tickets@example.com", subject="Payment confirmation")
        self.outbox = []
        self.fail = False

    def _deliver(self, message):
        if self.fail:
            raise smtplib.SMTPServerDisconnected("relay went away")
        self.outbox.append(message)


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(secret_key=TEST_SECRET, _env_file=None)


@pytest.fixture
async def client(db, mailer, test_settings):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_settings] = lambda: test_settings
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
