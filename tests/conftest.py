from __future__ import annotations

import asyncio
import random
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from inspire.generation import QuoteGenerator
from inspire.main import create_app
from inspire.schemas import CategoryCreate, QuoteCreate, UserCreate
from inspire.storage import MemStorage


def completion(text):
    """Shape of an OpenAI chat completion, as far as the generator reads it."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class FakeCompletions:
    def __init__(self, reply=None, error=None, delay=None):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeProvider:
    def __init__(self, text=None, **kwargs):
        if text is not None:
            kwargs["reply"] = completion(text)
        self.completions = FakeCompletions(**kwargs)
        self.chat = SimpleNamespace(completions=self.completions)
        self.keys: list[str] = []
        self.closed = 0

    def factory(self, api_key: str):
        self.keys.append(api_key)
        return self

    async def close(self):
        self.closed += 1


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def storage():
    return MemStorage(rng=random.Random(1234))


@pytest.fixture
def generator(storage):
    return QuoteGenerator(storage, api_key=None, model="gpt-4o", timeout=1.0)


@pytest.fixture
def app(storage, generator):
    return create_app(storage=storage, generator=generator, secret_key="test-secret")


@pytest.fixture
def client(app):
    return TestClient(app)


def login(app, username, password):
    c = TestClient(app)
    r = c.post("/api/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return c


@pytest.fixture
def alice(storage):
    return storage.create_user(UserCreate(username="alice", password="secret"))


@pytest.fixture
def user_client(app, alice):
    return login(app, "alice", "secret")


@pytest.fixture
def admin_client(app, storage):
    storage.create_user(UserCreate(username="root", password="toor", is_admin=True))
    return login(app, "root", "toor")


@pytest.fixture
def motivation(storage):
    """Category "Motivation" (id 1) with quote {id 1, "X", "Y"} in it."""
    category = storage.create_category(CategoryCreate(name="Motivation"))
    storage.create_quote(QuoteCreate(text="X", author="Y", category_id=category.id))
    return category
