import json
import sys
from pathlib import Path
from typing import Iterable, Optional

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure project root is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from catalog_recommender.config import Settings
from catalog_recommender.database import Base, Category, Item, Member, ItemReview, MemberCategory, ReviewStatus
from catalog_recommender.embedding_client import EmbeddingClient
from catalog_recommender.vectors import dumps_vector

EMBEDDING_URL = "http://embedding.test/v1/api-tools/embedding"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class CatalogSeeder:
    """Inserts catalog, review and preference rows for a test."""

    def __init__(self, db):
        self.db = db

    def category(self, category_id: int, name: str, vector: Optional[Iterable[float]] = None) -> Category:
        obj = Category(id=category_id, name=name,
                       embedding_vector=dumps_vector(vector) if vector is not None else None)
        self.db.add(obj)
        self.db.commit()
        return obj

    def item(self, item_id: int, name: str, category_ids: Iterable[int] = (),
             vector: Optional[Iterable[float]] = None, raw_vector: Optional[str] = None) -> Item:
        obj = Item(id=item_id, name=name, description=f"{name} description")
        obj.categories = [self.db.get(Category, cid) for cid in category_ids]
        if vector is not None:
            obj.average_embedding_vector = dumps_vector(vector)
        elif raw_vector is not None:
            obj.average_embedding_vector = raw_vector
        self.db.add(obj)
        self.db.commit()
        return obj

    def member(self, member_id: int) -> Member:
        obj = self.db.get(Member, member_id)
        if obj is None:
            obj = Member(id=member_id, username=f"member{member_id}")
            self.db.add(obj)
            self.db.commit()
        return obj

    def review(self, member_id: int, item_id: int, status: ReviewStatus) -> ItemReview:
        self.member(member_id)
        obj = ItemReview(member_id=member_id, item_id=item_id, review_status=status)
        self.db.add(obj)
        self.db.commit()
        return obj

    def prefer(self, member_id: int, *category_ids: int) -> None:
        self.member(member_id)
        for category_id in category_ids:
            self.db.add(MemberCategory(member_id=member_id, category_id=category_id))
        self.db.commit()


@pytest.fixture
def seed(db):
    return CatalogSeeder(db)


@pytest.fixture
def settings():
    return Settings(
        embedding_api_url=EMBEDDING_URL,
        embedding_api_key="api-key",
        embedding_gateway_key="gateway-key",
        embedding_request_id="request-id",
        embedding_max_attempts=3,
        embedding_backoff_base=2.0,
        embedding_backoff_multiplier=2.0,
        embedding_backoff_max=60.0,
    )


class FakeEmbeddingApi:
    """httpx transport handler serving embeddings by text."""

    def __init__(self, vectors=None, failing=()):
        self.vectors = dict(vectors or {})
        self.failing = set(failing)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        text = json.loads(request.content)["text"]
        if text in self.failing or text not in self.vectors:
            return httpx.Response(500, json={"status": {"code": "50000"}})
        return httpx.Response(200, json={"status": {"code": "20000"},
                                         "result": {"embedding": self.vectors[text], "inputTokens": 2}})

    def texts(self):
        return [json.loads(r.content)["text"] for r in self.requests]


@pytest.fixture
def make_client(settings):
    clients = []

    def factory(handler, sleeps=None):
        sleep = sleeps.append if sleeps is not None else (lambda seconds: None)
        client = EmbeddingClient(settings, transport=httpx.MockTransport(handler), sleep=sleep)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def embedding_api():
    return FakeEmbeddingApi
