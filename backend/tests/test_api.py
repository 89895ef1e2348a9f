"""
Tests for the HTTP API.

The routes are exercised against a stub job so these tests cover request
handling only: validation, the trigger secret and error mapping.
"""

from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import sys
sys.path.insert(0, '.')

from wordmap.api import routes
from wordmap.config import Settings
from wordmap.core.errors import UnknownSourceError
from wordmap.models.domain import IngestionSummary, SourceRunResult, SweepSummary
from wordmap.models.repository import SourceTotalRecord, WordRecord


class StubStore:
    async def top_words(self, limit=100, source=None):
        words = [
            WordRecord(id=1, text="markets", count=5),
            WordRecord(id=2, text="rally", count=3),
        ]
        if source is not None:
            words = words[:1]
        return words[:limit]

    async def source_totals(self):
        return [SourceTotalRecord(source="BBC News", total=8, distinct_words=2)]


class StubJob:
    def __init__(self):
        self.store = StubStore()
        self.scraped = []

    async def run_ingestion(self):
        return IngestionSummary(
            items_fetched=3,
            items_persisted=2,
            sources=[SourceRunResult(source="BBC News", kind="feed", success=True, items_fetched=3, items_persisted=2)],
            started_at=datetime.now(timezone.utc),
        )

    async def scrape_source(self, source_id, endpoint=None, params=None):
        if source_id != "newsapi":
            raise UnknownSourceError(source_id, ["newsapi"])
        self.scraped.append((source_id, endpoint, params))
        return IngestionSummary(started_at=datetime.now(timezone.utc))

    async def reprocess_orphans(self):
        return SweepSummary(posts_processed=4, unique_words_added=1)

    def get_source_health(self):
        return []


@pytest.fixture
def job(monkeypatch):
    stub = StubJob()
    monkeypatch.setattr(routes, "get_settings", lambda: Settings(_env_file=None, scrape_secret="s3cret"))
    routes.set_ingestion_job(stub)
    yield stub
    routes.set_ingestion_job(None)


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(routes.router, prefix="/api")
    return TestClient(app)


class TestReadRoutes:
    def test_words(self, job, client):
        response = client.get("/api/words")

        assert response.status_code == 200
        assert [w["text"] for w in response.json()["words"]] == ["markets", "rally"]

    def test_words_by_source(self, job, client):
        response = client.get("/api/words", params={"limit": 10, "source": "BBC News"})

        assert response.json()["source"] == "BBC News"
        assert len(response.json()["words"]) == 1

    def test_words_limit_validation(self, job, client):
        assert client.get("/api/words", params={"limit": 0}).status_code == 422

    def test_source_totals(self, job, client):
        response = client.get("/api/sources")

        assert response.json() == [{"source": "BBC News", "total": 8, "distinct_words": 2}]

    def test_source_health(self, job, client):
        assert client.get("/api/sources/health").json() == []

    def test_job_not_initialized(self, client):
        routes.set_ingestion_job(None)
        assert client.get("/api/words").status_code == 503


class TestTriggerRoutes:
    def test_scrape_requires_secret(self, job, client):
        assert client.post("/api/scrape", json={}).status_code == 401
        assert client.post("/api/scrape", json={"secret": "wrong"}).status_code == 401

    def test_scrape(self, job, client):
        response = client.post("/api/scrape", json={"secret": "s3cret"})

        assert response.status_code == 200
        body = response.json()
        assert body["items_persisted"] == 2
        assert body["sources"][0]["source"] == "BBC News"

    def test_scrape_single_source(self, job, client):
        response = client.post(
            "/api/scrape/newsapi",
            json={"secret": "s3cret", "endpoint": "everything", "params": {"q": "climate"}},
        )

        assert response.status_code == 200
        assert job.scraped == [("newsapi", "everything", {"q": "climate"})]

    def test_scrape_unknown_source(self, job, client):
        response = client.post("/api/scrape/geocities", json={"secret": "s3cret"})

        assert response.status_code == 404
        assert "geocities" in response.json()["detail"]

    def test_reprocess(self, job, client):
        response = client.post("/api/reprocess", json={"secret": "s3cret"})

        assert response.json() == {"posts_processed": 4, "unique_words_added": 1, "errors": []}

    def test_unconfigured_secret_rejects_everything(self, job, client, monkeypatch):
        monkeypatch.setattr(routes, "get_settings", lambda: Settings(_env_file=None, scrape_secret=None))
        assert client.post("/api/scrape", json={"secret": ""}).status_code == 401


class TestApp:
    def test_health(self):
        from wordmap.main import app

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "timestamp" in response.json()
