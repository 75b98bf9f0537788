"""
HTTP tests for the chat, posts and analytics routes.

Collaborators are swapped in through FastAPI dependency overrides; the
app's lifespan (database, real providers) never runs.
"""

import asyncio
import json
import sqlite3

import pytest
from fastapi.testclient import TestClient

import main
from main import app
from routers.chat import get_conversation_store, get_orchestrator, get_relay
from routers.chat_orchestration import FallbackOrchestrator, StreamingRelay
from routers.chat_orchestration.prompts import DEGRADED_MESSAGE
from routers.posts import get_post_store
from services.auth import Principal, require_user
from services.database import DatabaseManager

from fakes import FakeProvider, unavailable

CURRENT_USER = {"id": "student-1"}


@pytest.fixture
def client(store, post_store):
    providers = [FakeProvider("Gemini", answer="Gemini says hi"), FakeProvider("Perplexity", answer="Perplexity says hi")]
    orchestrator = FallbackOrchestrator(providers, store, primary_provider="Gemini")
    relay = StreamingRelay(FakeProvider("Perplexity", chunks=["Str", "eam"]), store)

    app.dependency_overrides[require_user] = lambda: Principal(user_id=CURRENT_USER["id"])
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_relay] = lambda: relay
    app.dependency_overrides[get_conversation_store] = lambda: store
    app.dependency_overrides[get_post_store] = lambda: post_store
    CURRENT_USER["id"] = "student-1"

    yield TestClient(app)

    app.dependency_overrides.clear()


def _sse_events(text):
    events = []
    current = {}
    for line in text.splitlines():
        if line.startswith("event:"):
            current["event"] = line[len("event:"):].strip()
        elif line.startswith("data:"):
            current["data"] = json.loads(line[len("data:"):].strip())
        elif not line.strip() and current:
            events.append(current)
            current = {}
    if current:
        events.append(current)
    return events


class TestChatRoutes:
    def test_chat_answer(self, client):
        resp = client.post("/api/chat", json={"message": "Hello"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"]["content"] == "Gemini says hi"
        assert body["message"]["role"] == "assistant"
        assert body["sourceProvider"] == "Gemini"
        assert body["degraded"] is False

    def test_chat_empty_message(self, client):
        resp = client.post("/api/chat", json={"message": "   "})

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_MISSING_PARAM"

    def test_chat_degraded(self, client, store):
        orchestrator = FallbackOrchestrator([FakeProvider("Gemini", answer=unavailable())], store, "Gemini")
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator

        body = client.post("/api/chat", json={"message": "Hello"}).json()

        assert body["message"]["content"] == DEGRADED_MESSAGE
        assert body["sourceProvider"] == "none"
        assert body["degraded"] is True

    def test_homework_help_routes_by_subject(self, client):
        resp = client.post("/api/chat/homework-help", json={"subject": "History", "question": "Why did Rome fall?"})

        body = resp.json()
        assert body["sourceProvider"] == "Perplexity"
        assert body["message"]["content"].endswith("(Powered by Perplexity AI)")

    def test_homework_help_requires_both_fields(self, client):
        resp = client.post("/api/chat/homework-help", json={"subject": "", "question": "Why?"})
        assert resp.status_code == 400

    def test_history_and_clear(self, client):
        client.post("/api/chat", json={"message": "First"})
        client.post("/api/chat", json={"message": "Second"})

        history = client.get("/api/chat/history").json()["messages"]
        assert [m["content"] for m in history] == ["First", "Gemini says hi", "Second", "Gemini says hi"]

        recent = client.get("/api/chat/history", params={"limit": 2}).json()["messages"]
        assert [m["content"] for m in recent] == ["Second", "Gemini says hi"]

        cleared = client.post("/api/chat/clear").json()
        assert cleared["removed"] == 4
        assert client.get("/api/chat/history").json()["messages"] == []

    def test_history_unreadable(self, client, local_cache, monkeypatch):
        def broken_history(user_id, limit=None):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(local_cache, "history", broken_history)

        resp = client.get("/api/chat/history")

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "STORE_READ_FAILED"

    def test_stream_emits_chunks_then_done(self, client, store):
        resp = client.post("/api/chat/stream", json={"message": "Stream please"})

        assert resp.status_code == 200
        events = _sse_events(resp.text)
        assert [e["event"] for e in events] == ["chunk", "chunk", "done"]
        assert events[-1]["data"]["content"] == "Stream"
        assert events[-1]["data"]["sourceProvider"] == "Perplexity"

    def test_stream_without_relay(self, client):
        app.dependency_overrides[get_relay] = lambda: None

        resp = client.post("/api/chat/stream", json={"message": "Stream please"})

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "PROVIDER_STREAM_UNSUPPORTED"

    def test_content_analysis(self, client, store):
        raw = "Summary line.\n\n- Concept A\n- Concept B\n\n- Try this\n\nEasy to read."
        orchestrator = FallbackOrchestrator([FakeProvider("Gemini", answer=raw)], store, "Gemini")
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator

        resp = client.post("/api/content/analyze", json={"content": "A paragraph about cell biology."})

        analysis = resp.json()["analysis"]
        assert analysis["summary"] == "Summary line."
        assert analysis["keyConcepts"] == ["Concept A", "Concept B"]

    def test_content_analysis_too_short(self, client):
        resp = client.post("/api/content/analyze", json={"content": "short"})
        assert resp.status_code == 400

    def test_requires_authentication(self, client):
        del app.dependency_overrides[require_user]
        resp = client.post("/api/chat", json={"message": "Hello"})
        assert resp.status_code == 401


class TestPostRoutes:
    def _create(self, client, **fields):
        payload = {"content": "Notes on fractions", "title": "Fractions", "subject": "Math"}
        payload.update(fields)
        return client.post("/api/posts", json=payload).json()["post"]

    def test_create_and_view(self, client):
        post = self._create(client)

        resp = client.get(f"/api/posts/{post['id']}")

        assert resp.status_code == 200
        assert resp.json()["post"]["views"] == 1

    def test_missing_post(self, client):
        resp = client.get("/api/posts/999")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND_POST"

    def test_like_twice(self, client):
        post = self._create(client)

        first = client.post(f"/api/posts/{post['id']}/like")
        second = client.post(f"/api/posts/{post['id']}/like")

        assert first.json()["likes"] == 1
        assert second.status_code == 400
        assert second.json()["message"] == "Post already liked"

    def test_unlike_without_like(self, client):
        post = self._create(client)

        resp = client.delete(f"/api/posts/{post['id']}/like")

        assert resp.status_code == 404
        assert resp.json()["message"] == "Like not found"

    def test_save_and_unsave(self, client):
        post = self._create(client)

        assert client.post(f"/api/posts/{post['id']}/save").json()["saves"] == 1
        assert client.post(f"/api/posts/{post['id']}/save").json()["message"] == "Post already saved"
        assert client.delete(f"/api/posts/{post['id']}/save").status_code == 200
        assert client.delete(f"/api/posts/{post['id']}/save").json()["message"] == "Save not found"

    def test_only_author_deletes(self, client):
        post = self._create(client)
        CURRENT_USER["id"] = "someone-else"

        assert client.delete(f"/api/posts/{post['id']}").status_code == 403

        CURRENT_USER["id"] = "student-1"
        assert client.delete(f"/api/posts/{post['id']}").status_code == 200
        assert client.get(f"/api/posts/{post['id']}").status_code == 404

    def test_private_post_hidden_from_others(self, client):
        post = self._create(client, visibility="private")
        CURRENT_USER["id"] = "someone-else"
        assert client.get(f"/api/posts/{post['id']}").status_code == 404

    def test_public_feed_hides_private_posts(self, client):
        first = self._create(client, content="first")
        self._create(client, content="hidden", visibility="private")
        second = self._create(client, content="second")

        posts = client.get("/api/posts").json()["posts"]

        assert [p["id"] for p in posts] == [second["id"], first["id"]]

    def test_trending(self, client):
        quiet = self._create(client, content="quiet")
        popular = self._create(client, content="popular")
        client.post(f"/api/posts/{popular['id']}/save")

        posts = client.get("/api/posts/trending").json()["posts"]

        assert [p["id"] for p in posts] == [popular["id"], quiet["id"]]


class TestAnalyticsRoutes:
    def test_my_posts_include_private_with_scores(self, client):
        draft = client.post("/api/posts", json={"content": "Draft", "visibility": "private"}).json()["post"]
        shared = client.post("/api/posts", json={"content": "Shared"}).json()["post"]
        client.post(f"/api/posts/{shared['id']}/save")
        CURRENT_USER["id"] = "someone-else"
        client.post("/api/posts", json={"content": "Not mine"})
        CURRENT_USER["id"] = "student-1"

        posts = client.get("/api/analytics/posts").json()["posts"]

        assert [p["id"] for p in posts] == [shared["id"], draft["id"]]
        assert posts[0]["trendingScore"] == 3
        assert posts[1]["engagementRate"] == 0

    def test_engagement_for_author(self, client):
        post = client.post("/api/posts", json={"content": "Lab safety"}).json()["post"]
        client.get(f"/api/posts/{post['id']}")
        client.post(f"/api/posts/{post['id']}/like")

        metrics = client.get(f"/api/analytics/engagement/{post['id']}").json()

        assert metrics["success"] is True
        assert metrics["engagementRate"] == 100.0
        assert metrics["interactionBreakdown"]["likes"] == 1
        assert [d["userId"] for d in metrics["likeDetails"]] == ["student-1"]

    def test_engagement_forbidden_for_others(self, client):
        post = client.post("/api/posts", json={"content": "Lab safety"}).json()["post"]
        CURRENT_USER["id"] = "someone-else"
        assert client.get(f"/api/analytics/engagement/{post['id']}").status_code == 403

    def test_trending_includes_scores(self, client):
        post = client.post("/api/posts", json={"content": "Lab safety"}).json()["post"]
        client.post(f"/api/posts/{post['id']}/like")

        posts = client.get("/api/analytics/trending").json()["posts"]

        assert posts[0]["trendingScore"] == 2
        assert posts[0]["engagementRate"] == 100.0


class TestHealth:
    @pytest.fixture
    def health_client(self, monkeypatch):
        db = DatabaseManager(url="postgresql://nobody@localhost:1/none", enabled=False)
        asyncio.run(db.connect())

        async def local_only_database():
            return db

        chain = [FakeProvider("Gemini", answer="OK"), FakeProvider("Perplexity", answer=unavailable("Perplexity"))]
        monkeypatch.setattr(main, "get_database", local_only_database)
        monkeypatch.setattr(app.state, "provider_chain", chain, raising=False)
        return TestClient(app)

    def test_reports_providers_without_calling_them(self, health_client):
        body = health_client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["providers"] == ["Gemini", "Perplexity"]
        assert "provider_checks" not in body

    def test_check_providers_reports_each_provider(self, health_client):
        checks = health_client.get("/health", params={"check_providers": "true"}).json()["provider_checks"]

        assert checks["Gemini"] == {"ok": True, "message": "Gemini responding"}
        assert checks["Perplexity"]["ok"] is False
        assert "HTTP 500" in checks["Perplexity"]["message"]
