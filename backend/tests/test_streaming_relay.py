"""
Tests for the streaming relay.
"""

import asyncio
import json

import pytest

from errors import ValidationError
from routers.chat_orchestration import StreamingRelay
from routers.chat_orchestration.prompts import DEGRADED_MESSAGE
from routers.chat_orchestration.streaming import EVENT_CHUNK, EVENT_DONE, EVENT_ERROR
from services.conversation_store import ConversationStore

from fakes import FakeProvider, SlowRemote, unavailable


def _events(relay, user_id="u1", message="Explain gravity"):
    async def run():
        return [event async for event in relay.stream(user_id, message)]

    return asyncio.run(run())


class TestStreamingRelay:
    def test_chunks_then_done(self, store):
        provider = FakeProvider("Perplexity", chunks=["Gravity ", "pulls ", "masses."])

        events = _events(StreamingRelay(provider, store))

        assert [e.type for e in events] == [EVENT_CHUNK, EVENT_CHUNK, EVENT_CHUNK, EVENT_DONE]
        assert [e.data["content"] for e in events[:3]] == ["Gravity ", "pulls ", "masses."]
        done = events[-1].data
        assert done["content"] == "Gravity pulls masses."
        assert done["sourceProvider"] == "Perplexity"

    def test_exchange_persisted_without_attribution(self, store):
        provider = FakeProvider("Perplexity", chunks=["Hel", "lo"])

        events = _events(StreamingRelay(provider, store), message="Hi")
        history = asyncio.run(store.history("u1"))

        assert [(t.role, t.content) for t in history] == [("user", "Hi"), ("assistant", "Hello")]
        assert history[1].source_provider == "Perplexity"
        assert events[-1].data["id"] == history[1].id

    def test_failure_before_first_chunk(self, store):
        provider = FakeProvider("Perplexity", chunks=[unavailable("Perplexity")])

        events = _events(StreamingRelay(provider, store))

        assert [e.type for e in events] == [EVENT_ERROR]
        assert events[0].data["message"] == DEGRADED_MESSAGE
        history = asyncio.run(store.history("u1"))
        assert [t.role for t in history] == ["user"]

    def test_failure_mid_stream_ends_without_done(self, store):
        provider = FakeProvider("Perplexity", chunks=["partial ", ConnectionResetError("reset")])

        events = _events(StreamingRelay(provider, store))

        assert [e.type for e in events] == [EVENT_CHUNK]
        history = asyncio.run(store.history("u1"))
        assert [t.role for t in history] == ["user"]

    def test_chunk_timeout(self, store):
        provider = FakeProvider("Perplexity", chunks=["never"], delay=1.0)

        events = _events(StreamingRelay(provider, store, chunk_timeout_s=0.05))

        assert [e.type for e in events] == [EVENT_ERROR]

    def test_empty_stream_is_an_error(self, store):
        provider = FakeProvider("Perplexity", chunks=[])

        events = _events(StreamingRelay(provider, store))

        assert [e.type for e in events] == [EVENT_ERROR]

    def test_abandoned_stream_closes_provider(self, store):
        provider = FakeProvider("Perplexity", chunks=["a", "b", "c"])
        relay = StreamingRelay(provider, store)

        async def run():
            agen = relay.stream("u1", "hi")
            first = await agen.__anext__()
            await agen.aclose()
            return first

        first = asyncio.run(run())

        assert first.data["content"] == "a"
        assert provider.stream_closed is True
        assert [t.role for t in asyncio.run(store.history("u1"))] == ["user"]

    def test_cancel_during_slow_remote_write_keeps_user_turn(self, local_cache):
        store = ConversationStore(local_cache, remote=SlowRemote(delay=2.0), remote_timeout_s=5.0)
        relay = StreamingRelay(FakeProvider("Perplexity"), store)

        async def consume():
            async for _ in relay.stream("u1", "What is photosynthesis?"):
                pass

        async def run():
            task = asyncio.create_task(consume())
            await asyncio.sleep(0.1)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())

        assert [t.content for t in local_cache.history("u1")] == ["What is photosynthesis?"]

    def test_empty_message_rejected(self, store):
        relay = StreamingRelay(FakeProvider("Perplexity"), store)
        with pytest.raises(ValidationError):
            _events(relay, message="  ")

    def test_to_sse_shape(self):
        from routers.chat_orchestration import RelayEvent

        sse = RelayEvent(EVENT_CHUNK, {"content": "x"}).to_sse()
        assert sse == {"event": "chunk", "data": json.dumps({"content": "x"})}
