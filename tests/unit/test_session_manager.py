"""Tests for conversation transcript storage."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from clinic_scheduler.core.session import Conversation, ConversationMessage, ConversationStore
from clinic_scheduler.core.session.manager import CONVERSATION_PREFIX


class TestConversationStoreFallback:
    """Test the in-memory fallback (Redis unavailable)."""

    @pytest.fixture
    def store(self):
        return ConversationStore(redis_client=None)

    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        created = await store.create(patient_id=1)

        loaded = await store.get(created.session_id)
        assert loaded is not None
        assert loaded.patient_id == 1
        assert loaded.messages == []

    @pytest.mark.asyncio
    async def test_get_unknown(self, store):
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_append_preserves_order(self, store):
        conversation = await store.create(patient_id=1, session_id="sess-1")

        await store.append("sess-1", ConversationMessage("user", "hi"))
        await store.append(
            "sess-1",
            ConversationMessage("assistant", [{"type": "tool_use", "id": "t1", "name": "x", "input": {}}]),
            ConversationMessage("user", [{"type": "tool_result", "tool_use_id": "t1", "content": "{}"}]),
        )

        loaded = await store.get(conversation.session_id)
        assert [m.role for m in loaded.messages] == ["user", "assistant", "user"]
        assert loaded.messages[1].content[0]["type"] == "tool_use"

    @pytest.mark.asyncio
    async def test_create_does_not_overwrite(self, store):
        await store.create(patient_id=1, session_id="sess-1")
        await store.append("sess-1", ConversationMessage("user", "hi"))

        await store.create(patient_id=2, session_id="sess-1")

        loaded = await store.get("sess-1")
        assert loaded.patient_id == 1
        assert len(loaded.messages) == 1

    @pytest.mark.asyncio
    async def test_create_on_taken_id_returns_stored_owner(self, store):
        await store.create(patient_id=1, session_id="sess-1")

        conversation = await store.create(patient_id=2, session_id="sess-1")

        assert conversation.patient_id == 1

    @pytest.mark.asyncio
    async def test_get_or_create_with_unknown_id_uses_it(self, store):
        conversation = await store.get_or_create(patient_id=1, session_id="client-chosen")

        assert conversation.session_id == "client-chosen"


class TestConversationStoreRedis:
    """Test Redis-backed storage."""

    @pytest.fixture
    def mock_redis(self):
        """Create mock Redis client."""
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=None)
        mock.set = AsyncMock(return_value=True)
        mock.rpush = AsyncMock(return_value=1)
        mock.lrange = AsyncMock(return_value=[])
        mock.expire = AsyncMock(return_value=True)
        return mock

    @pytest.fixture
    def redis_client(self, mock_redis):
        client = MagicMock()
        client.get_client = AsyncMock(return_value=mock_redis)
        return client

    @pytest.mark.asyncio
    async def test_create_uses_set_nx(self, redis_client, mock_redis):
        store = ConversationStore(redis_client)

        conversation = await store.create(patient_id=1, session_id="sess-1")

        mock_redis.set.assert_called_once()
        args, kwargs = mock_redis.set.call_args
        assert args[0] == f"{CONVERSATION_PREFIX}sess-1:meta"
        assert kwargs == {"nx": True}
        assert json.loads(args[1])["patient_id"] == 1
        assert conversation.patient_id == 1
        mock_redis.expire.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_or_create_losing_race_returns_winner(self, redis_client, mock_redis):
        """Another request created the id between our lookup and SET NX."""
        winner = Conversation(session_id="sess-1", patient_id=2)
        mock_redis.get = AsyncMock(side_effect=[None, winner.metadata_json()])
        mock_redis.set = AsyncMock(return_value=None)
        store = ConversationStore(redis_client)

        conversation = await store.get_or_create(patient_id=1, session_id="sess-1")

        assert conversation.patient_id == 2
        mock_redis.expire.assert_not_called()

    @pytest.mark.asyncio
    async def test_append_uses_rpush(self, redis_client, mock_redis):
        store = ConversationStore(redis_client, ttl_seconds=3600)
        first = ConversationMessage("user", "hello")
        second = ConversationMessage("assistant", "hi there")

        count = await store.append("sess-1", first, second)

        assert count == 2
        mock_redis.rpush.assert_called_once_with(
            f"{CONVERSATION_PREFIX}sess-1:messages",
            first.to_json(),
            second.to_json(),
        )
        assert mock_redis.expire.call_count == 2

    @pytest.mark.asyncio
    async def test_get_rebuilds_conversation(self, redis_client, mock_redis):
        original = Conversation(session_id="sess-1", patient_id=7)
        message = ConversationMessage("user", "hello")
        mock_redis.get = AsyncMock(return_value=original.metadata_json())
        mock_redis.lrange = AsyncMock(return_value=[message.to_json()])
        store = ConversationStore(redis_client)

        loaded = await store.get("sess-1")

        assert loaded.patient_id == 7
        assert loaded.messages[0].content == "hello"
        assert loaded.updated_at == message.timestamp

    @pytest.mark.asyncio
    async def test_falls_back_when_redis_unreachable(self, redis_client):
        redis_client.get_client = AsyncMock(return_value=None)
        store = ConversationStore(redis_client)

        conversation = await store.create(patient_id=1)

        assert conversation.session_id in store._memory_meta


class TestConversationModel:
    """Test transcript views."""

    def test_user_facing_messages_hide_tool_traffic(self):
        conversation = Conversation(patient_id=1)
        conversation.append("user", "Book me in")
        conversation.append("assistant", [{"type": "tool_use", "id": "t1", "name": "x", "input": {}}])
        conversation.append("user", [{"type": "tool_result", "tool_use_id": "t1", "content": "{}"}])
        conversation.append("assistant", "Done!")

        visible = conversation.user_facing_messages()

        assert [m["content"] for m in visible] == ["Book me in", "Done!"]

    def test_agent_messages_strip_timestamps(self):
        conversation = Conversation(patient_id=1)
        conversation.append("user", "hello")

        assert conversation.agent_messages() == [{"role": "user", "content": "hello"}]
