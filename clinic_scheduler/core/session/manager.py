"""Redis-backed, append-only conversation transcript storage."""

import logging
from typing import Optional
from uuid import uuid4

from clinic_scheduler.infra.redis import APP_PREFIX, RedisClient
from .models import Conversation, ConversationMessage

logger = logging.getLogger(__name__)

# Conversation key prefix (extends APP_PREFIX)
CONVERSATION_PREFIX = f"{APP_PREFIX}conversation:"


class ConversationStore:
    """
    Conversation transcripts in Redis.

    Key pattern:
        clinic_scheduler:v1:conversation:{session_id}:meta      (string, SET NX)
        clinic_scheduler:v1:conversation:{session_id}:messages  (list, RPUSH)

    Messages are only ever appended. When Redis is unavailable the same
    layout is kept in process memory.
    """

    def __init__(self, redis_client: Optional[RedisClient] = None, ttl_seconds: int = 0):
        self._redis_client = redis_client
        self._ttl = ttl_seconds
        self._memory_meta: dict[str, str] = {}
        self._memory_messages: dict[str, list[str]] = {}

    def _meta_key(self, session_id: str) -> str:
        return f"{CONVERSATION_PREFIX}{session_id}:meta"

    def _messages_key(self, session_id: str) -> str:
        return f"{CONVERSATION_PREFIX}{session_id}:messages"

    async def _redis(self):
        if self._redis_client is None:
            return None
        return await self._redis_client.get_client()

    async def get(self, session_id: str) -> Optional[Conversation]:
        """
        Load a conversation.

        Returns:
            Conversation or None if the session id is unknown
        """
        redis = await self._redis()

        if redis:
            meta = await redis.get(self._meta_key(session_id))
            if meta is None:
                return None
            messages = await redis.lrange(self._messages_key(session_id), 0, -1)
            return Conversation.from_storage(meta, list(messages))

        meta = self._memory_meta.get(session_id)
        if meta is None:
            return None
        return Conversation.from_storage(meta, list(self._memory_messages.get(session_id, [])))

    async def create(
        self,
        patient_id: int,
        session_id: Optional[str] = None,
    ) -> Conversation:
        """
        Create an empty conversation bound to ``patient_id``.

        Metadata is written only if absent. When the id is already taken the
        stored conversation is returned instead, owner included, so callers
        must check ownership on the result.
        """
        conversation = Conversation(
            session_id=session_id or str(uuid4()),
            patient_id=patient_id,
        )
        redis = await self._redis()

        if redis:
            key = self._meta_key(conversation.session_id)
            created = await redis.set(key, conversation.metadata_json(), nx=True)
            if created and self._ttl > 0:
                await redis.expire(key, self._ttl)
            if not created:
                logger.debug(f"Conversation {conversation.session_id} already exists")
                existing = await self.get(conversation.session_id)
                if existing is not None:
                    return existing
        else:
            sid = conversation.session_id
            if sid in self._memory_meta:
                return Conversation.from_storage(
                    self._memory_meta[sid], list(self._memory_messages.get(sid, []))
                )
            self._memory_meta[conversation.session_id] = conversation.metadata_json()
            self._memory_messages[conversation.session_id] = []
            logger.warning(
                f"Redis unavailable, using in-memory fallback for conversation "
                f"{conversation.session_id}"
            )

        return conversation

    async def get_or_create(
        self,
        patient_id: int,
        session_id: Optional[str] = None,
    ) -> Conversation:
        """Load ``session_id`` if it exists, otherwise start it (or a fresh id)."""
        if session_id:
            conversation = await self.get(session_id)
            if conversation is not None:
                return conversation
        return await self.create(patient_id, session_id)

    async def append(self, session_id: str, *messages: ConversationMessage) -> int:
        """
        Append messages in order.

        Returns:
            Number of messages appended
        """
        if not messages:
            return 0

        payloads = [message.to_json() for message in messages]
        redis = await self._redis()

        if redis:
            key = self._messages_key(session_id)
            await redis.rpush(key, *payloads)
            if self._ttl > 0:
                await redis.expire(key, self._ttl)
                await redis.expire(self._meta_key(session_id), self._ttl)
        else:
            self._memory_messages.setdefault(session_id, []).extend(payloads)

        logger.debug(f"Appended {len(payloads)} messages to conversation {session_id}")
        return len(payloads)
