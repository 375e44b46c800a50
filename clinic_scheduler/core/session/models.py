"""
Conversation data models.

Messages are stored in the agent's message format: ``content`` is either
plain text or a list of content blocks (tool_use, tool_result, text).
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class ConversationMessage:
    """One transcript entry."""

    role: str  # "user" or "assistant"
    content: Any
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def is_text(self) -> bool:
        return isinstance(self.content, str)

    def for_agent(self) -> dict:
        """Role and content only; timestamps are not sent to the agent."""
        return {"role": self.role, "content": self.content}

    def to_json(self) -> str:
        return json.dumps(
            {
                "role": self.role,
                "content": self.content,
                "timestamp": self.timestamp.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, json_str: str) -> "ConversationMessage":
        data = json.loads(json_str)
        return cls(
            role=data["role"],
            content=data["content"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class Conversation:
    """
    Patient-scoped conversation.

    The message list is append-only; persistence pushes new messages and
    never rewrites earlier ones.
    """

    session_id: str = field(default_factory=lambda: str(uuid4()))
    patient_id: Optional[int] = None
    messages: list[ConversationMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def append(self, role: str, content: Any) -> ConversationMessage:
        message = ConversationMessage(role=role, content=content)
        self.messages.append(message)
        self.updated_at = message.timestamp
        return message

    def agent_messages(self) -> list[dict]:
        """Full transcript in the agent's message format."""
        return [message.for_agent() for message in self.messages]

    def user_facing_messages(self) -> list[dict]:
        """Plain-text messages only; tool traffic is hidden."""
        return [
            {
                "role": message.role,
                "content": message.content,
                "timestamp": message.timestamp.isoformat(),
            }
            for message in self.messages
            if message.is_text
        ]

    def metadata_json(self) -> str:
        return json.dumps(
            {
                "session_id": self.session_id,
                "patient_id": self.patient_id,
                "created_at": self.created_at.isoformat(),
            }
        )

    @classmethod
    def from_storage(
        cls,
        metadata_json: str,
        message_jsons: list[str],
    ) -> "Conversation":
        """Rebuild from a metadata record plus the stored message list."""
        data = json.loads(metadata_json)
        messages = [ConversationMessage.from_json(m) for m in message_jsons]
        created_at = datetime.fromisoformat(data["created_at"])
        return cls(
            session_id=data["session_id"],
            patient_id=data.get("patient_id"),
            messages=messages,
            created_at=created_at,
            updated_at=messages[-1].timestamp if messages else created_at,
        )
