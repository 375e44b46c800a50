"""
Conversation storage module.

Transcripts are kept in the agent's message format, including tool_use
and tool_result blocks, and are only ever appended to.
"""

from .models import Conversation, ConversationMessage
from .manager import ConversationStore

__all__ = [
    # Models
    "Conversation",
    "ConversationMessage",
    # Store
    "ConversationStore",
]
