"""
Agent Module

Tool-mediated conversation with the scheduling assistant:
- Tools: tool declarations and the dispatcher into the scheduling engine
- Conversation: bounded agent/tool loop over a persisted transcript
"""

from clinic_scheduler.core.agent.tools import TOOLS, SchedulingToolDispatcher
from clinic_scheduler.core.agent.conversation import (
    ConversationLoop,
    LoopBoundExceededError,
    LoopState,
    TurnResult,
    build_system_prompt,
)

__all__ = [
    # Tools
    "TOOLS",
    "SchedulingToolDispatcher",
    # Conversation
    "ConversationLoop",
    "LoopBoundExceededError",
    "LoopState",
    "TurnResult",
    "build_system_prompt",
]
