"""
Chat API Endpoint.

Patient-facing conversation with the scheduling assistant. Each request is
one turn of the tool-mediated conversation loop.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from clinic_scheduler.api.deps import get_conversation_loop
from clinic_scheduler.api.middleware.auth import CurrentUser, require_role
from clinic_scheduler.api.schemas import ErrorResponse
from clinic_scheduler.core.agent.conversation import ConversationLoop
from clinic_scheduler.models.database import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


class ChatRequest(BaseModel):
    """Chat message request."""

    message: Optional[str] = Field(
        default=None,
        max_length=4000,
        description="Patient's message",
        examples=["I'd like to see a dermatologist next Tuesday morning"],
    )
    session_id: Optional[str] = Field(
        default=None,
        description="Existing session ID for conversation continuity",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )


class ToolCall(BaseModel):
    """One tool invocation made during the turn."""

    tool: str
    input: dict
    result: dict


class ChatResponse(BaseModel):
    """Chat response."""

    session_id: str = Field(
        ...,
        description="Session ID for continuing the conversation",
    )
    response: str = Field(
        ...,
        description="Assistant's reply",
    )
    tool_calls: list[ToolCall] = Field(
        default_factory=list,
        description="Tools executed during this turn, in order",
    )


class HistoryMessage(BaseModel):
    role: str
    content: str
    timestamp: str


class HistoryResponse(BaseModel):
    session_id: str
    messages: list[HistoryMessage]
    created_at: str


@router.post(
    "/message",
    response_model=ChatResponse,
    status_code=status.HTTP_200_OK,
    summary="Send a chat message",
    description="Send a message to the scheduling assistant and get a response.",
    responses={
        400: {"model": ErrorResponse, "description": "Message is required"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse, "description": "Session not found"},
        502: {"model": ErrorResponse, "description": "Assistant unavailable"},
        503: {"model": ErrorResponse, "description": "Assistant could not finish the turn"},
    },
)
async def send_message(
    request: ChatRequest,
    user: CurrentUser = Depends(require_role(Role.PATIENT)),
    loop: ConversationLoop = Depends(get_conversation_loop),
) -> ChatResponse:
    """
    Process one chat turn.

    The session_id should be preserved across requests to maintain
    conversation context.
    """
    result = await loop.run_turn(
        patient_id=user.id,
        message=request.message,
        session_id=request.session_id,
    )
    return ChatResponse(**result.to_dict())


@router.get(
    "/history/{session_id}",
    response_model=HistoryResponse,
    summary="Get conversation history",
    description="Plain-text messages of one of the caller's conversations.",
    responses={
        404: {"model": ErrorResponse, "description": "Conversation not found"},
    },
)
async def history(
    session_id: str,
    user: CurrentUser = Depends(require_role(Role.PATIENT)),
    loop: ConversationLoop = Depends(get_conversation_loop),
) -> HistoryResponse:
    return HistoryResponse(**await loop.get_history(user.id, session_id))
