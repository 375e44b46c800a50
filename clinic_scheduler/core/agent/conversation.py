"""
Tool-mediated conversation loop.

One turn = one patient message. The loop sends the full transcript and the
tool set to the agent, executes every tool the agent requests, appends the
tool_use / tool_result pair, and repeats until the agent answers in plain
text or the round cap is reached.

States: awaiting_agent -> executing_tools -> awaiting_agent ... -> done
                                                               -> aborted
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from clinic_scheduler.config import BusinessHours
from clinic_scheduler.core.agent.tools import SchedulingToolDispatcher
from clinic_scheduler.core.scheduling.errors import InvalidArgumentError, NotFoundError
from clinic_scheduler.core.session import ConversationStore
from clinic_scheduler.models.database import AppointmentType

logger = logging.getLogger(__name__)

ABORTED_REPLY = (
    "I'm sorry, I wasn't able to finish that request. "
    "Could you try again, or rephrase what you need?"
)

EMPTY_REPLY = "I'm sorry, I don't have a response for that. Could you rephrase?"


class AgentClient(Protocol):
    """What the loop needs from the conversational agent."""

    async def create_message(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
    ) -> Any:
        ...


class LoopState(str, Enum):
    AWAITING_AGENT = "awaiting_agent"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"


class LoopBoundExceededError(Exception):
    """The agent kept requesting tools past the per-turn round cap."""

    def __init__(self, session_id: str, rounds: int):
        super().__init__(
            f"Tool-use round limit ({rounds}) reached for session {session_id}"
        )
        self.session_id = session_id
        self.rounds = rounds


@dataclass
class TurnResult:
    """Outcome of one completed turn."""

    session_id: str
    response_text: str
    tool_calls: list[dict] = field(default_factory=list)
    rounds: int = 0

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "response": self.response_text,
            "tool_calls": self.tool_calls,
        }


def build_system_prompt(
    clinic_info: dict,
    business_hours: BusinessHours,
    allowed_durations: list[int],
) -> str:
    """System prompt for the scheduling assistant."""
    durations = " or ".join(str(d) for d in allowed_durations)
    types = ", ".join(t.value for t in AppointmentType)
    return f"""You are a helpful medical scheduling assistant for {clinic_info.get("name", "the clinic")}. Your role is to:

1. Answer questions about the clinic (hours, location, services)
2. Help patients find the right doctor based on their needs
3. Check doctor availability and schedule appointments
4. Modify or cancel existing appointments
5. Provide a friendly, professional experience

**Clinic Information:**
- Hours: {clinic_info.get("hours", "")}
- Bookable times: {business_hours.open_hour:02d}:00 to {business_hours.close_hour:02d}:00 local clinic time
- Appointment durations: {durations} minutes only
- Appointment types: {types}
- All times are local clinic time in the format YYYY-MM-DDTHH:MM:SS, with no UTC offset

**Important Guidelines:**
- Use list_doctors to find doctors and their IDs; never guess an ID
- Always check availability before offering a time
- Always confirm appointment details with the patient before scheduling
- Capture the reason for the visit in the appointment summary
- If a tool returns an error, explain it to the patient in plain language
- Be empathetic and professional
- Do not provide medical advice or diagnoses"""


class ConversationLoop:
    """
    Bounded agent/tool loop over a persisted conversation.

    The transcript is persisted after the user message, after each
    completed tool round and after the final reply, so an abandoned turn
    keeps everything up to its last completed round.
    """

    def __init__(
        self,
        agent_client: AgentClient,
        dispatcher: SchedulingToolDispatcher,
        conversations: ConversationStore,
        system_prompt: str,
        max_tool_rounds: int = 10,
        max_tokens: int = 4096,
    ):
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self._agent = agent_client
        self._dispatcher = dispatcher
        self._conversations = conversations
        self._system_prompt = system_prompt
        self._max_tool_rounds = max_tool_rounds
        self._max_tokens = max_tokens

    async def run_turn(
        self,
        patient_id: int,
        message: Optional[str],
        session_id: Optional[str] = None,
    ) -> TurnResult:
        """
        Run one turn for an authenticated patient.

        Raises:
            InvalidArgumentError: empty message
            NotFoundError: session belongs to another patient
            LoopBoundExceededError: round cap reached
            ClaudeClientError: agent unavailable
        """
        if not message or not str(message).strip():
            raise InvalidArgumentError("Message is required")

        conversation = await self._conversations.get_or_create(patient_id, session_id)
        if conversation.patient_id != patient_id:
            logger.warning(
                f"Patient {patient_id} used session {conversation.session_id} "
                f"owned by another patient"
            )
            raise NotFoundError("Conversation not found")

        sid = conversation.session_id
        await self._conversations.append(sid, conversation.append("user", message))

        tools = self._dispatcher.get_anthropic_tools()
        tool_calls: list[dict] = []
        rounds = 0
        state = LoopState.AWAITING_AGENT

        while True:
            response = await self._agent.create_message(
                messages=conversation.agent_messages(),
                system=self._system_prompt,
                tools=tools,
                max_tokens=self._max_tokens,
            )
            tool_uses = [
                block for block in response.content
                if getattr(block, "type", None) == "tool_use"
            ]

            if response.stop_reason != "tool_use" or not tool_uses:
                state = LoopState.DONE
                break
            if rounds >= self._max_tool_rounds:
                state = LoopState.ABORTED
                break

            state = LoopState.EXECUTING_TOOLS
            rounds += 1
            tool_results = []
            for tool_use in tool_uses:
                logger.info(f"Executing tool: {tool_use.name} (session {sid}, round {rounds})")
                result = await self._dispatcher.execute_tool(
                    tool_use.name,
                    tool_use.input,
                    patient_id,
                )
                tool_calls.append({
                    "tool": tool_use.name,
                    "input": tool_use.input,
                    "result": result,
                })
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": tool_use.id,
                    "content": json.dumps(result, default=str),
                })

            assistant_msg = conversation.append(
                "assistant", self._serialize_content_blocks(response.content)
            )
            results_msg = conversation.append("user", tool_results)
            await self._conversations.append(sid, assistant_msg, results_msg)
            state = LoopState.AWAITING_AGENT

        if state == LoopState.ABORTED:
            logger.error(
                f"Session {sid} hit the tool round limit ({self._max_tool_rounds})"
            )
            await self._conversations.append(
                sid, conversation.append("assistant", ABORTED_REPLY)
            )
            raise LoopBoundExceededError(sid, self._max_tool_rounds)

        text = self._extract_text(response)
        await self._conversations.append(sid, conversation.append("assistant", text))

        logger.info(f"Turn complete for session {sid}: {rounds} tool rounds")
        return TurnResult(
            session_id=sid,
            response_text=text,
            tool_calls=tool_calls,
            rounds=rounds,
        )

    async def get_history(self, patient_id: int, session_id: str) -> dict:
        """
        User-facing transcript of one of the patient's conversations.

        Raises:
            NotFoundError: unknown session or owned by another patient
        """
        conversation = await self._conversations.get(session_id)
        if conversation is None or conversation.patient_id != patient_id:
            raise NotFoundError("Conversation not found")
        return {
            "session_id": conversation.session_id,
            "messages": conversation.user_facing_messages(),
            "created_at": conversation.created_at.isoformat(),
        }

    def _serialize_content_blocks(self, content: list) -> list[dict]:
        """
        Serialize Anthropic content blocks to dicts.

        Anthropic SDK returns objects, but we need dicts for storage and API calls.
        """
        serialized = []
        for block in content:
            if isinstance(block, dict):
                serialized.append(block)
            elif getattr(block, "type", None) == "text":
                serialized.append({"type": "text", "text": block.text})
            elif getattr(block, "type", None) == "tool_use":
                serialized.append({
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input,
                })
        return serialized

    def _extract_text(self, response: Any) -> str:
        """Join all text blocks of the final reply."""
        texts = [
            block.text for block in response.content
            if getattr(block, "type", None) == "text" and block.text
        ]
        return "\n".join(texts) if texts else EMPTY_REPLY
