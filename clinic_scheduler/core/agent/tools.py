"""
Scheduling tools for the conversational agent.

Declares the tool set in Anthropic tool_use format and executes tool calls
against the scheduling engine and the directory. Every call returns a
JSON-serializable dict; failures come back as ``{"error": message}`` so
the agent can narrate them.

Tools acting for "the current patient" never take a patient id from the
agent. The authenticated patient id is passed in by the conversation loop.
"""

import logging
from typing import Any

from clinic_scheduler.core.scheduling.engine import SchedulingEngine
from clinic_scheduler.core.scheduling.errors import SchedulingError
from clinic_scheduler.core.scheduling.types import parse_date
from clinic_scheduler.infra.directory import Directory
from clinic_scheduler.models.database import Role

logger = logging.getLogger(__name__)

TOOLS: list[dict] = [
    {
        "name": "get_clinic_info",
        "description": (
            "Get information about the clinic including hours, location, "
            "and contact details."
        ),
        "input_schema": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    {
        "name": "list_doctors",
        "description": (
            "Get a list of all available doctors with their specialties. "
            "Use this to recommend a doctor or to find a doctor's ID."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "specialty": {
                    "type": "string",
                    "description": (
                        "Optional: filter doctors by specialty "
                        "(e.g., Cardiologist, Dermatologist)."
                    ),
                },
            },
            "required": [],
        },
    },
    {
        "name": "check_availability",
        "description": (
            "Check available time slots for a specific doctor on a given date. "
            "ALWAYS call this before scheduling - never assume availability."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "doctor_id": {
                    "type": "integer",
                    "description": "The ID of the doctor.",
                },
                "date": {
                    "type": "string",
                    "description": "Date in YYYY-MM-DD format.",
                },
                "duration": {
                    "type": "integer",
                    "description": "Appointment duration in minutes (30 or 60).",
                    "enum": [30, 60],
                },
            },
            "required": ["doctor_id", "date", "duration"],
        },
    },
    {
        "name": "schedule_appointment",
        "description": (
            "Schedule a new appointment for the current patient. "
            "ALWAYS confirm the details with the patient before calling this."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "doctor_id": {
                    "type": "integer",
                    "description": "The ID of the doctor.",
                },
                "start_time": {
                    "type": "string",
                    "description": "Start time in local clinic time, YYYY-MM-DDTHH:MM:SS.",
                },
                "end_time": {
                    "type": "string",
                    "description": "End time in local clinic time, YYYY-MM-DDTHH:MM:SS.",
                },
                "type": {
                    "type": "string",
                    "description": "Type of appointment.",
                    "enum": ["consultation", "follow-up", "emergency"],
                },
                "summary": {
                    "type": "string",
                    "description": "Brief summary of the reason for visit and conversation context.",
                },
            },
            "required": ["doctor_id", "start_time", "end_time", "type"],
        },
    },
    {
        "name": "cancel_appointment",
        "description": (
            "Cancel one of the current patient's appointments. "
            "ALWAYS confirm cancellation with the patient before calling this."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "appointment_id": {
                    "type": "integer",
                    "description": "The ID of the appointment to cancel.",
                },
            },
            "required": ["appointment_id"],
        },
    },
    {
        "name": "reschedule_appointment",
        "description": "Move one of the current patient's appointments to a new time.",
        "input_schema": {
            "type": "object",
            "properties": {
                "appointment_id": {
                    "type": "integer",
                    "description": "The ID of the appointment to reschedule.",
                },
                "start_time": {
                    "type": "string",
                    "description": "New start time in local clinic time, YYYY-MM-DDTHH:MM:SS.",
                },
                "end_time": {
                    "type": "string",
                    "description": "New end time in local clinic time, YYYY-MM-DDTHH:MM:SS.",
                },
            },
            "required": ["appointment_id", "start_time", "end_time"],
        },
    },
    {
        "name": "get_patient_appointments",
        "description": "Get all upcoming appointments for the current patient.",
        "input_schema": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
]

TOOL_NAMES = frozenset(tool["name"] for tool in TOOLS)


class SchedulingToolDispatcher:
    """
    Executes agent tool calls for one authenticated patient at a time.

    Usage:
        dispatcher = SchedulingToolDispatcher(engine, directory)
        result = await dispatcher.execute_tool(
            "check_availability",
            {"doctor_id": 1, "date": "2025-01-15", "duration": 30},
            patient_id=1,
        )
    """

    def __init__(self, engine: SchedulingEngine, directory: Directory):
        self._engine = engine
        self._directory = directory

    def get_anthropic_tools(self) -> list[dict]:
        """Return the tool set in Anthropic tool_use format."""
        return [dict(tool) for tool in TOOLS]

    async def execute_tool(
        self,
        tool_name: str,
        tool_input: Any,
        patient_id: int,
    ) -> dict:
        """
        Execute one tool call.

        Args:
            tool_name: Name requested by the agent
            tool_input: Arguments requested by the agent
            patient_id: Authenticated patient for this turn

        Returns:
            Tool result dict; never raises
        """
        args = tool_input if isinstance(tool_input, dict) else {}

        try:
            match tool_name:
                case "get_clinic_info":
                    return self._directory.clinic_info()
                case "list_doctors":
                    return await self._list_doctors(args)
                case "check_availability":
                    return await self._check_availability(args)
                case "schedule_appointment":
                    return await self._schedule(args, patient_id)
                case "cancel_appointment":
                    return await self._cancel(args, patient_id)
                case "reschedule_appointment":
                    return await self._reschedule(args, patient_id)
                case "get_patient_appointments":
                    return await self._patient_appointments(patient_id)
                case _:
                    logger.warning(f"Agent requested unknown tool: {tool_name}")
                    return {"error": f"Unknown tool: {tool_name}"}
        except SchedulingError as e:
            logger.info(f"Tool {tool_name} rejected: {e.message}")
            return {"error": e.message}
        except Exception:
            logger.exception(f"Tool execution failed: {tool_name}")
            return {"error": "Tool execution failed"}

    async def _list_doctors(self, args: dict) -> dict:
        doctors = await self._directory.list_doctors(args.get("specialty") or None)
        return {"doctors": doctors, "count": len(doctors)}

    async def _check_availability(self, args: dict) -> dict:
        slots = await self._engine.check_availability(
            args.get("doctor_id"),
            args.get("date"),
            args.get("duration"),
        )
        return {
            "doctor_id": int(args["doctor_id"]),
            "date": parse_date(args["date"]).isoformat(),
            "duration": int(args["duration"]),
            "available_slots": [slot.to_dict() for slot in slots],
        }

    async def _schedule(self, args: dict, patient_id: int) -> dict:
        appointment = await self._engine.schedule_appointment(
            patient_id=patient_id,
            doctor_id=args.get("doctor_id"),
            start_time=args.get("start_time"),
            end_time=args.get("end_time"),
            appointment_type=args.get("type"),
            summary=args.get("summary") or "",
        )
        return {"success": True, "appointment": appointment.to_dict()}

    async def _cancel(self, args: dict, patient_id: int) -> dict:
        appointment = await self._engine.cancel_appointment(
            patient_id,
            Role.PATIENT,
            args.get("appointment_id"),
        )
        return {
            "success": True,
            "message": "Appointment cancelled successfully",
            "id": appointment.id,
        }

    async def _reschedule(self, args: dict, patient_id: int) -> dict:
        appointment = await self._engine.reschedule_appointment(
            patient_id,
            Role.PATIENT,
            args.get("appointment_id"),
            args.get("start_time"),
            args.get("end_time"),
        )
        return {"success": True, "appointment": appointment.to_dict()}

    async def _patient_appointments(self, patient_id: int) -> dict:
        appointments = await self._engine.list_patient_appointments(patient_id)
        return {
            "appointments": [appointment.to_dict() for appointment in appointments],
            "count": len(appointments),
        }
