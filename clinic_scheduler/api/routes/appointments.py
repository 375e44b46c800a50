"""
Appointment API Endpoints.

REST surface of the scheduling engine: availability, schedule, cancel,
reschedule, and the caller's own appointments. Engine errors are mapped
to HTTP statuses by the application's exception handlers.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from clinic_scheduler.api.deps import get_engine
from clinic_scheduler.api.middleware.auth import CurrentUser, get_current_user, require_role
from clinic_scheduler.api.schemas import ErrorResponse
from clinic_scheduler.core.scheduling.engine import SchedulingEngine
from clinic_scheduler.core.scheduling.types import parse_date
from clinic_scheduler.models.database import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


class ScheduleRequest(BaseModel):
    """New appointment request. Presence and format are checked by the engine."""

    doctor_id: Optional[Any] = Field(default=None, examples=[1])
    start_time: Optional[str] = Field(default=None, examples=["2025-01-15T10:00:00"])
    end_time: Optional[str] = Field(default=None, examples=["2025-01-15T10:30:00"])
    type: Optional[str] = Field(default=None, examples=["consultation"])
    conversation_summary: Optional[str] = Field(
        default=None,
        description="Reason for visit",
    )


class RescheduleRequest(BaseModel):
    """New interval for an existing appointment."""

    start_time: Optional[str] = Field(default=None, examples=["2025-01-15T11:00:00"])
    end_time: Optional[str] = Field(default=None, examples=["2025-01-15T11:30:00"])


@router.get(
    "/availability",
    summary="Check doctor availability",
    responses={400: {"model": ErrorResponse, "description": "Missing or invalid parameters"}},
)
async def availability(
    doctor_id: Optional[str] = Query(default=None),
    date: Optional[str] = Query(default=None, description="YYYY-MM-DD"),
    duration: Optional[str] = Query(default=None, description="Minutes (30 or 60)"),
    engine: SchedulingEngine = Depends(get_engine),
) -> dict:
    """Free slots for a doctor on one day."""
    slots = await engine.check_availability(doctor_id, date, duration)
    return {
        "doctor_id": int(doctor_id),
        "date": parse_date(date).isoformat(),
        "duration": int(duration),
        "available_slots": [slot.to_dict() for slot in slots],
    }


@router.post(
    "/schedule",
    status_code=status.HTTP_201_CREATED,
    summary="Schedule an appointment",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid type or missing fields"},
        409: {"model": ErrorResponse, "description": "Time slot conflict"},
    },
)
async def schedule(
    request: ScheduleRequest,
    user: CurrentUser = Depends(require_role(Role.PATIENT)),
    engine: SchedulingEngine = Depends(get_engine),
) -> dict:
    appointment = await engine.schedule_appointment(
        patient_id=user.id,
        doctor_id=request.doctor_id,
        start_time=request.start_time,
        end_time=request.end_time,
        appointment_type=request.type,
        summary=request.conversation_summary,
    )
    return appointment.to_dict()


@router.delete(
    "/{appointment_id}/cancel",
    summary="Cancel an appointment",
    responses={
        403: {"model": ErrorResponse, "description": "Not your appointment"},
        404: {"model": ErrorResponse, "description": "Appointment not found"},
    },
)
async def cancel(
    appointment_id: int,
    user: CurrentUser = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_engine),
) -> dict:
    appointment = await engine.cancel_appointment(user.id, user.role, appointment_id)
    return {"message": "Appointment cancelled successfully", "id": appointment.id}


@router.put(
    "/{appointment_id}/reschedule",
    summary="Reschedule an appointment",
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid times"},
        403: {"model": ErrorResponse, "description": "Not your appointment"},
        404: {"model": ErrorResponse, "description": "Not found or no longer scheduled"},
        409: {"model": ErrorResponse, "description": "Time slot conflict"},
    },
)
async def reschedule(
    appointment_id: int,
    request: RescheduleRequest,
    user: CurrentUser = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_engine),
) -> dict:
    appointment = await engine.reschedule_appointment(
        user.id,
        user.role,
        appointment_id,
        request.start_time,
        request.end_time,
    )
    return appointment.to_dict()


@router.get(
    "",
    summary="List my appointments",
    description="Upcoming (scheduled) appointments of the authenticated patient.",
)
async def my_appointments(
    user: CurrentUser = Depends(require_role(Role.PATIENT)),
    engine: SchedulingEngine = Depends(get_engine),
) -> dict:
    appointments = await engine.list_patient_appointments(user.id)
    return {
        "appointments": [a.to_dict() for a in appointments],
        "count": len(appointments),
    }
