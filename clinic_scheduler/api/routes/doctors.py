"""
Doctor directory and doctor schedule endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from clinic_scheduler.api.deps import get_directory, get_engine
from clinic_scheduler.api.middleware.auth import CurrentUser, require_role
from clinic_scheduler.core.scheduling.engine import SchedulingEngine
from clinic_scheduler.core.scheduling.errors import NotFoundError
from clinic_scheduler.infra.directory import Directory
from clinic_scheduler.models.database import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.get("", summary="List doctors")
async def list_doctors(
    specialty: Optional[str] = Query(default=None, examples=["Cardiologist"]),
    directory: Directory = Depends(get_directory),
) -> dict:
    """All doctors, optionally filtered by exact specialty."""
    return {"doctors": await directory.list_doctors(specialty)}


@router.get(
    "/{doctor_id}/appointments",
    summary="Doctor's appointments",
    description="All appointments of a doctor in start order, with patient contact details.",
    responses={404: {"description": "Doctor not found"}},
)
async def doctor_appointments(
    doctor_id: int,
    start_date: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    end_date: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    user: CurrentUser = Depends(require_role(Role.DOCTOR)),
    engine: SchedulingEngine = Depends(get_engine),
    directory: Directory = Depends(get_directory),
) -> dict:
    if await directory.get_doctor(doctor_id) is None:
        raise NotFoundError("Doctor not found")
    appointments = await engine.list_doctor_appointments(doctor_id, start_date, end_date)
    logger.debug(f"Doctor {user.id} listed {len(appointments)} appointments of doctor {doctor_id}")
    return {"appointments": [a.to_dict() for a in appointments]}
