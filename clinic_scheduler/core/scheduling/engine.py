"""
Scheduling Engine.

Public operation set shared by the REST routes and the assistant's tools:
check availability, schedule, cancel and reschedule. Both call paths go
through the same conflict rule and the same per-doctor atomic write.
"""

import logging
from datetime import date
from typing import Any, Iterable, Optional

from clinic_scheduler.config import BusinessHours
from clinic_scheduler.core.scheduling.conflicts import is_free
from clinic_scheduler.core.scheduling.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from clinic_scheduler.core.scheduling.slots import day_window, generate_slots, validate_duration
from clinic_scheduler.core.scheduling.store import AppointmentStore, date_bounds
from clinic_scheduler.core.scheduling.types import (
    AppointmentRecord,
    TimeRange,
    parse_date,
    parse_id,
)
from clinic_scheduler.models.database import AppointmentStatus, AppointmentType, Role

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Time slot conflict - appointment already exists at this time"


def parse_appointment_type(value: Any) -> AppointmentType:
    allowed = ", ".join(t.value for t in AppointmentType)
    if not value:
        raise InvalidArgumentError("type is required")
    try:
        return AppointmentType(value)
    except ValueError:
        raise InvalidArgumentError(f"Type must be one of: {allowed}")


def parse_role(value: Any) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown role: {value}")


class SchedulingEngine:
    """
    Appointment scheduling operations.

    State machine per appointment: scheduled -> cancelled (terminal) and
    scheduled -> scheduled (reschedule). Validation and authorization run
    before any write; conflicts are detected inside the atomic write.
    """

    def __init__(
        self,
        store: AppointmentStore,
        business_hours: Optional[BusinessHours] = None,
        allowed_durations: Iterable[int] = (30, 60),
    ):
        self._store = store
        self._hours = business_hours or BusinessHours()
        self._durations = list(allowed_durations)

    async def check_availability(
        self,
        doctor_id: Any,
        day: Any,
        duration: Any,
    ) -> list[TimeRange]:
        """Free windows of ``duration`` minutes for a doctor on one day."""
        if doctor_id in (None, "") or day in (None, "") or duration in (None, ""):
            raise InvalidArgumentError("doctor_id, date, and duration are required")

        doctor = parse_id(doctor_id, "doctor_id")
        target = parse_date(day)
        minutes = validate_duration(duration, self._durations)

        booked = await self._store.list_by_doctor(
            doctor,
            date_range=day_window(target),
            status=AppointmentStatus.SCHEDULED,
        )
        candidates = generate_slots(target, minutes, self._hours)
        return [slot for slot in candidates if is_free(slot, booked)]

    async def schedule_appointment(
        self,
        patient_id: int,
        doctor_id: Any,
        start_time: Any,
        end_time: Any,
        appointment_type: Any,
        summary: Optional[str] = None,
    ) -> AppointmentRecord:
        """
        Book a new appointment.

        The conflict check covers all of the doctor's scheduled rows, not
        just the requested day.

        Raises:
            InvalidArgumentError: missing fields, bad type, end <= start
            ConflictError: overlaps a scheduled appointment
        """
        if doctor_id in (None, "") or not start_time or not end_time or not appointment_type:
            raise InvalidArgumentError(
                "doctor_id, start_time, end_time, and type are required"
            )

        doctor = parse_id(doctor_id, "doctor_id")
        kind = parse_appointment_type(appointment_type)
        interval = TimeRange.parse(start_time, end_time)

        async with self._store.doctor_schedule(doctor) as tx:
            conflicts = await tx.find_conflicts(interval)
            if conflicts:
                logger.warning(
                    f"Schedule conflict for doctor {doctor} at "
                    f"{interval.to_dict()} (existing: {[c.id for c in conflicts]})"
                )
                raise ConflictError(CONFLICT_MESSAGE)
            appointment = await tx.insert(patient_id, interval, kind, summary or "")

        logger.info(
            f"Appointment {appointment.id} scheduled: patient={patient_id} "
            f"doctor={doctor} start={interval.to_dict()['start_time']}"
        )
        return appointment

    async def cancel_appointment(
        self,
        actor_id: int,
        actor_role: Any,
        appointment_id: Any,
    ) -> AppointmentRecord:
        """
        Cancel an appointment.

        Cancelling an already-cancelled appointment succeeds without change.
        Doctors are not ownership-checked.
        """
        role = parse_role(actor_role)
        target_id = parse_id(appointment_id, "appointment_id")

        existing = await self._store.get_by_id(target_id)
        if existing is None:
            raise NotFoundError("Appointment not found")
        self._authorize(actor_id, role, existing, "cancel")

        if not existing.is_scheduled:
            logger.debug(f"Appointment {target_id} already cancelled")
            return existing

        updated = await self._store.update_status(target_id, AppointmentStatus.CANCELLED)
        logger.info(f"Appointment {target_id} cancelled by {role.value} {actor_id}")
        return updated

    async def reschedule_appointment(
        self,
        actor_id: int,
        actor_role: Any,
        appointment_id: Any,
        start_time: Any,
        end_time: Any,
    ) -> AppointmentRecord:
        """
        Move a scheduled appointment to a new interval, keeping its id.

        Raises:
            InvalidArgumentError: missing or invalid times
            NotFoundError: unknown id, or the row is not scheduled anymore
            ForbiddenError: patient acting on another patient's row
            ConflictError: new interval overlaps another scheduled row
        """
        if not start_time or not end_time:
            raise InvalidArgumentError("start_time and end_time are required")

        role = parse_role(actor_role)
        target_id = parse_id(appointment_id, "appointment_id")
        interval = TimeRange.parse(start_time, end_time)

        existing = await self._store.get_by_id(target_id)
        if existing is None or not existing.is_scheduled:
            raise NotFoundError("Appointment not found or no longer scheduled")
        self._authorize(actor_id, role, existing, "reschedule")

        async with self._store.doctor_schedule(existing.doctor_id) as tx:
            conflicts = await tx.find_conflicts(interval, exclude_id=target_id)
            if conflicts:
                logger.warning(
                    f"Reschedule conflict for appointment {target_id} "
                    f"(existing: {[c.id for c in conflicts]})"
                )
                raise ConflictError(CONFLICT_MESSAGE)
            updated = await tx.update_interval(target_id, interval)

        if updated is None:
            raise NotFoundError("Appointment not found or no longer scheduled")

        logger.info(
            f"Appointment {target_id} rescheduled to {interval.to_dict()['start_time']}"
        )
        return updated

    async def list_patient_appointments(self, patient_id: int) -> list[AppointmentRecord]:
        """Upcoming (scheduled) appointments of one patient."""
        return await self._store.list_by_patient(
            patient_id, status=AppointmentStatus.SCHEDULED
        )

    async def list_doctor_appointments(
        self,
        doctor_id: Any,
        start_date: Optional[Any] = None,
        end_date: Optional[Any] = None,
    ) -> list[AppointmentRecord]:
        """All of a doctor's appointments, optionally within inclusive dates."""
        doctor = parse_id(doctor_id, "doctor_id")
        lower: Optional[date] = parse_date(start_date, "start_date") if start_date else None
        upper: Optional[date] = parse_date(end_date, "end_date") if end_date else None
        return await self._store.list_by_doctor(doctor, date_range=date_bounds(lower, upper))

    def _authorize(
        self,
        actor_id: int,
        role: Role,
        appointment: AppointmentRecord,
        action: str,
    ) -> None:
        # Doctors may act on any appointment.
        if role == Role.PATIENT and appointment.patient_id != actor_id:
            logger.warning(
                f"Patient {actor_id} refused to {action} appointment {appointment.id}"
            )
            raise ForbiddenError(f"Not authorized to {action} this appointment")
