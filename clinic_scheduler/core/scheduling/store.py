"""
Appointment Store Adapter.

``AppointmentStore`` is the persistence contract the engine depends on.
Conflict-checked writes happen inside ``doctor_schedule(doctor_id)``, which
yields a ``ScheduleTransaction``: while it is open no other write to that
doctor's schedule can interleave between the conflict check and the
insert/update.

``SqlAppointmentStore`` implements it on async SQLAlchemy. Per-doctor
serialization uses an in-process asyncio.Lock plus, on PostgreSQL,
``pg_advisory_xact_lock`` so separate worker processes agree as well.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import date, datetime, time, timedelta
from typing import AsyncGenerator, Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.scheduling.conflicts import overlap_clause
from clinic_scheduler.core.scheduling.errors import InvalidArgumentError
from clinic_scheduler.core.scheduling.types import AppointmentRecord, TimeRange
from clinic_scheduler.infra.database import Database
from clinic_scheduler.models.database import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    Doctor,
    Patient,
)

logger = logging.getLogger(__name__)


class ScheduleTransaction(ABC):
    """Operations available while a doctor's schedule is held."""

    doctor_id: int

    @abstractmethod
    async def find_conflicts(
        self,
        interval: TimeRange,
        exclude_id: Optional[int] = None,
    ) -> list[AppointmentRecord]:
        """Scheduled rows of this doctor overlapping ``interval``."""

    @abstractmethod
    async def insert(
        self,
        patient_id: int,
        interval: TimeRange,
        appointment_type: AppointmentType,
        summary: str,
    ) -> AppointmentRecord:
        """Insert a scheduled row and return it with its assigned id."""

    @abstractmethod
    async def update_interval(
        self,
        appointment_id: int,
        interval: TimeRange,
    ) -> Optional[AppointmentRecord]:
        """Move a still-scheduled row. None if it is no longer scheduled."""


class AppointmentStore(ABC):
    """Persistence contract for appointment rows."""

    @abstractmethod
    def doctor_schedule(self, doctor_id: int) -> AbstractAsyncContextManager[ScheduleTransaction]:
        """Hold one doctor's schedule for an atomic check-and-write."""

    @abstractmethod
    async def get_by_id(self, appointment_id: int) -> Optional[AppointmentRecord]:
        ...

    @abstractmethod
    async def update_status(
        self,
        appointment_id: int,
        status: AppointmentStatus,
    ) -> Optional[AppointmentRecord]:
        ...

    @abstractmethod
    async def list_by_doctor(
        self,
        doctor_id: int,
        date_range: Optional[TimeRange] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> list[AppointmentRecord]:
        ...

    @abstractmethod
    async def list_by_patient(
        self,
        patient_id: int,
        status: Optional[AppointmentStatus] = None,
    ) -> list[AppointmentRecord]:
        ...


def date_bounds(start_date: Optional[date], end_date: Optional[date]) -> Optional[TimeRange]:
    """Inclusive calendar-date bounds as a half-open TimeRange."""
    if start_date is None and end_date is None:
        return None
    if start_date and end_date and end_date < start_date:
        raise InvalidArgumentError("end_date must not be before start_date")
    lower = datetime.combine(start_date or date.min, time.min)
    upper = (
        datetime.combine(end_date, time.min) + timedelta(days=1)
        if end_date is not None
        else datetime.max
    )
    return TimeRange(lower, upper)


class SqlScheduleTransaction(ScheduleTransaction):
    """ScheduleTransaction bound to one open AsyncSession."""

    def __init__(self, session: AsyncSession, doctor_id: int):
        self._session = session
        self.doctor_id = doctor_id

    async def find_conflicts(
        self,
        interval: TimeRange,
        exclude_id: Optional[int] = None,
    ) -> list[AppointmentRecord]:
        stmt = (
            select(Appointment)
            .where(
                Appointment.doctor_id == self.doctor_id,
                Appointment.status == AppointmentStatus.SCHEDULED.value,
                overlap_clause(Appointment.start_time, Appointment.end_time, interval),
            )
            .order_by(Appointment.start_time)
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        rows = (await self._session.scalars(stmt)).all()
        return [AppointmentRecord.from_row(row) for row in rows]

    async def insert(
        self,
        patient_id: int,
        interval: TimeRange,
        appointment_type: AppointmentType,
        summary: str,
    ) -> AppointmentRecord:
        row = Appointment(
            patient_id=patient_id,
            doctor_id=self.doctor_id,
            start_time=interval.start,
            end_time=interval.end,
            type=appointment_type.value,
            status=AppointmentStatus.SCHEDULED.value,
            summary=summary,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as e:
            logger.warning(f"Appointment insert rejected by database: {e.orig}")
            raise InvalidArgumentError("Unknown doctor or patient")
        await self._session.refresh(row)
        return AppointmentRecord.from_row(row)

    async def update_interval(
        self,
        appointment_id: int,
        interval: TimeRange,
    ) -> Optional[AppointmentRecord]:
        result = await self._session.execute(
            update(Appointment)
            .where(
                Appointment.id == appointment_id,
                Appointment.doctor_id == self.doctor_id,
                Appointment.status == AppointmentStatus.SCHEDULED.value,
            )
            .values(start_time=interval.start, end_time=interval.end)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        row = await self._session.get(Appointment, appointment_id, populate_existing=True)
        return AppointmentRecord.from_row(row)


class SqlAppointmentStore(AppointmentStore):
    """AppointmentStore on async SQLAlchemy."""

    def __init__(self, database: Database):
        self._db = database
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def doctor_schedule(self, doctor_id: int) -> AsyncGenerator[SqlScheduleTransaction, None]:
        async with self._locks[doctor_id]:
            async with self._db.session() as session:
                if self._db.dialect == "postgresql":
                    await session.execute(
                        text("SELECT pg_advisory_xact_lock(:key)"),
                        {"key": doctor_id},
                    )
                yield SqlScheduleTransaction(session, doctor_id)

    async def get_by_id(self, appointment_id: int) -> Optional[AppointmentRecord]:
        async with self._db.session() as session:
            row = await session.get(Appointment, appointment_id)
            return AppointmentRecord.from_row(row) if row else None

    async def update_status(
        self,
        appointment_id: int,
        status: AppointmentStatus,
    ) -> Optional[AppointmentRecord]:
        async with self._db.session() as session:
            row = await session.get(Appointment, appointment_id)
            if row is None:
                return None
            row.status = status.value
            await session.flush()
            return AppointmentRecord.from_row(row)

    async def list_by_doctor(
        self,
        doctor_id: int,
        date_range: Optional[TimeRange] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> list[AppointmentRecord]:
        """Doctor's appointments in start order, joined with patient contact."""
        stmt = (
            select(Appointment, Patient)
            .join(Patient, Appointment.patient_id == Patient.id, isouter=True)
            .where(Appointment.doctor_id == doctor_id)
            .order_by(Appointment.start_time)
        )
        if date_range is not None:
            stmt = stmt.where(
                overlap_clause(Appointment.start_time, Appointment.end_time, date_range)
            )
        if status is not None:
            stmt = stmt.where(Appointment.status == status.value)

        async with self._db.session() as session:
            rows = (await session.execute(stmt)).all()

        return [
            AppointmentRecord.from_row(
                appt,
                patient_name=patient.name if patient else None,
                patient_email=patient.email if patient else None,
                patient_phone=patient.phone if patient else None,
            )
            for appt, patient in rows
        ]

    async def list_by_patient(
        self,
        patient_id: int,
        status: Optional[AppointmentStatus] = None,
    ) -> list[AppointmentRecord]:
        """Patient's appointments in start order, joined with doctor info."""
        stmt = (
            select(Appointment, Doctor)
            .join(Doctor, Appointment.doctor_id == Doctor.id, isouter=True)
            .where(Appointment.patient_id == patient_id)
            .order_by(Appointment.start_time)
        )
        if status is not None:
            stmt = stmt.where(Appointment.status == status.value)

        async with self._db.session() as session:
            rows = (await session.execute(stmt)).all()

        return [
            AppointmentRecord.from_row(
                appt,
                doctor_name=doctor.name if doctor else None,
                doctor_specialty=doctor.specialty if doctor else None,
            )
            for appt, doctor in rows
        ]
