"""
Directory Store

Read-only lookup of doctors and clinic metadata. Backs the
/api/doctors and /api/clinic routes and the get_clinic_info and
list_doctors tools.
"""

import logging
from typing import Optional

from sqlalchemy import select

from clinic_scheduler.infra.database import Database
from clinic_scheduler.models.database import Doctor

logger = logging.getLogger(__name__)


class Directory:
    """Doctor lookups plus static clinic information."""

    def __init__(self, database: Database, clinic_info: dict):
        self._db = database
        self._clinic_info = dict(clinic_info)

    def clinic_info(self) -> dict:
        return dict(self._clinic_info)

    async def list_doctors(self, specialty: Optional[str] = None) -> list[dict]:
        """
        List doctors, optionally filtered by exact specialty.

        Args:
            specialty: e.g. "Cardiologist". Empty or None lists everyone.
        """
        stmt = select(Doctor).order_by(Doctor.id)
        if specialty:
            stmt = stmt.where(Doctor.specialty == specialty)

        async with self._db.session() as session:
            doctors = (await session.scalars(stmt)).all()

        logger.debug(f"Listed {len(doctors)} doctors (specialty={specialty!r})")
        return [doctor.to_dict() for doctor in doctors]

    async def get_doctor(self, doctor_id: int) -> Optional[dict]:
        async with self._db.session() as session:
            doctor = await session.get(Doctor, doctor_id)
            return doctor.to_dict() if doctor else None
