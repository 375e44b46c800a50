"""
Demo directory data for development.

Inserts three doctors and three patients when the directory is empty.
"""

import logging

from sqlalchemy import func, select

from clinic_scheduler.infra.database import Database
from clinic_scheduler.models.database import Doctor, Patient

logger = logging.getLogger(__name__)

DEMO_DOCTORS = [
    {"name": "Dr. Sarah Williams", "specialty": "Cardiologist", "email": "sarah@clinic.com"},
    {"name": "Dr. Michael Chen", "specialty": "Dermatologist", "email": "michael@clinic.com"},
    {"name": "Dr. Emily Rodriguez", "specialty": "General Practitioner", "email": "emily@clinic.com"},
]

DEMO_PATIENTS = [
    {"name": "John Doe", "email": "john@example.com", "phone": "555-0101"},
    {"name": "Jane Smith", "email": "jane@example.com", "phone": "555-0102"},
    {"name": "Bob Johnson", "email": "bob@example.com", "phone": "555-0103"},
]


async def seed_directory(database: Database) -> bool:
    """
    Seed doctors and patients.

    Returns:
        True if rows were inserted, False if the directory already had data
    """
    async with database.session() as session:
        doctors = await session.scalar(select(func.count()).select_from(Doctor))
        patients = await session.scalar(select(func.count()).select_from(Patient))
        if doctors or patients:
            logger.info("Directory already seeded, skipping")
            return False

        session.add_all(Patient(**data) for data in DEMO_PATIENTS)
        session.add_all(Doctor(**data) for data in DEMO_DOCTORS)

    logger.info(
        f"Seeded {len(DEMO_PATIENTS)} patients and {len(DEMO_DOCTORS)} doctors"
    )
    return True
