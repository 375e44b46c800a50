"""
Scheduling Module

Provides the appointment scheduling engine, its value types, the
conflict rule and the persistence contract it depends on.

Usage:
    from clinic_scheduler.core.scheduling import SchedulingEngine, SqlAppointmentStore

    engine = SchedulingEngine(SqlAppointmentStore(database))
    slots = await engine.check_availability(1, "2025-01-15", 30)
    appointment = await engine.schedule_appointment(
        patient_id=1,
        doctor_id=1,
        start_time="2025-01-15T10:00:00",
        end_time="2025-01-15T10:30:00",
        appointment_type="consultation",
    )
"""

# Errors
from clinic_scheduler.core.scheduling.errors import (
    SchedulingError,
    InvalidArgumentError,
    NotFoundError,
    ForbiddenError,
    ConflictError,
)

# Value types
from clinic_scheduler.core.scheduling.types import (
    AppointmentRecord,
    TimeRange,
    format_timestamp,
    parse_timestamp,
)

# Conflict rule and slots
from clinic_scheduler.core.scheduling.conflicts import find_conflicts, is_free, overlaps
from clinic_scheduler.core.scheduling.slots import generate_slots, validate_duration

# Persistence
from clinic_scheduler.core.scheduling.store import (
    AppointmentStore,
    ScheduleTransaction,
    SqlAppointmentStore,
)

# Engine
from clinic_scheduler.core.scheduling.engine import SchedulingEngine

__all__ = [
    # Errors
    "SchedulingError",
    "InvalidArgumentError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    # Value types
    "AppointmentRecord",
    "TimeRange",
    "format_timestamp",
    "parse_timestamp",
    # Conflict rule and slots
    "find_conflicts",
    "is_free",
    "overlaps",
    "generate_slots",
    "validate_duration",
    # Persistence
    "AppointmentStore",
    "ScheduleTransaction",
    "SqlAppointmentStore",
    # Engine
    "SchedulingEngine",
]
