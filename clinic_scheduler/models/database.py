"""
Database Models

SQLAlchemy ORM models for the clinic scheduler. All timestamps are naive
local-calendar values; no timezone offset is stored.
"""

from datetime import datetime
from enum import Enum
from typing import List

from sqlalchemy import (
    CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds a created_at column."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class AppointmentType(str, Enum):
    """Appointment type enumeration."""
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow-up"
    EMERGENCY = "emergency"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration. Cancelled is terminal."""
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class Role(str, Enum):
    """Authenticated subject role."""
    PATIENT = "patient"
    DOCTOR = "doctor"


class Doctor(Base, TimestampMixin):
    """Doctor directory record."""

    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    specialty: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="doctor"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "specialty": self.specialty,
            "email": self.email,
        }

    def __repr__(self) -> str:
        return f"<Doctor(id={self.id}, name='{self.name}', specialty='{self.specialty}')>"


class Patient(Base, TimestampMixin):
    """Patient directory record."""

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)

    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="patient"
    )

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, name='{self.name}')>"


class Appointment(Base, TimestampMixin):
    """
    Appointment model.

    Never physically deleted. Only start_time/end_time (reschedule) and
    status (cancel) change after insert.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointment_doctor_start", "doctor_id", "start_time"),
        Index("idx_appointment_patient", "patient_id"),
        Index("idx_appointment_status", "status"),
        CheckConstraint("end_time > start_time", name="ck_appointment_interval"),
        CheckConstraint(
            "type IN ('consultation', 'follow-up', 'emergency')",
            name="ck_appointment_type",
        ),
        CheckConstraint(
            "status IN ('scheduled', 'cancelled')",
            name="ck_appointment_status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("patients.id"),
        nullable=False
    )
    doctor_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("doctors.id"),
        nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=AppointmentStatus.SCHEDULED.value,
        nullable=False
    )
    summary: Mapped[str] = mapped_column(Text, default="", nullable=False)

    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="appointments")
    patient: Mapped["Patient"] = relationship("Patient", back_populates="appointments")

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, "
            f"doctor_id={self.doctor_id}, start={self.start_time}, "
            f"status={self.status})>"
        )
