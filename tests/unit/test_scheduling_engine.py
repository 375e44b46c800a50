"""Tests for the scheduling engine against a real (SQLite) store."""

import asyncio
from datetime import datetime

import pytest

from clinic_scheduler.core.scheduling.conflicts import overlaps
from clinic_scheduler.core.scheduling.engine import CONFLICT_MESSAGE
from clinic_scheduler.core.scheduling.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from clinic_scheduler.core.scheduling.types import AppointmentRecord
from clinic_scheduler.models.database import AppointmentStatus, AppointmentType, Role
from tests.fakes import BOB, DR_CHEN, DR_WILLIAMS, JANE, JOHN

DAY = "2025-12-24"


def ts(hour: int, minute: int = 0, day: int = 24) -> str:
    return f"2025-12-{day:02d}T{hour:02d}:{minute:02d}:00"


async def book(engine, patient_id=JOHN, doctor_id=DR_WILLIAMS, start=ts(11), end=ts(11, 30), **kwargs):
    return await engine.schedule_appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        start_time=start,
        end_time=end,
        appointment_type=kwargs.pop("appointment_type", "consultation"),
        **kwargs,
    )


class TestScheduleAppointment:
    """Test booking."""

    @pytest.mark.asyncio
    async def test_round_trip(self, engine, store):
        """Stored row equals the request plus id and scheduled status."""
        created = await book(engine, summary="Chest pain follow-up")

        stored = await store.get_by_id(created.id)
        assert stored is not None
        assert stored.id == created.id
        assert stored.patient_id == JOHN
        assert stored.doctor_id == DR_WILLIAMS
        assert stored.start_time == datetime(2025, 12, 24, 11, 0)
        assert stored.end_time == datetime(2025, 12, 24, 11, 30)
        assert stored.type == AppointmentType.CONSULTATION
        assert stored.status == AppointmentStatus.SCHEDULED
        assert stored.summary == "Chest pain follow-up"

    @pytest.mark.asyncio
    async def test_summary_defaults_to_empty(self, engine):
        created = await book(engine)

        assert created.summary == ""
        assert created.to_dict()["start_time"] == ts(11)

    @pytest.mark.asyncio
    async def test_bogus_type_rejected(self, engine):
        with pytest.raises(InvalidArgumentError, match="Type must be one of"):
            await book(engine, appointment_type="bogus")

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, engine):
        with pytest.raises(InvalidArgumentError, match="end_time must be after start_time"):
            await book(engine, start=ts(11, 30), end=ts(11))

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, engine):
        with pytest.raises(InvalidArgumentError, match="required"):
            await book(engine, doctor_id=None)

    @pytest.mark.asyncio
    async def test_unknown_doctor_rejected(self, engine):
        with pytest.raises(InvalidArgumentError, match="Unknown doctor or patient"):
            await book(engine, doctor_id=999)

        assert await engine.list_doctor_appointments(999) == []

    @pytest.mark.asyncio
    async def test_unknown_patient_rejected(self, engine):
        with pytest.raises(InvalidArgumentError, match="Unknown doctor or patient"):
            await book(engine, patient_id=4242)

        assert await engine.list_patient_appointments(4242) == []
        assert await engine.list_doctor_appointments(DR_WILLIAMS) == []

    @pytest.mark.asyncio
    async def test_overlap_conflicts(self, engine):
        """Patient B cannot take patient A's interval."""
        await book(engine, patient_id=JOHN)

        with pytest.raises(ConflictError) as exc:
            await book(engine, patient_id=JANE)
        assert exc.value.message == CONFLICT_MESSAGE

        rows = await engine.list_doctor_appointments(DR_WILLIAMS)
        assert len(rows) == 1
        assert rows[0].patient_id == JOHN

    @pytest.mark.asyncio
    async def test_touching_appointments_allowed(self, engine):
        """[10:00,10:30) next to [10:30,11:00) is fine; [10:00,10:31) is not."""
        await book(engine, start=ts(10, 30), end=ts(11))

        await book(engine, patient_id=JANE, start=ts(10), end=ts(10, 30))
        with pytest.raises(ConflictError):
            await book(engine, patient_id=BOB, start=ts(10, 1), end=ts(10, 31))

    @pytest.mark.asyncio
    async def test_other_doctor_not_affected(self, engine):
        await book(engine, doctor_id=DR_WILLIAMS)

        created = await book(engine, patient_id=JANE, doctor_id=DR_CHEN)
        assert created.doctor_id == DR_CHEN

    @pytest.mark.asyncio
    async def test_conflict_check_is_not_day_scoped(self, engine):
        """An appointment spanning midnight blocks the next morning."""
        await book(engine, start=ts(23, 30), end=ts(0, 30, day=25))

        with pytest.raises(ConflictError):
            await book(engine, patient_id=JANE, start=ts(0, 0, day=25), end=ts(0, 30, day=25))

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rebooked(self, engine):
        first = await book(engine)
        await engine.cancel_appointment(JOHN, Role.PATIENT, first.id)

        second = await book(engine, patient_id=JANE)
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_concurrent_requests_exactly_one_wins(self, engine):
        """Two simultaneous identical bookings: one succeeds, one conflicts."""
        results = await asyncio.gather(
            book(engine, patient_id=JOHN),
            book(engine, patient_id=JANE),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, AppointmentRecord)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == 1

        rows = await engine.list_doctor_appointments(DR_WILLIAMS)
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_many_concurrent_overlapping_requests(self, engine):
        """Staggered overlapping requests never produce overlapping rows."""
        requests = [
            book(engine, patient_id=JOHN, start=ts(9, m), end=ts(9, m + 30))
            for m in (0, 10, 20, 29)
        ]
        results = await asyncio.gather(*requests, return_exceptions=True)

        assert sum(isinstance(r, AppointmentRecord) for r in results) == 1
        assert sum(isinstance(r, ConflictError) for r in results) == 3


class TestCheckAvailability:
    """Test availability."""

    @pytest.mark.asyncio
    async def test_empty_day(self, engine):
        slots = await engine.check_availability(DR_WILLIAMS, DAY, 30)

        assert len(slots) == 18

    @pytest.mark.asyncio
    async def test_booked_interval_disappears(self, engine):
        """After booking, the interval is no longer offered."""
        before = await engine.check_availability(DR_WILLIAMS, DAY, 30)
        assert ts(10) in [s.to_dict()["start_time"] for s in before]

        await book(engine, start=ts(10), end=ts(10, 30))

        after = await engine.check_availability(DR_WILLIAMS, DAY, 30)
        assert len(after) == 17
        assert ts(10) not in [s.to_dict()["start_time"] for s in after]

    @pytest.mark.asyncio
    async def test_no_slot_overlaps_a_scheduled_appointment(self, engine):
        """Cross-check returned slots against the conflict predicate."""
        await book(engine, start=ts(9, 15), end=ts(9, 45))
        await book(engine, patient_id=JANE, start=ts(13), end=ts(14))
        booked = await engine.list_doctor_appointments(DR_WILLIAMS)

        slots = await engine.check_availability(DR_WILLIAMS, DAY, 60)

        assert slots
        for slot in slots:
            for appt in booked:
                assert not overlaps(slot.start, slot.end, appt.start_time, appt.end_time)

    @pytest.mark.asyncio
    async def test_cancelled_appointments_do_not_block(self, engine):
        created = await book(engine, start=ts(10), end=ts(10, 30))
        await engine.cancel_appointment(JOHN, Role.PATIENT, created.id)

        slots = await engine.check_availability(DR_WILLIAMS, DAY, 30)
        assert len(slots) == 18

    @pytest.mark.asyncio
    async def test_duration_45_rejected(self, engine):
        with pytest.raises(InvalidArgumentError, match="Duration must be one of: 30, 60 minutes"):
            await engine.check_availability(DR_WILLIAMS, DAY, 45)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "doctor_id,day,duration",
        [(None, DAY, 30), (DR_WILLIAMS, None, 30), (DR_WILLIAMS, DAY, None), (DR_WILLIAMS, "24/12/2025", 30)],
    )
    async def test_missing_or_malformed_params(self, engine, doctor_id, day, duration):
        with pytest.raises(InvalidArgumentError):
            await engine.check_availability(doctor_id, day, duration)


class TestCancelAppointment:
    """Test cancellation."""

    @pytest.mark.asyncio
    async def test_cancel(self, engine, store):
        created = await book(engine)

        cancelled = await engine.cancel_appointment(JOHN, Role.PATIENT, created.id)

        assert cancelled.status == AppointmentStatus.CANCELLED
        assert (await store.get_by_id(created.id)).status == AppointmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, engine, store):
        """Second cancel succeeds and leaves the interval untouched."""
        created = await book(engine)
        await engine.cancel_appointment(JOHN, Role.PATIENT, created.id)

        again = await engine.cancel_appointment(JOHN, Role.PATIENT, created.id)

        assert again.status == AppointmentStatus.CANCELLED
        stored = await store.get_by_id(created.id)
        assert stored.start_time == created.start_time
        assert stored.end_time == created.end_time

    @pytest.mark.asyncio
    async def test_unknown_id(self, engine):
        with pytest.raises(NotFoundError):
            await engine.cancel_appointment(JOHN, Role.PATIENT, 9999)

    @pytest.mark.asyncio
    async def test_other_patient_forbidden(self, engine, store):
        created = await book(engine, patient_id=JOHN)

        with pytest.raises(ForbiddenError):
            await engine.cancel_appointment(JANE, Role.PATIENT, created.id)
        assert (await store.get_by_id(created.id)).is_scheduled

    @pytest.mark.asyncio
    async def test_doctor_unrestricted(self, engine):
        """Doctors are not ownership-checked."""
        created = await book(engine, doctor_id=DR_WILLIAMS)

        cancelled = await engine.cancel_appointment(DR_CHEN, Role.DOCTOR, created.id)
        assert cancelled.status == AppointmentStatus.CANCELLED


class TestRescheduleAppointment:
    """Test rescheduling."""

    @pytest.mark.asyncio
    async def test_reschedule_keeps_identity(self, engine, store):
        created = await book(engine)

        moved = await engine.reschedule_appointment(
            JOHN, Role.PATIENT, created.id, ts(14), ts(14, 30)
        )

        assert moved.id == created.id
        assert moved.start_time == datetime(2025, 12, 24, 14, 0)
        stored = await store.get_by_id(created.id)
        assert stored.end_time == datetime(2025, 12, 24, 14, 30)
        assert stored.summary == created.summary

    @pytest.mark.asyncio
    async def test_reschedule_overlapping_itself(self, engine):
        """The row being moved does not conflict with itself."""
        created = await book(engine, start=ts(10), end=ts(10, 30))

        moved = await engine.reschedule_appointment(
            JOHN, Role.PATIENT, created.id, ts(10, 15), ts(10, 45)
        )
        assert moved.start_time == datetime(2025, 12, 24, 10, 15)

    @pytest.mark.asyncio
    async def test_reschedule_conflict(self, engine, store):
        first = await book(engine, start=ts(10), end=ts(10, 30))
        await book(engine, patient_id=JANE, start=ts(11), end=ts(11, 30))

        with pytest.raises(ConflictError):
            await engine.reschedule_appointment(
                JOHN, Role.PATIENT, first.id, ts(11), ts(11, 30)
            )
        assert (await store.get_by_id(first.id)).start_time == datetime(2025, 12, 24, 10, 0)

    @pytest.mark.asyncio
    async def test_reschedule_cancelled_is_not_found(self, engine):
        """Cancelled appointments are not mutable targets."""
        created = await book(engine)
        await engine.cancel_appointment(JOHN, Role.PATIENT, created.id)

        with pytest.raises(NotFoundError, match="no longer scheduled"):
            await engine.reschedule_appointment(
                JOHN, Role.PATIENT, created.id, ts(14), ts(14, 30)
            )

    @pytest.mark.asyncio
    async def test_reschedule_other_patient_forbidden(self, engine):
        created = await book(engine, patient_id=JOHN)

        with pytest.raises(ForbiddenError):
            await engine.reschedule_appointment(
                JANE, Role.PATIENT, created.id, ts(14), ts(14, 30)
            )

    @pytest.mark.asyncio
    async def test_reschedule_requires_both_times(self, engine):
        created = await book(engine)

        with pytest.raises(InvalidArgumentError):
            await engine.reschedule_appointment(JOHN, Role.PATIENT, created.id, ts(14), None)


class TestListing:
    """Test list helpers."""

    @pytest.mark.asyncio
    async def test_patient_sees_only_scheduled_own(self, engine):
        kept = await book(engine, patient_id=JOHN, start=ts(9), end=ts(9, 30))
        dropped = await book(engine, patient_id=JOHN, start=ts(10), end=ts(10, 30))
        await book(engine, patient_id=JANE, start=ts(11), end=ts(11, 30))
        await engine.cancel_appointment(JOHN, Role.PATIENT, dropped.id)

        rows = await engine.list_patient_appointments(JOHN)

        assert [r.id for r in rows] == [kept.id]
        assert rows[0].to_dict()["doctor_name"] == "Dr. Sarah Williams"

    @pytest.mark.asyncio
    async def test_doctor_listing_date_bounds(self, engine):
        await book(engine, start=ts(9, day=23), end=ts(9, 30, day=23))
        await book(engine, start=ts(9, day=24), end=ts(9, 30, day=24))
        await book(engine, start=ts(9, day=26), end=ts(9, 30, day=26))

        rows = await engine.list_doctor_appointments(DR_WILLIAMS, "2025-12-24", "2025-12-25")

        assert len(rows) == 1
        assert rows[0].to_dict()["patient_name"] == "John Doe"

    @pytest.mark.asyncio
    async def test_doctor_listing_inverted_bounds(self, engine):
        with pytest.raises(InvalidArgumentError):
            await engine.list_doctor_appointments(DR_WILLIAMS, "2025-12-25", "2025-12-24")
