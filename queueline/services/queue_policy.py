"""
Queue and slot rules shared by the booking and status flows.

Store failures in these helpers are logged and turned into a safe default
rather than propagated, so a flaky count query never blocks a booking.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from datetime import date
from typing import Iterable, Mapping
import logging

from ..models.appointment import Appointment, ACTIVE_STATUSES
from ..models.organization import DAY_NAMES, find_open_schedule, time_to_minutes

logger = logging.getLogger(__name__)

def _active_for_day(db: Session, organization_id: int, appointment_date: date):
    return db.query(Appointment).filter(
        Appointment.organization_id == organization_id,
        Appointment.appointment_date == appointment_date,
        Appointment.status.in_(ACTIVE_STATUSES)
    )

def calculate_queue_position(db: Session, organization_id: int, appointment_date: date) -> int:
    """Position a new booking would take in the day's queue."""
    try:
        return _active_for_day(db, organization_id, appointment_date).count() + 1
    except SQLAlchemyError as e:
        logger.error(f"Error calculating queue position: {str(e)}")
        db.rollback()
        return 1

def calculate_estimated_wait_time(queue_position: int, appointment_duration: int = 30) -> int:
    """Minutes until a booking at ``queue_position`` is reached."""
    return max(0, (queue_position - 1) * appointment_duration)

def is_slot_available(
    db: Session,
    organization_id: int,
    appointment_date: date,
    appointment_time: str,
    expert_name: str
) -> bool:
    # Exact match on the time string; durations are not checked for overlap
    try:
        existing = _active_for_day(db, organization_id, appointment_date).filter(
            Appointment.appointment_time == appointment_time,
            Appointment.expert_name == expert_name
        ).first()
        return existing is None
    except SQLAlchemyError as e:
        logger.error(f"Error checking slot availability: {str(e)}")
        db.rollback()
        return False

def is_within_working_hours(
    working_hours: Iterable[Mapping],
    appointment_date: date,
    appointment_time: str
) -> bool:
    """Check ``appointment_time`` against the first open entry for the weekday.

    Both ends of the interval are inclusive.
    """
    day_name = DAY_NAMES[appointment_date.weekday()]
    schedule = find_open_schedule(working_hours, day_name)

    if not schedule:
        logger.debug(f"No schedule found for {day_name}")
        return False

    try:
        appointment_minutes = time_to_minutes(appointment_time)
        start_minutes = time_to_minutes(schedule["start_time"])
        end_minutes = time_to_minutes(schedule["end_time"])
    except (KeyError, ValueError) as e:
        logger.error(f"Invalid working hours entry for {day_name}: {str(e)}")
        return False

    return start_minutes <= appointment_minutes <= end_minutes

def update_queue_positions(db: Session, organization_id: int, appointment_date: date) -> None:
    """Renumber the day's active appointments 1..N in creation order.

    Each appointment is committed on its own; a failure part-way leaves the
    earlier positions updated and is logged, not raised.
    """
    try:
        appointments = _active_for_day(db, organization_id, appointment_date).order_by(
            Appointment.created_at.asc(),
            Appointment.id.asc()
        ).all()

        for position, appointment in enumerate(appointments, start=1):
            if appointment.queue_position != position:
                appointment.queue_position = position
                db.commit()
    except SQLAlchemyError as e:
        logger.error(
            f"Error updating queue positions for organization {organization_id} "
            f"on {appointment_date}: {str(e)}"
        )
        db.rollback()
