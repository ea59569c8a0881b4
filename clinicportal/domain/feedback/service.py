"""Feedback rating service - Stores feedback and distributes ratings across practitioners"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import FEEDBACK_EDIT_WINDOW_DAYS
from ...models import AppointmentFeedback
from .distribution import RatingAllocation, distribute_rating, round_half_up
from .repository import FeedbackRepository
from .schemas import FeedbackSubmission

logger = logging.getLogger(__name__)

STAR_BUCKETS = (1, 2, 3, 4, 5)


class AppointmentNotFoundError(Exception):
    """Raised when the appointment does not exist within the tenant"""

    pass


class NoPractitionersError(Exception):
    """Raised when feedback cannot be attributed to any practitioner"""

    pass


class FeedbackLockedError(Exception):
    """Raised when existing feedback is past its edit window"""

    pass


class FeedbackPermissionError(Exception):
    """Raised when a patient rates somebody else's appointment"""

    pass


def feedback_can_be_edited(feedback: AppointmentFeedback, now: Optional[datetime] = None) -> bool:
    if not feedback.is_editable:
        return False
    if feedback.submitted_at is None:
        return True
    now = now or datetime.utcnow()
    return now - feedback.submitted_at <= timedelta(days=FEEDBACK_EDIT_WINDOW_DAYS)


class FeedbackRatingService:
    """Service layer for appointment feedback"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = FeedbackRepository()

    def store_feedback(
        self,
        tenant_id: str,
        appointment_id: int,
        patient_id: Optional[int],
        submission: FeedbackSubmission,
    ) -> tuple[AppointmentFeedback, list[RatingAllocation]]:
        """Save feedback and replace the appointment's practitioner ratings atomically.

        ``patient_id`` defaults to the appointment's patient; when given it
        must match it.
        """
        appointment = self.repo.get_appointment(self.db, tenant_id, appointment_id)
        if not appointment:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        if patient_id is None:
            patient_id = appointment.patient_id
        elif patient_id != appointment.patient_id:
            raise FeedbackPermissionError("You can only rate your own appointments")

        existing = self.repo.get_feedback(self.db, tenant_id, appointment_id)
        if existing and not feedback_can_be_edited(existing):
            raise FeedbackLockedError("Feedback for this appointment can no longer be edited")

        practitioner_ids = self.repo.get_practitioner_ids(self.db, appointment_id)
        if not practitioner_ids:
            logger.error(f"❌ No practitioners found for appointment {appointment_id}")
            raise NoPractitionersError("No practitioners found for this appointment")

        for role, role_id in (
            ("lead", submission.visit_led_by_id),
            ("called-out", submission.call_out_person_id),
        ):
            if role_id is not None and role_id not in practitioner_ids:
                logger.warning(
                    f"⚠️ {role} practitioner {role_id} is not on appointment {appointment_id}; no bonus applied"
                )

        names = self.repo.get_practitioner_names(self.db, practitioner_ids)
        distribution = distribute_rating(
            submission.visit_rating,
            practitioner_ids,
            lead_practitioner_id=submission.visit_led_by_id,
            called_out_practitioner_id=submission.call_out_person_id,
            practitioner_names=names,
        )

        now = datetime.utcnow()
        try:
            feedback = self.repo.upsert_feedback(
                self.db,
                tenant_id,
                appointment_id,
                patient_id,
                submitted_at=now,
                visit_rating=submission.visit_rating,
                visit_led_by_id=submission.visit_led_by_id,
                call_out_person_id=submission.call_out_person_id,
                additional_feedback=submission.additional_feedback,
            )
            self.repo.replace_ratings(self.db, tenant_id, appointment_id, patient_id, distribution)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store feedback for appointment {appointment_id}: {e}")
            raise

        self.db.refresh(feedback)
        logger.info(
            f"⭐ Stored feedback for appointment {appointment_id}: rating={submission.visit_rating} "
            f"practitioners={len(distribution)}"
        )
        return feedback, distribution

    def get_practitioner_stats(self, tenant_id: str, practitioner_id: int) -> dict:
        """Overall rating statistics for one practitioner"""
        ratings = self.repo.get_ratings_for_practitioner(self.db, tenant_id, practitioner_id)
        distribution = {star: 0 for star in STAR_BUCKETS}

        if not ratings:
            return {
                "average_rating": 0.0,
                "total_ratings": 0,
                "rating_distribution": distribution,
                "lead_count": 0,
                "called_out_count": 0,
                "total_appointments": 0,
            }

        for visit_rating in self.repo.get_visit_ratings_for_practitioner(self.db, tenant_id, practitioner_id):
            star = int(round_half_up(visit_rating, 0))
            distribution[min(max(star, STAR_BUCKETS[0]), STAR_BUCKETS[-1])] += 1

        return {
            "average_rating": round_half_up(sum(r.rating_points for r in ratings) / len(ratings)),
            "total_ratings": len(ratings),
            "rating_distribution": distribution,
            "lead_count": sum(1 for r in ratings if r.is_lead_practitioner),
            "called_out_count": sum(1 for r in ratings if r.is_called_out),
            "total_appointments": len({r.appointment_id for r in ratings}),
        }

    def can_edit_feedback(self, tenant_id: str, appointment_id: int) -> dict:
        """Check if feedback exists and can be edited"""
        feedback = self.repo.get_feedback(self.db, tenant_id, appointment_id)
        if not feedback:
            return {"exists": False, "can_edit": True, "feedback": None}
        return {"exists": True, "can_edit": feedback_can_be_edited(feedback), "feedback": feedback}
