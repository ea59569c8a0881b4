"""Feedback repository - Database operations for appointment feedback and ratings"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    Appointment,
    AppointmentFeedback,
    Practitioner,
    PractitionerRating,
    appointment_practitioner,
)
from .distribution import RatingAllocation


class FeedbackRepository:
    """Repository for feedback database operations"""

    @staticmethod
    def get_appointment(db: Session, tenant_id: str, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_practitioner_ids(db: Session, appointment_id: int) -> list[int]:
        rows = (
            db.query(appointment_practitioner.c.practitioner_id)
            .filter(appointment_practitioner.c.appointment_id == appointment_id)
            .order_by(appointment_practitioner.c.practitioner_id)
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def get_practitioner_names(db: Session, practitioner_ids: list[int]) -> dict[int, str]:
        """Display names from the central practitioner directory"""
        if not practitioner_ids:
            return {}
        practitioners = db.query(Practitioner).filter(Practitioner.id.in_(practitioner_ids)).all()
        return {p.id: p.full_name for p in practitioners}

    @staticmethod
    def get_feedback(db: Session, tenant_id: str, appointment_id: int) -> Optional[AppointmentFeedback]:
        return (
            db.query(AppointmentFeedback)
            .filter(
                AppointmentFeedback.appointment_id == appointment_id,
                AppointmentFeedback.tenant_id == tenant_id,
            )
            .first()
        )

    @classmethod
    def upsert_feedback(
        cls,
        db: Session,
        tenant_id: str,
        appointment_id: int,
        patient_id: int,
        submitted_at: datetime,
        **fields,
    ) -> AppointmentFeedback:
        """Create the appointment's feedback or overwrite the existing one (no commit)"""
        feedback = cls.get_feedback(db, tenant_id, appointment_id)
        if feedback is None:
            feedback = AppointmentFeedback(tenant_id=tenant_id, appointment_id=appointment_id)
            db.add(feedback)

        feedback.patient_id = patient_id
        for key, value in fields.items():
            setattr(feedback, key, value)
        feedback.is_editable = True
        feedback.submitted_at = submitted_at
        feedback.last_edited_at = submitted_at
        db.flush()
        return feedback

    @staticmethod
    def replace_ratings(
        db: Session,
        tenant_id: str,
        appointment_id: int,
        patient_id: int,
        distribution: list[RatingAllocation],
    ) -> list[PractitionerRating]:
        """Delete the appointment's rating rows, then insert the new distribution (no commit)"""
        db.query(PractitionerRating).filter(
            PractitionerRating.appointment_id == appointment_id,
            PractitionerRating.tenant_id == tenant_id,
        ).delete(synchronize_session="fetch")

        ratings = [
            PractitionerRating(
                tenant_id=tenant_id,
                appointment_id=appointment_id,
                practitioner_id=item.practitioner_id,
                patient_id=patient_id,
                rating_points=item.rating_points,
                rating_percentage=item.rating_percentage,
                is_lead_practitioner=item.is_lead_practitioner,
                is_called_out=item.is_called_out,
            )
            for item in distribution
        ]
        db.add_all(ratings)
        db.flush()
        return ratings

    @staticmethod
    def get_ratings_for_appointment(db: Session, tenant_id: str, appointment_id: int) -> list[PractitionerRating]:
        return (
            db.query(PractitionerRating)
            .filter(
                PractitionerRating.appointment_id == appointment_id,
                PractitionerRating.tenant_id == tenant_id,
            )
            .order_by(PractitionerRating.practitioner_id)
            .all()
        )

    @staticmethod
    def get_ratings_for_practitioner(db: Session, tenant_id: str, practitioner_id: int) -> list[PractitionerRating]:
        return (
            db.query(PractitionerRating)
            .filter(
                PractitionerRating.practitioner_id == practitioner_id,
                PractitionerRating.tenant_id == tenant_id,
            )
            .all()
        )

    @staticmethod
    def get_visit_ratings_for_practitioner(db: Session, tenant_id: str, practitioner_id: int) -> list[float]:
        """Whole-visit ratings of every appointment the practitioner was rated on"""
        rows = (
            db.query(AppointmentFeedback.visit_rating)
            .join(
                PractitionerRating,
                PractitionerRating.appointment_id == AppointmentFeedback.appointment_id,
            )
            .filter(
                PractitionerRating.practitioner_id == practitioner_id,
                PractitionerRating.tenant_id == tenant_id,
            )
            .all()
        )
        return [row[0] for row in rows]
