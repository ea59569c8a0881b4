"""Feedback domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FeedbackSubmission(BaseModel):
    """Schema for a patient's appointment feedback"""

    visit_rating: float = Field(gt=0)
    visit_led_by_id: Optional[int] = None
    call_out_person_id: Optional[int] = None
    additional_feedback: Optional[str] = Field(default=None, max_length=5000)


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    patient_id: int
    visit_rating: float
    visit_led_by_id: Optional[int] = None
    call_out_person_id: Optional[int] = None
    additional_feedback: Optional[str] = None
    is_editable: bool
    submitted_at: Optional[datetime] = None
    last_edited_at: Optional[datetime] = None


class RatingAllocationResponse(BaseModel):
    practitioner_id: int
    practitioner_name: str
    rating_points: float
    rating_percentage: float
    is_lead_practitioner: bool
    is_called_out: bool
    bonus_applied: float


class StoreFeedbackResponse(BaseModel):
    feedback: FeedbackResponse
    distribution: list[RatingAllocationResponse]


class FeedbackStateResponse(BaseModel):
    exists: bool
    can_edit: bool
    feedback: Optional[FeedbackResponse] = None


class PractitionerStatsResponse(BaseModel):
    average_rating: float
    total_ratings: int
    rating_distribution: dict[int, int]
    lead_count: int
    called_out_count: int
    total_appointments: int
