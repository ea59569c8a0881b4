"""Feedback router - FastAPI endpoints for appointment feedback and practitioner ratings"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal
from ...database import get_db
from .schemas import (
    FeedbackResponse,
    FeedbackStateResponse,
    FeedbackSubmission,
    PractitionerStatsResponse,
    RatingAllocationResponse,
    StoreFeedbackResponse,
)
from .service import (
    AppointmentNotFoundError,
    FeedbackLockedError,
    FeedbackPermissionError,
    FeedbackRatingService,
    NoPractitionersError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Feedback"])


def get_feedback_service(db: Session = Depends(get_db)) -> FeedbackRatingService:
    """Dependency injection for FeedbackRatingService"""
    return FeedbackRatingService(db)


@router.get("/appointments/{appointment_id}/feedback", response_model=FeedbackStateResponse)
async def show_feedback(
    appointment_id: int,
    principal: Principal = Depends(get_current_principal),
    service: FeedbackRatingService = Depends(get_feedback_service),
):
    """Whether feedback exists for the appointment and can still be edited"""
    state = service.can_edit_feedback(principal.tenant_id, appointment_id)
    feedback = state["feedback"]
    if feedback and principal.role == "patient" and feedback.patient_id != principal.patient_id:
        raise HTTPException(status_code=403, detail="You can only view your own feedback")
    return FeedbackStateResponse(
        exists=state["exists"],
        can_edit=state["can_edit"],
        feedback=FeedbackResponse.model_validate(feedback) if feedback else None,
    )


@router.post("/appointments/{appointment_id}/feedback", response_model=StoreFeedbackResponse)
async def store_feedback(
    appointment_id: int,
    body: FeedbackSubmission,
    principal: Principal = Depends(get_current_principal),
    service: FeedbackRatingService = Depends(get_feedback_service),
):
    """Submit or update feedback; ratings are redistributed across the appointment's practitioners"""
    if principal.role == "practitioner":
        raise HTTPException(status_code=403, detail="Practitioners cannot rate appointments")
    if principal.role == "patient" and principal.patient_id is None:
        raise HTTPException(status_code=403, detail="Patient session required")

    patient_id = principal.patient_id if principal.role == "patient" else None
    try:
        feedback, distribution = service.store_feedback(principal.tenant_id, appointment_id, patient_id, body)
    except AppointmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except FeedbackPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    except FeedbackLockedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except NoPractitionersError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return StoreFeedbackResponse(
        feedback=FeedbackResponse.model_validate(feedback),
        distribution=[RatingAllocationResponse(**item.to_dict()) for item in distribution],
    )


@router.get("/practitioners/{practitioner_id}/rating-stats", response_model=PractitionerStatsResponse)
async def practitioner_rating_stats(
    practitioner_id: int,
    principal: Principal = Depends(get_current_principal),
    service: FeedbackRatingService = Depends(get_feedback_service),
):
    """Rating statistics for a practitioner within the caller's tenant"""
    if principal.role == "patient":
        raise HTTPException(status_code=403, detail="Not allowed")
    return service.get_practitioner_stats(principal.tenant_id, practitioner_id)
