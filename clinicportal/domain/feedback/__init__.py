"""
Feedback Domain

Appointment feedback and the per-practitioner rating split:
- distribution.py  distribute_rating (pure)
- service.py       FeedbackRatingService (store, stats, edit state)
- router.py        /appointments/{id}/feedback, /practitioners/{id}/rating-stats
"""

from .distribution import RatingAllocation, distribute_rating
from .router import router
from .service import FeedbackRatingService

__all__ = ["router", "distribute_rating", "RatingAllocation", "FeedbackRatingService"]
