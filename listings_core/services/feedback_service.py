"""
Buyer and seller feedback.

One feedback entry per (author, listing); the store's unique constraint is
authoritative and its violation is reported as a duplicate.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from listings_core.error_handling import (
    DuplicateFeedbackError,
    ErrorHandler,
    OperationResult,
    StoreError,
    ValidationError,
)
from listings_core.filtering import Clause, eq
from listings_core.models import MAX_FEEDBACK_COMMENT_LENGTH, Feedback
from listings_core.status import utcnow
from listings_core.store import Repositories


logger = logging.getLogger(__name__)

ROLE_SELLER = "seller"
ROLE_BUYER = "buyer"


@dataclass
class FeedbackSummary:
    """Aggregate rating statistics.

    Attributes:
        count: Number of feedback entries
        average_rating: Mean rating, None without feedback
        distribution: Count per star rating, 1 through 5
    """
    count: int = 0
    average_rating: Optional[float] = None
    distribution: Dict[int, int] = field(default_factory=lambda: {star: 0 for star in range(1, 6)})


def summarize(feedback: List[Feedback]) -> FeedbackSummary:
    summary = FeedbackSummary(count=len(feedback))
    if not feedback:
        return summary
    for entry in feedback:
        if entry.rating in summary.distribution:
            summary.distribution[entry.rating] += 1
    summary.average_rating = sum(entry.rating for entry in feedback) / len(feedback)
    return summary


class FeedbackService:

    def __init__(self, repos: Repositories):
        self.repos = repos
        self.error_handler = ErrorHandler("Failed to submit feedback.")

    async def submit_feedback(
        self,
        from_user_id: str,
        to_user_id: str,
        listing_id: str,
        rating: int,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        async def operation() -> OperationResult:
            if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
                raise ValidationError("Rating must be between 1 and 5.")
            if comment and len(comment) > MAX_FEEDBACK_COMMENT_LENGTH:
                raise ValidationError(
                    f"Comment must be at most {MAX_FEEDBACK_COMMENT_LENGTH} characters."
                )
            if from_user_id == to_user_id:
                raise ValidationError("You cannot leave feedback for yourself.")
            try:
                feedback = await self.repos.feedback.insert({
                    "from_user_id": from_user_id,
                    "to_user_id": to_user_id,
                    "listing_id": listing_id,
                    "rating": rating,
                    "comment": comment,
                    "created_at": now or utcnow(),
                })
            except StoreError as e:
                if e.is_unique_violation:
                    raise DuplicateFeedbackError() from e
                raise
            return OperationResult.ok(record_id=feedback.id, data=feedback)

        return await self.error_handler.run("submit_feedback", operation)

    async def list_feedback(
        self,
        user_id: Optional[str] = None,
        as_role: str = ROLE_SELLER,
        listing_id: Optional[str] = None,
    ) -> OperationResult:
        """
        Feedback received by a seller or written by a buyer, newest first.

        Args:
            user_id: Subject user; omitted to list by listing only
            as_role: "seller" for feedback received, "buyer" for feedback given
            listing_id: Restrict to one listing
        """

        async def operation() -> OperationResult:
            predicates: List[Clause] = []
            if user_id:
                if as_role == ROLE_SELLER:
                    predicates.append(eq("to_user_id", user_id))
                elif as_role == ROLE_BUYER:
                    predicates.append(eq("from_user_id", user_id))
                else:
                    raise ValidationError(f"Unknown feedback role: {as_role}")
            if listing_id:
                predicates.append(eq("listing_id", listing_id))
            return OperationResult.ok(data=await self.repos.feedback.find(predicates))

        return await self.error_handler.run("list_feedback", operation, failure_message="Failed to load feedback.")
