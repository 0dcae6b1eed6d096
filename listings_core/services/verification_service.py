"""
Seller verification tiers and the request/review workflow.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from listings_core.error_handling import (
    ErrorHandler,
    NotFoundError,
    OperationResult,
    ValidationError,
)
from listings_core.models import VerificationLevel, VerificationRequest, VerificationStatus
from listings_core.status import utcnow
from listings_core.store import Repositories


logger = logging.getLogger(__name__)

REQUESTABLE_LEVELS = (VerificationLevel.VERIFIED.value, VerificationLevel.TRADER.value)
REVIEW_STATUSES = (VerificationStatus.APPROVED.value, VerificationStatus.REJECTED.value)


@dataclass(frozen=True)
class UserPermissions:
    """Capabilities granted by a verification level."""
    verification_level: str
    can_send_messages: bool = False
    can_place_bids: bool = False
    can_make_offers: bool = False
    can_create_listings: bool = False
    can_buy_and_sell: bool = False
    can_access_advanced_features: bool = False


def permissions_for(level: Optional[str]) -> UserPermissions:
    """Map a verification level to permissions; unknown levels are unverified."""
    if level in REQUESTABLE_LEVELS:
        return UserPermissions(
            verification_level=level,
            can_send_messages=True,
            can_place_bids=True,
            can_make_offers=True,
            can_create_listings=True,
            can_buy_and_sell=True,
            can_access_advanced_features=level == VerificationLevel.TRADER.value,
        )
    return UserPermissions(verification_level=VerificationLevel.UNVERIFIED.value)


def has_active_request(requests: List[VerificationRequest]) -> bool:
    return any(request.status == VerificationStatus.PENDING.value for request in requests)


def latest_request(requests: List[VerificationRequest]) -> Optional[VerificationRequest]:
    """First request of a newest-first list."""
    return requests[0] if requests else None


class VerificationService:
    """Submits verification requests and applies admin reviews."""

    def __init__(self, repos: Repositories):
        self.repos = repos
        self.error_handler = ErrorHandler("Failed to process verification request.")

    async def get_permissions(self, user_id: str) -> UserPermissions:
        return permissions_for(await self.repos.profiles.verification_level(user_id))

    async def list_requests(self, user_id: str) -> OperationResult:
        """The user's requests, newest first."""

        async def operation() -> OperationResult:
            return OperationResult.ok(data=await self.repos.verification.for_user(user_id))

        return await self.error_handler.run(
            "list_requests", operation, failure_message="Failed to load verification requests"
        )

    async def submit_request(
        self,
        user_id: str,
        request_type: str,
        message: Optional[str] = None,
        business_name: Optional[str] = None,
        business_registration: Optional[str] = None,
        trading_experience: Optional[str] = None,
        documents: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        async def operation() -> OperationResult:
            if request_type not in REQUESTABLE_LEVELS:
                raise ValidationError(f"Unknown verification type: {request_type}")
            if request_type == VerificationLevel.TRADER.value and not business_name:
                raise ValidationError("Business name is required for trader verification.")
            if has_active_request(await self.repos.verification.for_user(user_id)):
                raise ValidationError("You already have a pending verification request.")

            request = await self.repos.verification.insert({
                "user_id": user_id,
                "request_type": request_type,
                "status": VerificationStatus.PENDING.value,
                "message": message,
                "business_name": business_name,
                "business_registration": business_registration,
                "trading_experience": trading_experience,
                "documents": list(documents or []),
                "requested_at": now or utcnow(),
            })
            logger.info(f"Verification request {request.id} ({request_type}) submitted by {user_id}")
            return OperationResult.ok(record_id=request.id, data=request)

        return await self.error_handler.run("submit_request", operation)

    async def review_request(
        self,
        request_id: str,
        reviewer_id: str,
        status: str,
        admin_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Approve or reject a pending request.

        Approval raises the user's profile to the requested level. The
        requester is notified either way.
        """

        async def operation() -> OperationResult:
            if status not in REVIEW_STATUSES:
                raise ValidationError(f"Invalid review status: {status}")
            request = await self.repos.verification.get(request_id)
            if request is None:
                raise NotFoundError("Verification request not found.")
            if request.status != VerificationStatus.PENDING.value:
                raise ValidationError("This request has already been reviewed.")

            await self.repos.verification.update(request_id, {
                "status": status,
                "reviewed_at": now or utcnow(),
                "reviewed_by": reviewer_id,
                "admin_notes": admin_notes,
            })

            if status == VerificationStatus.APPROVED.value:
                await self.repos.profiles.set_verification_level(request.user_id, request.request_type)
                await self.repos.notifications.insert(
                    request.user_id,
                    "verification_approved",
                    f"Your {request.request_type} verification request has been approved!",
                    {"verification_type": request.request_type},
                )
            else:
                await self.repos.notifications.insert(
                    request.user_id,
                    "verification_rejected",
                    f"Your {request.request_type} verification request has been rejected.",
                    {"verification_type": request.request_type, "admin_notes": admin_notes},
                )
            logger.info(f"Verification request {request_id} {status} by {reviewer_id}")
            return OperationResult.ok(record_id=request_id)

        return await self.error_handler.run("review_request", operation)
