"""
Services module for listing lifecycle, offers, feedback, verification,
view tracking and notifications.
"""

from .listing_service import ListingLifecycleService, RELISTABLE_STATUSES
from .offer_service import OfferService, UserOfferStatus, user_offer_status
from .feedback_service import FeedbackService, FeedbackSummary, summarize
from .verification_service import (
    VerificationService,
    UserPermissions,
    permissions_for,
    has_active_request,
    latest_request,
)
from .view_tracking import ViewTracker, ViewResult
from .notifications import NotificationCenter, NOTIFICATION_LIMIT

__all__ = [
    'ListingLifecycleService',
    'RELISTABLE_STATUSES',
    'OfferService',
    'UserOfferStatus',
    'user_offer_status',
    'FeedbackService',
    'FeedbackSummary',
    'summarize',
    'VerificationService',
    'UserPermissions',
    'permissions_for',
    'has_active_request',
    'latest_request',
    'ViewTracker',
    'ViewResult',
    'NotificationCenter',
    'NOTIFICATION_LIMIT',
]
