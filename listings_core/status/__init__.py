"""
Status module for listings.

Derives presentation status and badges from persisted status and time.
"""

from .status_deriver import (
    StatusBadge,
    ENDED_STATUSES,
    ENDING_SOON_WINDOW,
    utcnow,
    is_expired,
    effective_status,
    is_active,
    is_ended,
    can_end,
    badge_for,
)

__all__ = [
    'StatusBadge',
    'ENDED_STATUSES',
    'ENDING_SOON_WINDOW',
    'utcnow',
    'is_expired',
    'effective_status',
    'is_active',
    'is_ended',
    'can_end',
    'badge_for',
]
