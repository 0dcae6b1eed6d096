"""Transformation of persisted rows into view models."""

from .listing_transformer import (
    to_datetime,
    to_number,
    transform_listing,
    transform_listings,
    transform_bid,
    transform_offer,
    transform_feedback,
    transform_verification_request,
)

__all__ = [
    'to_datetime',
    'to_number',
    'transform_listing',
    'transform_listings',
    'transform_bid',
    'transform_offer',
    'transform_feedback',
    'transform_verification_request',
]
