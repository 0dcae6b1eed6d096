"""
Property-based tests for effective status and badge derivation.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings, strategies as st

from listings_core.models import ListingStatus
from listings_core.status import badge_for, can_end, effective_status, is_expired
from listings_core.transform import transform_listing
from conftest import NOW, listing_row


def make_listing(status="active", expires_at=NOW + timedelta(days=7)):
    return transform_listing(dict(listing_row(status=status, expires_at=expires_at), id="listing-1"))


offsets = st.integers(min_value=-10 * 24 * 3600, max_value=10 * 24 * 3600)
persisted_statuses = st.sampled_from([s.value for s in ListingStatus])


@given(offset=offsets)
@settings(max_examples=100)
def test_active_listing_expired_iff_expiry_in_past(offset):
    """An active listing is presented as expired exactly when expires_at < now."""
    listing = make_listing(expires_at=NOW + timedelta(seconds=offset))

    status = effective_status(listing, NOW)

    if offset < 0:
        assert status == "expired"
    else:
        assert status == "active"
    assert is_expired(listing, NOW) == (offset < 0)


def test_expiry_equal_to_now_is_still_active():
    listing = make_listing(expires_at=NOW)

    assert effective_status(listing, NOW) == "active"
    assert can_end(listing, NOW)


@given(status=st.sampled_from(["sold", "ended", "relisted"]), offset=offsets)
@settings(max_examples=50)
def test_non_active_status_is_unchanged_by_time(status, offset):
    listing = make_listing(status=status, expires_at=NOW + timedelta(seconds=offset))

    assert effective_status(listing, NOW) == status
    assert not can_end(listing, NOW)


@given(status=persisted_statuses, offset=offsets)
@settings(max_examples=100)
def test_ending_soon_badge_only_for_active_within_window(status, offset):
    listing = make_listing(status=status, expires_at=NOW + timedelta(seconds=offset))

    badge = badge_for(listing, NOW)

    ending_soon = (
        effective_status(listing, NOW) == "active"
        and timedelta(0) <= listing.expires_at - NOW < timedelta(hours=24)
    )
    assert (badge.text == "Ending Soon") == ending_soon
    assert badge.pulse == ending_soon


def test_badge_mapping():
    assert badge_for(make_listing(status="sold"), NOW).text == "Sold"
    assert badge_for(make_listing(status="sold"), NOW).color == "bg-green-600"
    assert badge_for(make_listing(status="ended"), NOW).text == "Ended"
    assert badge_for(make_listing(expires_at=NOW - timedelta(minutes=1)), NOW).text == "Ended"
    assert badge_for(make_listing(), NOW).text == "Active"
    assert badge_for(make_listing(), NOW).color == "bg-blue-500"

    relisted = badge_for(make_listing(status="relisted"), NOW)
    assert relisted.text == "Relisted"
    assert relisted.color == "bg-gray-400"


def test_badge_ending_soon_boundary():
    just_inside = make_listing(expires_at=NOW + timedelta(hours=24) - timedelta(seconds=1))
    at_window = make_listing(expires_at=NOW + timedelta(hours=24))

    assert badge_for(just_inside, NOW).text == "Ending Soon"
    assert badge_for(at_window, NOW).text == "Active"


def test_listing_lifecycle_over_time():
    """A new seven-day listing is active, then expired once time passes expiry."""
    created = datetime(2025, 1, 1, tzinfo=timezone.utc)
    listing = make_listing(expires_at=created + timedelta(days=7))

    assert badge_for(listing, created).text == "Active"
    assert can_end(listing, created)

    later = created + timedelta(days=7, seconds=1)
    assert effective_status(listing, later) == "expired"
    assert not can_end(listing, later)
    assert listing.status == "active"
