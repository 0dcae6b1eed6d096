"""
Tests for the HTTP API.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from listings_core.api import create_app
from listings_core.config import AppSettings, ListingConfig, RetryConfig
from listings_core.error_handling import StoreError
from listings_core.store import Repositories
from conftest import bid_row, listing_row, run


CURRENT = datetime.now(timezone.utc)


@pytest.fixture
def client(store):
    with TestClient(create_app(store=store, settings=AppSettings())) as client:
        yield client


def seed(store, **overrides):
    fields = dict(expires_at=CURRENT + timedelta(days=7), created_at=CURRENT - timedelta(hours=1))
    fields.update(overrides)
    return run(Repositories(store).listings.insert(listing_row(**fields)))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_browse_returns_active_listings_with_bids(client, store):
    auction = seed(store, title="Auction bike", type="auction", price=100.0)
    seed(store, title="Expired lamp", expires_at=CURRENT - timedelta(hours=1))
    seed(store, title="Sold desk", status="sold")
    run(Repositories(store).bids.insert(bid_row(auction.id, "buyer-1", 120)))

    response = client.get("/api/listings")

    assert response.status_code == 200
    listings = response.json()["listings"]
    assert [l["title"] for l in listings] == ["Auction bike"]
    assert listings[0]["highest_bid"] == 120.0
    assert listings[0]["bid_count"] == 1
    assert listings[0]["effective_status"] == "active"
    assert listings[0]["badge"]["text"] == "Active"


def test_browse_condition_filter_uses_display_label(client, store):
    seed(store, title="Like new kettle", condition="Like New")
    seed(store, title="Used kettle", condition="Used")

    response = client.get("/api/listings", params={"condition": "like_new"})

    assert [l["title"] for l in response.json()["listings"]] == ["Like new kettle"]


def test_browse_string_page_zero_means_first_page(client, store):
    seed(store)

    response = client.get("/api/listings", params={"page": "0"})

    assert response.json()["listings"]


def test_end_listing_requires_identity(client, store):
    listing = seed(store)

    response = client.post(f"/api/listings/{listing.id}/end")

    assert response.status_code == 401


def test_end_listing_by_seller(client, store):
    listing = seed(store)
    headers = {"X-User-Id": "seller-1"}

    first = client.post(f"/api/listings/{listing.id}/end", json={"reason": "Sold elsewhere"}, headers=headers)
    second = client.post(f"/api/listings/{listing.id}/end", headers=headers)

    assert first.status_code == 200
    assert first.json() == {"success": True, "record_id": listing.id}
    assert second.status_code == 400
    assert second.json()["detail"] == "Only active listings can be ended."


def test_relist_listing(client, store):
    listing = seed(store, status="ended")

    response = client.post(
        f"/api/listings/{listing.id}/relist",
        json={"reason": "No buyer", "additional_info": "Price reduced"},
        headers={"X-User-Id": "seller-1"},
    )

    assert response.status_code == 200
    new_id = response.json()["record_id"]
    assert new_id != listing.id
    relisted = run(Repositories(store).listings.get(new_id))
    assert relisted.original_listing_id == listing.id


def test_relist_requires_reason(client, store):
    listing = seed(store, status="ended")

    response = client.post(f"/api/listings/{listing.id}/relist", json={"reason": ""}, headers={"X-User-Id": "seller-1"})

    assert response.status_code == 422


def test_track_listing_view_deduplicates(client, store):
    listing = seed(store)
    headers = {"X-User-Id": "viewer-1"}

    first = client.post("/api/track-listing-view", json={"listingId": listing.id}, headers=headers)
    second = client.post("/api/track-listing-view", json={"listingId": listing.id}, headers=headers)

    assert first.json() == {"counted": True, "views": 1}
    assert second.json() == {"counted": False, "views": 1}


def test_track_view_unknown_listing(client):
    response = client.post("/api/track-listing-view", json={"listingId": "missing"})

    assert response.status_code == 404


def test_dashboard_ended_tab(client, store):
    seed(store, title="Live")
    seed(store, title="Lapsed", expires_at=CURRENT - timedelta(hours=2))
    seed(store, title="Ended", status="ended")

    response = client.get(
        "/api/dashboard/listings",
        params={"tab": "ended", "view_mode": "selling"},
        headers={"X-User-Id": "seller-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["tab"] == "ended"
    assert sorted(item["listing"]["title"] for item in body["items"]) == ["Ended", "Lapsed"]


def test_dashboard_rejects_unknown_tab(client):
    response = client.get("/api/dashboard/listings", params={"tab": "archived"}, headers={"X-User-Id": "u"})

    assert response.status_code == 422


def settings_client(store, **settings):
    return TestClient(create_app(store=store, settings=AppSettings(**settings)))


def test_ending_soon_window_follows_settings(store):
    seed(store, title="Clock", expires_at=CURRENT + timedelta(hours=30))

    with settings_client(store, listings=ListingConfig(ending_soon_hours=48)) as client:
        wide = client.get("/api/listings").json()["listings"][0]["badge"]
    with settings_client(store) as client:
        default = client.get("/api/listings").json()["listings"][0]["badge"]

    assert wide["text"] == "Ending Soon"
    assert wide["pulse"] is True
    assert default["text"] == "Active"


def test_place_bid_uses_configured_increment(store):
    auction = seed(store, title="Auction bike", type="auction", price=100.0)

    with settings_client(store, listings=ListingConfig(default_bid_increment=10)) as client:
        response = client.post(
            f"/api/listings/{auction.id}/bids",
            json={"maximum_bid": 180},
            headers={"X-User-Id": "buyer-1"},
        )

    assert response.status_code == 200
    assert run(Repositories(store).listings.get(auction.id)).current_bid == 110.0


def test_place_bid_on_own_listing_is_rejected(client, store):
    auction = seed(store, title="Auction bike", type="auction", price=100.0)

    response = client.post(
        f"/api/listings/{auction.id}/bids",
        json={"maximum_bid": 180},
        headers={"X-User-Id": "seller-1"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "You cannot bid on your own listing."


def flaky_find(repos, failures):
    original = repos.listings.find
    calls = []

    async def find(query):
        calls.append(query)
        if len(calls) <= failures:
            raise StoreError("connection reset by peer")
        return await original(query)

    return find, calls


def test_dashboard_retries_transient_failure(store):
    seed(store, title="Live")
    app = create_app(store=store, settings=AppSettings(retry=RetryConfig(max_retries=2, base_delay_ms=1)))
    find, calls = flaky_find(app.state.repos, failures=1)

    with patch.object(app.state.repos.listings, "find", find), TestClient(app) as client:
        response = client.get("/api/dashboard/listings", headers={"X-User-Id": "seller-1"})

    assert response.status_code == 200
    assert [item["listing"]["title"] for item in response.json()["items"]] == ["Live"]
    assert len(calls) == 2


def test_dashboard_fails_once_retries_are_exhausted(store):
    app = create_app(store=store, settings=AppSettings(retry=RetryConfig(max_retries=1, base_delay_ms=1)))
    find, calls = flaky_find(app.state.repos, failures=5)

    with patch.object(app.state.repos.listings, "find", find), TestClient(app) as client:
        response = client.get("/api/dashboard/listings", headers={"X-User-Id": "seller-1"})

    assert response.status_code == 503
    assert response.json()["detail"] == "Failed to load listings."
    assert len(calls) == 2
