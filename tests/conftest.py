"""Shared fixtures: an in-memory store and row builders."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from listings_core.store import InMemoryStore, Repositories


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def listing_row(**overrides):
    """A persisted listing row with sensible defaults."""
    row = {
        "seller_id": "seller-1",
        "title": "Vintage road bike",
        "description": "Steel frame, recently serviced",
        "category": "Sports",
        "type": "sale",
        "price": 250.0,
        "location": "Leeds",
        "condition": "Used",
        "images": [],
        "allow_best_offer": False,
        "status": "active",
        "expires_at": NOW + timedelta(days=7),
        "created_at": NOW - timedelta(days=1),
        "views": 0,
        "saves": 0,
    }
    row.update(overrides)
    return row


def bid_row(listing_id, user_id, maximum_bid, status="active", amount=None, **overrides):
    row = {
        "listing_id": listing_id,
        "user_id": user_id,
        "amount": maximum_bid if amount is None else amount,
        "maximum_bid": maximum_bid,
        "bid_increment": 5,
        "status": status,
    }
    row.update(overrides)
    return row


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def repos(store):
    return Repositories(store)
