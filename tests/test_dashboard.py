"""
Tests for the dashboard tab orchestrator.
"""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest

from listings_core.dashboard import DashboardTab, DashboardTabOrchestrator, ViewMode
from listings_core.error_handling import RetryScheduler, StoreError
from conftest import NOW, bid_row, listing_row, run


async def no_wait(seconds):
    return None


async def seed(repos, title, **overrides):
    listing = await repos.listings.insert(listing_row(title=title, **overrides))
    return listing.id


def orchestrator_for(repos, user_id="seller-1", **kwargs):
    return DashboardTabOrchestrator(repos, user_id, clock=lambda: NOW, **kwargs)


def titles(orchestrator):
    return sorted(listing.title for listing in orchestrator.listings)


def test_active_tab_lists_seller_active_listings(repos):
    async def scenario():
        await seed(repos, "mine")
        await seed(repos, "ended", status="ended")
        await seed(repos, "other seller", seller_id="seller-2")
        orchestrator = orchestrator_for(repos)
        applied = await orchestrator.refresh()
        return applied, orchestrator

    applied, orchestrator = run(scenario())

    assert applied
    assert titles(orchestrator) == ["mine"]
    assert not orchestrator.is_loading
    assert orchestrator.error is None


def test_ended_tab_includes_lapsed_unsold_listings(repos):
    async def scenario():
        lapsed = NOW - timedelta(hours=1)
        await seed(repos, "ended", status="ended")
        await seed(repos, "expired", status="expired")
        await seed(repos, "relisted", status="relisted")
        await seed(repos, "lapsed", expires_at=lapsed)
        await seed(repos, "lapsed with buyer", expires_at=lapsed, sale_buyer_id="buyer-1")
        await seed(repos, "at expiry", expires_at=NOW)
        await seed(repos, "live")
        await seed(repos, "sold", status="sold")
        orchestrator = orchestrator_for(repos)
        await orchestrator.set_tab(DashboardTab.ENDED)
        return orchestrator

    orchestrator = run(scenario())

    assert titles(orchestrator) == ["ended", "expired", "lapsed", "relisted"]


def test_all_tab_sorted_newest_first(repos):
    async def scenario():
        await seed(repos, "old", created_at=NOW - timedelta(days=3))
        await seed(repos, "new", created_at=NOW - timedelta(hours=1), status="sold")
        await seed(repos, "middle", created_at=NOW - timedelta(days=2), status="ended")
        orchestrator = orchestrator_for(repos)
        await orchestrator.set_tab("all")
        return orchestrator

    orchestrator = run(scenario())

    assert [l.title for l in orchestrator.listings] == ["new", "middle", "old"]


def test_sold_tab_joins_buyer_profiles(repos):
    async def scenario():
        await repos.profiles.insert({"id": "buyer-1", "full_name": "Ada Buyer", "avatar_url": "ada.png"})
        await seed(repos, "sold to ada", status="sold", sale_buyer_id="buyer-1")
        await seed(repos, "sold to unknown", status="sold", sale_buyer_id="ghost",
                   created_at=NOW - timedelta(days=2))
        orchestrator = orchestrator_for(repos)
        await orchestrator.set_tab(DashboardTab.SOLD)
        return orchestrator

    orchestrator = run(scenario())

    first, second = orchestrator.sold_items
    assert first.listing.title == "sold to ada"
    assert first.buyer.name == "Ada Buyer"
    assert first.buyer.avatar == "ada.png"
    assert second.buyer is None


def test_buying_mode_scopes_to_bids_offers_and_purchases(repos):
    async def scenario():
        bid_on = await seed(repos, "bid on", type="auction")
        offered = await seed(repos, "offered on", allow_best_offer=True)
        await seed(repos, "bought", status="sold", sale_buyer_id="buyer-1")
        await seed(repos, "unrelated")
        await repos.bids.insert(bid_row(bid_on, "buyer-1", 300))
        await repos.offers.insert({"listing_id": offered, "user_id": "buyer-1", "amount": 200, "status": "pending"})
        orchestrator = orchestrator_for(repos, "buyer-1", tab="all")
        await orchestrator.set_view_mode(ViewMode.BUYING)
        return orchestrator

    orchestrator = run(scenario())

    assert titles(orchestrator) == ["bid on", "bought", "offered on"]


def test_stale_response_is_discarded(repos):
    async def scenario():
        await seed(repos, "live")
        await seed(repos, "ended", status="ended")
        orchestrator = orchestrator_for(repos)
        gate = asyncio.Event()
        original_find = repos.listings.find
        calls = []

        async def gated_find(query):
            calls.append(query)
            if len(calls) == 1:
                await gate.wait()
            return await original_find(query)

        with patch.object(repos.listings, "find", side_effect=gated_find):
            slow = asyncio.create_task(orchestrator.refresh())
            await asyncio.sleep(0)
            fast_applied = await orchestrator.set_tab(DashboardTab.ENDED)
            gate.set()
            slow_applied = await slow
        return orchestrator, fast_applied, slow_applied

    orchestrator, fast_applied, slow_applied = run(scenario())

    assert fast_applied
    assert not slow_applied
    assert titles(orchestrator) == ["ended"]
    assert orchestrator.current_token == 2


def test_user_change_refetches(repos):
    async def scenario():
        await seed(repos, "first seller")
        await seed(repos, "second seller", seller_id="seller-2")
        orchestrator = orchestrator_for(repos)
        await orchestrator.refresh()
        before = titles(orchestrator)
        await orchestrator.set_user("seller-2")
        return before, titles(orchestrator)

    before, after = run(scenario())

    assert before == ["first seller"]
    assert after == ["second seller"]


def test_mutation_notification_refetches(repos):
    async def scenario():
        listing_id = await seed(repos, "live")
        orchestrator = orchestrator_for(repos)
        await orchestrator.refresh()
        await repos.listings.update(listing_id, {"status": "ended"})
        await orchestrator.notify_mutation()
        return orchestrator

    orchestrator = run(scenario())

    assert orchestrator.listings == []


def test_store_failure_schedules_retry(repos):
    async def scenario():
        await seed(repos, "live")
        orchestrator = orchestrator_for(
            repos, retry_scheduler=RetryScheduler(sleep=no_wait), max_retries=2
        )
        original_find = repos.listings.find
        attempts = []

        async def flaky_find(query):
            attempts.append(query)
            if len(attempts) == 1:
                raise StoreError("connection reset")
            return await original_find(query)

        with patch.object(repos.listings, "find", side_effect=flaky_find):
            applied = await orchestrator.refresh()
            error_after_failure = orchestrator.error
            retry_result = await orchestrator.last_retry
        return orchestrator, applied, error_after_failure, retry_result, len(attempts)

    orchestrator, applied, error, retry_result, attempts = run(scenario())

    assert not applied
    assert error == "Failed to load listings."
    assert retry_result is True
    assert attempts == 2
    assert orchestrator.error is None
    assert titles(orchestrator) == ["live"]


def test_close_cancels_pending_retry(repos):
    async def scenario():
        orchestrator = orchestrator_for(repos, max_retries=3)

        async def broken_find(query):
            raise StoreError("connection refused")

        with patch.object(repos.listings, "find", side_effect=broken_find):
            await orchestrator.refresh()
            handle = orchestrator.last_retry
            orchestrator.close()
            await asyncio.sleep(0)
        return handle

    handle = run(scenario())

    assert handle.cancelled
    assert not handle.fired


def test_unknown_tab_is_rejected(repos):
    orchestrator = orchestrator_for(repos)

    with pytest.raises(ValueError):
        run(orchestrator.set_tab("archived"))
