"""
Tests for bid aggregation and proxy bidding.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from listings_core.bids import BidAggregator, ProxyBidding, proxy_amount
from listings_core.error_handling import StoreError
from listings_core.realtime import ChangeEvent
from conftest import NOW, bid_row, listing_row, run


async def seed_auction(repos, **overrides):
    fields = dict(type="auction", price=100.0)
    fields.update(overrides)
    return await repos.listings.insert(listing_row(**fields))


def test_aggregator_ignores_inactive_bids(repos):
    async def scenario():
        listing = await seed_auction(repos)
        await repos.bids.insert(bid_row(listing.id, "a", 100))
        await repos.bids.insert(bid_row(listing.id, "b", 150))
        await repos.bids.insert(bid_row(listing.id, "c", 200, status="withdrawn"))
        aggregator = BidAggregator(repos.bids)
        summary = await aggregator.fetch([listing.id])
        return listing.id, aggregator, summary

    listing_id, aggregator, summary = run(scenario())

    assert summary.highest_bids == {listing_id: 150.0}
    assert summary.bid_counts == {listing_id: 2}
    assert aggregator.highest_bids == summary.highest_bids


def test_aggregator_omits_highest_when_no_bids(repos):
    async def scenario():
        listing = await seed_auction(repos)
        return listing.id, await BidAggregator(repos.bids).fetch([listing.id])

    listing_id, summary = run(scenario())

    assert summary.highest_bids == {}
    assert summary.bid_counts == {listing_id: 0}


def test_aggregator_failure_leaves_maps_untouched(repos):
    aggregator = BidAggregator(repos.bids)

    async def fail(*args, **kwargs):
        raise StoreError("connection reset")

    with patch.object(repos.bids, "count_active", side_effect=fail):
        with pytest.raises(StoreError):
            run(aggregator.fetch(["l1", "l2"]))

    assert aggregator.highest_bids == {}
    assert aggregator.bid_counts == {}


def test_aggregator_only_covers_auctions(repos):
    async def scenario():
        auction = await seed_auction(repos)
        sale = await repos.listings.insert(listing_row())
        return auction.id, await BidAggregator(repos.bids).fetch_for_listings([auction, sale])

    auction_id, summary = run(scenario())

    assert set(summary.bid_counts) == {auction_id}


def test_watch_reaggregates_on_bid_changes(store, repos):
    async def scenario():
        listing = await seed_auction(repos)
        aggregator = BidAggregator(repos.bids)
        unsubscribe = aggregator.watch([listing.id], store.change_feed)
        await repos.bids.insert(bid_row(listing.id, "a", 130))
        counts_while_watching = dict(aggregator.bid_counts)
        unsubscribe()
        await repos.bids.insert(bid_row(listing.id, "b", 140))
        return listing.id, counts_while_watching, dict(aggregator.bid_counts)

    listing_id, while_watching, after = run(scenario())

    assert while_watching == {listing_id: 1}
    assert after == {listing_id: 1}


def test_proxy_amount_caps_at_leader_ceiling():
    assert proxy_amount(200, 150, 5) == 155
    assert proxy_amount(152, 150, 5) == 152


def test_single_bid_is_priced_from_starting_price(repos):
    async def scenario():
        listing = await seed_auction(repos)
        result = await ProxyBidding(repos).place_bid(listing.id, "buyer-1", 180, now=NOW)
        return result, await repos.listings.get(listing.id)

    result, listing = run(scenario())

    assert result.success
    assert listing.current_bid == 105.0
    assert listing.highest_bidder_id == "buyer-1"


def test_competing_bids_raise_to_runner_up_plus_increment(repos):
    async def scenario():
        listing = await seed_auction(repos)
        bidding = ProxyBidding(repos)
        await bidding.place_bid(listing.id, "buyer-1", 180, now=NOW)
        await bidding.place_bid(listing.id, "buyer-2", 150, now=NOW + timedelta(minutes=1))
        updated = await repos.listings.get(listing.id)
        notifications = await repos.notifications.latest("buyer-1")
        return updated, notifications

    listing, notifications = run(scenario())

    assert listing.current_bid == 155.0
    assert listing.highest_bidder_id == "buyer-1"
    assert notifications == []


def test_outbid_leader_is_notified(repos):
    async def scenario():
        listing = await seed_auction(repos)
        bidding = ProxyBidding(repos)
        await bidding.place_bid(listing.id, "buyer-1", 150, now=NOW)
        await bidding.place_bid(listing.id, "buyer-2", 200, now=NOW + timedelta(minutes=1))
        return await repos.listings.get(listing.id), await repos.notifications.latest("buyer-1")

    listing, notifications = run(scenario())

    assert listing.highest_bidder_id == "buyer-2"
    assert listing.current_bid == 155.0
    assert [n.type for n in notifications] == ["outbid"]


@pytest.mark.parametrize("overrides,user,amount,message", [
    (dict(type="sale"), "buyer-1", 200, "Bids can only be placed on auctions."),
    (dict(expires_at=NOW - timedelta(hours=1)), "buyer-1", 200, "This auction has ended."),
    ({}, "seller-1", 200, "You cannot bid on your own listing."),
    ({}, "buyer-1", 50, "Your bid must be at least £100.00."),
])
def test_invalid_bids_are_rejected(repos, overrides, user, amount, message):
    async def scenario():
        listing = await seed_auction(repos, **overrides)
        return await ProxyBidding(repos).place_bid(listing.id, user, amount, now=NOW)

    result = run(scenario())

    assert not result.success
    assert result.error == message
    assert not result.retryable


def test_update_bid_raises_ceiling(repos):
    async def scenario():
        listing = await seed_auction(repos)
        bidding = ProxyBidding(repos)
        placed = await bidding.place_bid(listing.id, "buyer-1", 150, now=NOW)
        await bidding.place_bid(listing.id, "buyer-2", 200, now=NOW)
        raised = await bidding.update_bid(placed.record_id, "buyer-1", 300, now=NOW)
        lowered = await bidding.update_bid(placed.record_id, "buyer-1", 250, now=NOW)
        return raised, lowered, await repos.listings.get(listing.id)

    raised, lowered, listing = run(scenario())

    assert raised.success
    assert not lowered.success
    assert listing.highest_bidder_id == "buyer-1"
    assert listing.current_bid == 205.0


def test_withdrawing_only_bid_clears_current_bid(repos):
    async def scenario():
        listing = await seed_auction(repos)
        bidding = ProxyBidding(repos)
        placed = await bidding.place_bid(listing.id, "buyer-1", 150, now=NOW)
        result = await bidding.withdraw_bid(placed.record_id, "buyer-1")
        return result, await repos.listings.get(listing.id)

    result, listing = run(scenario())

    assert result.success
    assert listing.current_bid is None
    assert listing.highest_bidder_id is None
