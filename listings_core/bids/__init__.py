"""
Bids module for auction listings.

Provides batched highest-bid/bid-count aggregation and proxy bidding.
"""

from .bid_aggregator import BidAggregator, BidSummary
from .proxy_bidding import ProxyBidding, proxy_amount, DEFAULT_BID_INCREMENT

__all__ = [
    'BidAggregator',
    'BidSummary',
    'ProxyBidding',
    'proxy_amount',
    'DEFAULT_BID_INCREMENT',
]
