"""Fraud-signal aggregates read from tables owned by the validation pipeline."""

from dataclasses import dataclass
from datetime import date


@dataclass
class TrafficTotals:
    total_views: int = 0
    validated_views: int = 0
    creators_with_traffic: int = 0   # creator-days with traffic in the window
    flagged_creators: int = 0        # creator-days with a fraud flag


@dataclass
class PayoutQueueTotals:
    pending_cents: int = 0
    released_cents: int = 0
    reversed_cents: int = 0


@dataclass
class DailySpend:
    day: date
    spend_cents: int
