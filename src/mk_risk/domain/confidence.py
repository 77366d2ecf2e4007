"""Advertiser confidence score: additive penalties over fraud-signal aggregates.

The score is advisory. It drives badges and alerts, never spend decisions.
"""

from dataclasses import dataclass

from src.mk_common.enums import ConfidenceBadge


@dataclass
class ConfidenceSignals:
    validation_rate: float              # validated / total views, percent
    flagged_creators_percent: float
    fraud_block_rate: float             # blocked / total views, percent
    reserve_exposure_percent: float     # held-back reserve / total budget
    has_traffic_spike: bool


@dataclass
class ConfidenceResult:
    score: int
    badge: str


# (penalty, predicate)
_PENALTIES = (
    (10, lambda s: s.validation_rate < 50),
    (15, lambda s: s.flagged_creators_percent > 20),
    (10, lambda s: s.fraud_block_rate > 25),
    (5, lambda s: s.reserve_exposure_percent > 15),
    (10, lambda s: s.has_traffic_spike),
)


def calculate_confidence_score(signals: ConfidenceSignals) -> ConfidenceResult:
    score = 100
    for penalty, applies in _PENALTIES:
        if applies(signals):
            score -= penalty
    score = max(0, min(100, score))

    if score >= 80:
        badge = ConfidenceBadge.HEALTHY
    elif score >= 60:
        badge = ConfidenceBadge.MONITOR
    else:
        badge = ConfidenceBadge.RISK
    return ConfidenceResult(score=score, badge=badge.value)


def detect_traffic_spike(
    period_spends: list[int], floor_cents: int = 1000, growth_ratio: float = 3
) -> bool:
    """period_spends is ordered latest first.

    The latest period is compared with the average of the (up to) three
    periods before it; the divisor is always 3.
    """
    if len(period_spends) < 2:
        return False
    latest = period_spends[0]
    previous_avg = sum(period_spends[1:4]) / 3
    if previous_avg == 0:
        return latest > floor_cents
    return (latest - previous_avg) / previous_avg > growth_ratio
