"""Tests for the confidence score and traffic spike rule."""

import pytest

from src.mk_risk.domain.confidence import (
    ConfidenceSignals,
    calculate_confidence_score,
    detect_traffic_spike,
)


def _signals(**overrides) -> ConfidenceSignals:
    base = dict(
        validation_rate=90.0,
        flagged_creators_percent=0.0,
        fraud_block_rate=0.0,
        reserve_exposure_percent=0.0,
        has_traffic_spike=False,
    )
    base.update(overrides)
    return ConfidenceSignals(**base)


class TestConfidenceScore:
    def test_clean_signals_are_healthy(self) -> None:
        result = calculate_confidence_score(_signals())
        assert (result.score, result.badge) == (100, "HEALTHY")

    def test_every_penalty_applied(self) -> None:
        result = calculate_confidence_score(
            _signals(
                validation_rate=40,
                flagged_creators_percent=25,
                fraud_block_rate=30,
                reserve_exposure_percent=20,
                has_traffic_spike=True,
            )
        )
        assert (result.score, result.badge) == (50, "RISK")

    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({"validation_rate": 49.9}, 90),
            ({"validation_rate": 50}, 100),
            ({"flagged_creators_percent": 20.1}, 85),
            ({"flagged_creators_percent": 20}, 100),
            ({"fraud_block_rate": 25.1}, 90),
            ({"reserve_exposure_percent": 15.1}, 95),
            ({"has_traffic_spike": True}, 90),
        ],
    )
    def test_single_penalties(self, overrides: dict, expected: int) -> None:
        assert calculate_confidence_score(_signals(**overrides)).score == expected

    def test_badge_boundaries(self) -> None:
        # 100 - 15 - 5 = 80
        assert calculate_confidence_score(
            _signals(flagged_creators_percent=30, reserve_exposure_percent=30)
        ).badge == "HEALTHY"
        # 100 - 15 - 10 - 5 = 70
        assert calculate_confidence_score(
            _signals(flagged_creators_percent=30, fraud_block_rate=30, reserve_exposure_percent=30)
        ).badge == "MONITOR"
        # 100 - 10 - 15 - 10 - 5 = 60
        assert calculate_confidence_score(
            _signals(
                validation_rate=10,
                flagged_creators_percent=30,
                fraud_block_rate=30,
                reserve_exposure_percent=30,
            )
        ).badge == "MONITOR"


class TestTrafficSpike:
    def test_needs_two_periods(self) -> None:
        assert detect_traffic_spike([]) is False
        assert detect_traffic_spike([50000]) is False

    def test_growth_above_ratio(self) -> None:
        # previous average 1000, latest is 4x above it
        assert detect_traffic_spike([5000, 1000, 1000, 1000]) is True

    def test_growth_at_ratio_is_not_spike(self) -> None:
        assert detect_traffic_spike([4000, 1000, 1000, 1000]) is False

    def test_divisor_is_always_three(self) -> None:
        # average of [3000] over 3 periods is 1000
        assert detect_traffic_spike([4100, 3000]) is True

    def test_no_history_uses_floor(self) -> None:
        assert detect_traffic_spike([1001, 0, 0, 0]) is True
        assert detect_traffic_spike([1000, 0, 0, 0]) is False

    def test_only_three_previous_periods_count(self) -> None:
        assert detect_traffic_spike([5000, 1000, 1000, 1000, 1_000_000]) is True
