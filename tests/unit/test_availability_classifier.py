"""Tests for classify_availability and the LIMITED threshold."""

from types import SimpleNamespace

import pytest

from classbook.core.enums import AvailabilityStatus
from classbook.services.availability_service import classify_availability, limited_threshold


def _schedule(capacity=10, remaining_seats=10, is_cancelled=False):
    return SimpleNamespace(
        capacity=capacity, remaining_seats=remaining_seats, is_cancelled=is_cancelled
    )


class TestClassifyAvailability:
    def test_twenty_percent_of_ten_is_limited(self):
        assert classify_availability(_schedule(10, 2), 0.2) == AvailabilityStatus.LIMITED

    def test_above_threshold_is_available(self):
        assert classify_availability(_schedule(10, 3), 0.2) == AvailabilityStatus.AVAILABLE

    def test_no_seats_is_full(self):
        assert classify_availability(_schedule(10, 0), 0.2) == AvailabilityStatus.FULL

    @pytest.mark.parametrize("remaining", [0, 1, 5, 10])
    def test_cancelled_dominates_everything(self, remaining):
        schedule = _schedule(10, remaining, is_cancelled=True)
        assert classify_availability(schedule, 0.2) == AvailabilityStatus.CANCELLED

    def test_small_class_rounds_threshold_up(self):
        # ceil(3 * 0.2) == 1
        assert classify_availability(_schedule(3, 1), 0.2) == AvailabilityStatus.LIMITED
        assert classify_availability(_schedule(3, 2), 0.2) == AvailabilityStatus.AVAILABLE

    def test_threshold_has_no_float_drift(self):
        # 15 * 0.2 is 3.0000000000000004 in binary floating point
        assert limited_threshold(15, 0.2) == 3
        assert classify_availability(_schedule(15, 4), 0.2) == AvailabilityStatus.AVAILABLE

    def test_custom_ratio(self):
        assert limited_threshold(10, 0.5) == 5
        assert classify_availability(_schedule(10, 5), 0.5) == AvailabilityStatus.LIMITED

    def test_default_ratio_comes_from_settings(self):
        assert limited_threshold(10) == 2
