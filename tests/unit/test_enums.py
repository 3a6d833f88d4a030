"""Tests for enum parsing and reservation status transitions."""

import pytest

from classbook.core.enums import ClassType, MembershipTier, ReservationStatus


class TestReservationStatus:
    @pytest.mark.parametrize(
        "source,target",
        [
            (ReservationStatus.PENDING, ReservationStatus.CONFIRMED),
            (ReservationStatus.PENDING, ReservationStatus.CANCELLED),
            (ReservationStatus.PENDING, ReservationStatus.EXPIRED),
            (ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED),
        ],
    )
    def test_forward_transitions_allowed(self, source, target):
        assert source.can_transition_to(target)

    @pytest.mark.parametrize(
        "source,target",
        [
            (ReservationStatus.CONFIRMED, ReservationStatus.PENDING),
            (ReservationStatus.CONFIRMED, ReservationStatus.EXPIRED),
            (ReservationStatus.CANCELLED, ReservationStatus.CONFIRMED),
            (ReservationStatus.CANCELLED, ReservationStatus.PENDING),
            (ReservationStatus.EXPIRED, ReservationStatus.CANCELLED),
            (ReservationStatus.EXPIRED, ReservationStatus.CONFIRMED),
        ],
    )
    def test_reopening_is_not_allowed(self, source, target):
        assert not source.can_transition_to(target)

    def test_terminal_statuses(self):
        assert ReservationStatus.CANCELLED.is_terminal
        assert ReservationStatus.EXPIRED.is_terminal
        assert not ReservationStatus.PENDING.is_terminal
        assert not ReservationStatus.CONFIRMED.is_terminal


class TestParsing:
    def test_tier_parse_is_case_insensitive(self):
        assert MembershipTier.parse(" gold ") == MembershipTier.GOLD

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_tier_is_regular(self, value):
        assert MembershipTier.parse(value) == MembershipTier.REGULAR

    def test_unknown_class_type_is_regular(self, caplog):
        assert ClassType.parse("AERIAL") == ClassType.REGULAR
        assert "AERIAL" in caplog.text
