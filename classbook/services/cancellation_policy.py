"""Cancellation refund policy evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..core.enums import ClassType, MembershipTier, TimeBand
from ..core.timezone_utils import ensure_utc, utc_now

MESSAGE_ALREADY_STARTED = "The class has already started and can no longer be cancelled."


@dataclass(frozen=True)
class MembershipPolicy:
    late_refund_rate: Decimal
    grace_minutes: int


@dataclass(frozen=True)
class TimeBandPolicy:
    hours: int
    refund_rate: Decimal


MEMBERSHIP_POLICIES: dict[MembershipTier, MembershipPolicy] = {
    MembershipTier.REGULAR: MembershipPolicy(late_refund_rate=Decimal("0.5"), grace_minutes=0),
    MembershipTier.SILVER: MembershipPolicy(late_refund_rate=Decimal("0.6"), grace_minutes=30),
    MembershipTier.GOLD: MembershipPolicy(late_refund_rate=Decimal("0.7"), grace_minutes=60),
    MembershipTier.VIP: MembershipPolicy(late_refund_rate=Decimal("0.8"), grace_minutes=120),
}

CLASS_TYPE_MODIFIERS: dict[ClassType, Decimal] = {
    ClassType.REGULAR: Decimal("1.0"),
    ClassType.SPECIAL: Decimal("0.8"),
    ClassType.WORKSHOP: Decimal("0.7"),
    ClassType.EVENT: Decimal("0.5"),
}

TIME_BAND_POLICIES: dict[TimeBand, TimeBandPolicy] = {
    TimeBand.EARLY: TimeBandPolicy(hours=48, refund_rate=Decimal("1.0")),
    TimeBand.STANDARD: TimeBandPolicy(hours=24, refund_rate=Decimal("0.8")),
    # LATE uses the member's late_refund_rate; 0.5 is the REGULAR value
    TimeBand.LATE: TimeBandPolicy(hours=0, refund_rate=Decimal("0.5")),
    TimeBand.AFTER_START: TimeBandPolicy(hours=0, refund_rate=Decimal("0")),
}


def format_rate(rate: Decimal) -> str:
    """0.56 -> '56', 1.0 -> '100'."""
    return f"{(rate * 100).normalize():f}"


def round_amount(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CancellationPolicyResult:
    can_cancel: bool
    time_band: TimeBand
    membership_level: MembershipTier = MembershipTier.REGULAR
    class_type: ClassType = ClassType.REGULAR
    grace_minutes: int = 0
    base_rate: Decimal = Decimal("0")
    class_type_modifier: Decimal = Decimal("1.0")
    refund_rate: Decimal = Decimal("0")
    refund_amount: int = 0
    time_to_class_hours: int = 0
    message: str = ""

    def to_payload(self) -> dict[str, object]:
        return {
            "can_cancel": self.can_cancel,
            "time_band": self.time_band.value,
            "membership_level": self.membership_level.value,
            "class_type": self.class_type.value,
            "grace_minutes": self.grace_minutes,
            "base_rate": str(self.base_rate),
            "class_type_modifier": str(self.class_type_modifier),
            "refund_rate": str(self.refund_rate),
            "refund_amount": int(self.refund_amount),
            "time_to_class_hours": self.time_to_class_hours,
            "message": self.message,
        }


@dataclass(frozen=True)
class DeadlineEntry:
    time: datetime
    label: str
    refund_rate: Decimal


@dataclass(frozen=True)
class CancellationDeadlines:
    full_refund: datetime
    partial_refund: datetime
    minimal_refund: datetime
    no_refund: datetime
    deadlines: tuple[DeadlineEntry, ...] = field(default_factory=tuple)


def resolve_tier(membership: Any) -> MembershipTier:
    """Accept a UserMembership row, a tier, a raw string or None."""
    if isinstance(membership, MembershipTier):
        return membership
    if membership is None or isinstance(membership, str):
        return MembershipTier.parse(membership)
    return MembershipTier.parse(getattr(membership, "tier", None))


def resolve_class_type(schedule: Any) -> ClassType:
    value = getattr(schedule, "class_type", None)
    if isinstance(value, ClassType):
        return value
    return ClassType.parse(value)


class CancellationPolicyEngine:
    """Computes refund rate and amount from time-to-class, membership tier and class type."""

    def evaluate(
        self,
        reservation: Any,
        schedule: Any,
        membership: Any,
        now: datetime | None = None,
    ) -> CancellationPolicyResult:
        now = ensure_utc(now) if now is not None else utc_now()
        class_start = ensure_utc(schedule.start_at)

        if now >= class_start:
            return CancellationPolicyResult(
                can_cancel=False,
                time_band=TimeBand.AFTER_START,
                message=MESSAGE_ALREADY_STARTED,
            )

        tier = resolve_tier(membership)
        class_type = resolve_class_type(schedule)
        membership_policy = MEMBERSHIP_POLICIES[tier]
        modifier = CLASS_TYPE_MODIFIERS[class_type]

        time_to_class = class_start - now
        adjusted = time_to_class + timedelta(minutes=membership_policy.grace_minutes)

        if adjusted >= timedelta(hours=TIME_BAND_POLICIES[TimeBand.EARLY].hours):
            band = TimeBand.EARLY
            base_rate = TIME_BAND_POLICIES[TimeBand.EARLY].refund_rate
        elif adjusted >= timedelta(hours=TIME_BAND_POLICIES[TimeBand.STANDARD].hours):
            band = TimeBand.STANDARD
            base_rate = TIME_BAND_POLICIES[TimeBand.STANDARD].refund_rate
        else:
            band = TimeBand.LATE
            base_rate = membership_policy.late_refund_rate

        refund_rate = base_rate * modifier
        refund_amount = round_amount(Decimal(int(reservation.total_price or 0)) * refund_rate)

        return CancellationPolicyResult(
            can_cancel=True,
            time_band=band,
            membership_level=tier,
            class_type=class_type,
            grace_minutes=membership_policy.grace_minutes,
            base_rate=base_rate,
            class_type_modifier=modifier,
            refund_rate=refund_rate,
            refund_amount=refund_amount,
            time_to_class_hours=int(time_to_class.total_seconds() // 3600),
            message=f"Cancelling now refunds {format_rate(refund_rate)}% ({refund_amount:,})",
        )

    def calculate_deadlines(self, schedule: Any, tier: Any = None) -> CancellationDeadlines:
        """
        Instants at which each refund window begins for a member of `tier`.

        Grace minutes push the full and partial refund deadlines later.
        """
        membership_policy = MEMBERSHIP_POLICIES[resolve_tier(tier)]
        class_start = ensure_utc(schedule.start_at)
        grace = timedelta(minutes=membership_policy.grace_minutes)

        early = TIME_BAND_POLICIES[TimeBand.EARLY]
        standard = TIME_BAND_POLICIES[TimeBand.STANDARD]

        full_refund = class_start - timedelta(hours=early.hours) + grace
        partial_refund = class_start - timedelta(hours=standard.hours) + grace
        minimal_refund = class_start
        no_refund = class_start + timedelta(seconds=1)

        return CancellationDeadlines(
            full_refund=full_refund,
            partial_refund=partial_refund,
            minimal_refund=minimal_refund,
            no_refund=no_refund,
            deadlines=(
                DeadlineEntry(
                    time=full_refund,
                    label=f"{early.hours} hours before ({format_rate(early.refund_rate)}% refund)",
                    refund_rate=early.refund_rate,
                ),
                DeadlineEntry(
                    time=partial_refund,
                    label=(
                        f"{standard.hours} hours before "
                        f"({format_rate(standard.refund_rate)}% refund)"
                    ),
                    refund_rate=standard.refund_rate,
                ),
                DeadlineEntry(
                    time=minimal_refund,
                    label=(
                        "Until class start "
                        f"({format_rate(membership_policy.late_refund_rate)}% refund)"
                    ),
                    refund_rate=membership_policy.late_refund_rate,
                ),
                DeadlineEntry(
                    time=no_refund,
                    label="After class start (no refund)",
                    refund_rate=Decimal("0"),
                ),
            ),
        )
