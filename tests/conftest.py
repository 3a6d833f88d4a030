# tests/conftest.py
"""
Shared fixtures for the classbook test suite.

Every test gets its own file-backed SQLite database under tmp_path, so
worker threads used by the class-wide cancellation open real connections of
their own, plus a fresh AvailabilityCache.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy.orm import Session, sessionmaker

from classbook.core.enums import ReservationStatus
from classbook.core.ulid_helper import generate_ulid
from classbook.database import Base, build_engine

# Import models so Base.metadata is populated for create_all.
import classbook.models  # noqa: F401
from classbook.models import (
    ClassSchedule,
    FitnessClass,
    Reservation,
    SessionCredit,
    UserMembership,
)
from classbook.services.availability_cache import AvailabilityCache


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'classbook_test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cache() -> AvailabilityCache:
    return AvailabilityCache(ttl_seconds=30)


@pytest.fixture
def user_id() -> str:
    return generate_ulid()


@pytest.fixture
def make_class(db):
    def _make(
        title: str = "Morning Pilates",
        class_type: str = "REGULAR",
        price: int = 50000,
        capacity: int = 10,
    ) -> FitnessClass:
        fitness_class = FitnessClass(
            title=title, class_type=class_type, price=price, capacity=capacity
        )
        db.add(fitness_class)
        db.commit()
        return fitness_class

    return _make


@pytest.fixture
def make_schedule(db, make_class):
    def _make(
        fitness_class: Optional[FitnessClass] = None,
        start_at: Optional[datetime] = None,
        capacity: int = 10,
        remaining_seats: Optional[int] = None,
        is_cancelled: bool = False,
    ) -> ClassSchedule:
        fitness_class = fitness_class or make_class(capacity=capacity)
        schedule = ClassSchedule(
            class_id=fitness_class.id,
            start_at=start_at or _utc_now() + timedelta(days=3),
            duration_minutes=60,
            capacity=capacity,
            remaining_seats=capacity if remaining_seats is None else remaining_seats,
            is_cancelled=is_cancelled,
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule

    return _make


@pytest.fixture
def make_reservation(db):
    def _make(
        schedule: ClassSchedule,
        user_id: Optional[str] = None,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        student_count: int = 1,
        total_price: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        take_seats: bool = True,
    ) -> Reservation:
        """Insert a reservation; by default its seats are taken from the schedule."""
        if total_price is None:
            total_price = schedule.fitness_class.price * student_count
        reservation = Reservation(
            user_id=user_id or generate_ulid(),
            schedule_id=schedule.id,
            student_count=student_count,
            total_price=total_price,
            payment_method="card",
            status=status.value,
            expires_at=expires_at,
        )
        db.add(reservation)
        if take_seats:
            schedule.remaining_seats -= student_count
        db.commit()
        return reservation

    return _make


@pytest.fixture
def make_membership(db):
    def _make(user_id: str, tier: str = "REGULAR") -> UserMembership:
        membership = UserMembership(user_id=user_id, tier=tier)
        db.add(membership)
        db.commit()
        return membership

    return _make


@pytest.fixture
def make_credit(db):
    def _make(
        user_id: str, session_count: int = 5, expires_at: Optional[datetime] = None
    ) -> SessionCredit:
        credit = SessionCredit(
            user_id=user_id,
            session_count=session_count,
            expires_at=expires_at or _utc_now() + timedelta(days=30),
        )
        db.add(credit)
        db.commit()
        return credit

    return _make
