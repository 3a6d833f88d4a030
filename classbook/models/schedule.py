# classbook/models/schedule.py
"""
Class and schedule models.

A FitnessClass is the catalog entry (title, type, price). A ClassSchedule is
one concrete time slot of that class and owns the denormalized seat counter
that holds and cancellations adjust with guarded single-statement updates.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import ClassType
from ..core.ulid_helper import generate_ulid
from ..database import Base


class FitnessClass(Base):
    __tablename__ = "classes"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    title = Column(String(200), nullable=False)
    class_type = Column(String(20), nullable=False, default=ClassType.REGULAR.value)
    price = Column(Integer, nullable=False, default=0)
    capacity = Column(Integer, nullable=False, default=10)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    schedules = relationship("ClassSchedule", back_populates="fitness_class")

    __table_args__ = (CheckConstraint("price >= 0", name="ck_classes_price_non_negative"),)

    def __repr__(self) -> str:
        return f"<FitnessClass {self.id} {self.title!r} type={self.class_type}>"


class ClassSchedule(Base):
    """One scheduled occurrence of a class."""

    __tablename__ = "class_schedules"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    class_id = Column(String(26), ForeignKey("classes.id"), nullable=False, index=True)
    start_at = Column(DateTime(timezone=True), nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    capacity = Column(Integer, nullable=False)
    remaining_seats = Column(Integer, nullable=False)
    is_cancelled = Column(Boolean, nullable=False, default=False)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    fitness_class = relationship("FitnessClass", back_populates="schedules", lazy="joined")
    reservations = relationship("Reservation", back_populates="schedule")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_class_schedules_capacity_positive"),
        CheckConstraint(
            "remaining_seats >= 0 AND remaining_seats <= capacity",
            name="ck_class_schedules_remaining_seats_range",
        ),
    )

    @property
    def class_type(self) -> ClassType:
        """Class type of the parent class, REGULAR when it cannot be resolved."""
        raw = self.fitness_class.class_type if self.fitness_class is not None else None
        return ClassType.parse(raw)

    def __repr__(self) -> str:
        return (
            f"<ClassSchedule {self.id} start={self.start_at} "
            f"seats={self.remaining_seats}/{self.capacity} cancelled={self.is_cancelled}>"
        )
