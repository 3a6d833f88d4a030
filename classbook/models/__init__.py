"""
Database models for the classbook engine.

- FitnessClass / ClassSchedule: catalog entries and their concrete time slots
- Reservation: a user's hold or booking on a schedule
- Cancellation: audit trail of executed cancellations and refunds
- UserMembership / SessionCredit: read-only inputs to admission and policy
"""

from .cancellation import Cancellation
from .membership import SessionCredit, UserMembership
from .reservation import Reservation
from .schedule import ClassSchedule, FitnessClass

__all__ = [
    "Cancellation",
    "ClassSchedule",
    "FitnessClass",
    "Reservation",
    "SessionCredit",
    "UserMembership",
]
