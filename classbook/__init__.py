"""
classbook: seat availability, temporary holds and cancellation policy for
fitness class booking.
"""

__version__ = "0.1.0"
