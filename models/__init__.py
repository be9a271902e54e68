"""
SQLAlchemy ORM models for iVisit Emergency Backend.

Contains all database models organized by module.
"""

from .emergency import EmergencyRequest, Visit
from .hospital import Hospital
from .profile import MedicalProfile, EmergencyContact, UserPreferences
from .notification import Notification

__all__ = [
    "EmergencyRequest",
    "Visit",
    "Hospital",
    "MedicalProfile",
    "EmergencyContact",
    "UserPreferences",
    "Notification",
]
