"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .admission import AdmissionLease, AdmissionLock
from .local_admission import LocalAdmissionLock
from .repositories import AuthorizationCheck, GarageRepository, ReservationRepository

__all__ = [
    'AdmissionLease', 'AdmissionLock', 'LocalAdmissionLock',
    'AuthorizationCheck', 'GarageRepository', 'ReservationRepository',
]
