# File: src/parkwash/domain/exceptions.py
"""
Domain Exceptions for the ParkWash Scheduling Engine

Every business rejection raised by the engine derives from FacilityError.
Each class carries a stable ``code`` that the calling layer maps to its own
display messages (see ErrorResponseDTO.from_exception).

None of these are transient: callers decide whether to retry or abandon.
Infrastructure faults (database, Redis) are never wrapped in these types.
"""

from typing import Any, Dict, Optional


class FacilityError(Exception):
    """Base exception for facility engine errors"""
    code = "facility_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFound(FacilityError):
    """Exception for unknown entity ids"""
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} {entity_id} not found",
            {"entity": entity, "id": str(entity_id)}
        )


class InvalidTransition(FacilityError):
    """Exception for illegal state-machine moves"""
    code = "invalid_transition"

    def __init__(self, entity: str, current: Any, target: Any, message: Optional[str] = None):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            message or f"{entity} cannot move from {current_value} to {target_value}",
            {"entity": entity, "from": current_value, "to": target_value}
        )


class AlreadyClosed(InvalidTransition):
    """Exception when closing a stay twice"""
    code = "already_closed"

    def __init__(self, stay_id: str):
        super().__init__("Stay", "closed", "closed", message=f"Stay {stay_id} is already closed")
        self.details["id"] = stay_id


class DuplicateActiveStay(FacilityError):
    """Exception when a plate already has an open stay"""
    code = "duplicate_active_stay"

    def __init__(self, plate: str):
        super().__init__(f"Vehicle {plate} already has an active stay", {"plate": plate})


class AllocationError(FacilityError):
    """Base exception for space allocation errors"""
    code = "allocation_error"


class SpaceUnavailable(AllocationError):
    """Exception when a requested space cannot be taken"""
    code = "space_unavailable"


class NoCapacity(AllocationError):
    """Exception when no compatible space is free"""
    code = "no_capacity"


class SlotNoLongerAvailable(FacilityError):
    """Exception when reservation capacity was consumed before booking"""
    code = "slot_no_longer_available"


class TariffNotConfigured(FacilityError):
    """Exception when no active tariff matches a request"""
    code = "tariff_not_configured"

    def __init__(self, vehicle_type: Any, service_type: Any):
        vehicle_value = getattr(vehicle_type, "value", vehicle_type)
        service_value = getattr(service_type, "value", service_type)
        super().__init__(
            f"No active '{service_value}' tariff for vehicle type '{vehicle_value}'",
            {"vehicle_type": vehicle_value, "service_type": service_value}
        )


class Forbidden(FacilityError):
    """Exception for mutations attempted without the required role"""
    code = "forbidden"


class ValidationError(FacilityError):
    """Exception for malformed input"""
    code = "validation_error"


class InvalidWashType(ValidationError):
    """Exception for unknown wash types"""
    code = "invalid_wash_type"


class DuplicateName(FacilityError):
    """Exception for zone name or space number collisions"""
    code = "duplicate_name"


class DuplicateReservation(FacilityError):
    """Exception when the same vehicle re-books an overlapping window"""
    code = "duplicate_reservation"
