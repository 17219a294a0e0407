"""Domain Exceptions

Business-rule failures stay in the ValueError family so callers that only
know about ValueError still treat them as rejected input.
"""
from datetime import date
from typing import Optional
from uuid import UUID


class HotelDomainError(ValueError):
    """Base class for business-rule failures"""


class InvalidStateTransitionError(HotelDomainError):
    """Raised when an operation is not legal from the current status."""

    def __init__(self, entity: str, action: str, current_status: str, detail: Optional[str] = None):
        self.entity = entity
        self.action = action
        self.current_status = current_status
        message = f"Cannot {action} {entity} with status {current_status}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RoomUnavailableError(HotelDomainError):
    """Raised when a room already has an overlapping reservation."""

    def __init__(
        self,
        room_id: UUID,
        check_in: date,
        check_out: date,
        conflicting_reservation_id: Optional[UUID] = None,
    ):
        self.room_id = room_id
        self.check_in = check_in
        self.check_out = check_out
        self.conflicting_reservation_id = conflicting_reservation_id
        super().__init__(
            f"Room {room_id} is not available from {check_in} to {check_out}"
        )


class DuplicateGuestError(HotelDomainError):
    """Raised when a second guest would share an identity number."""

    def __init__(self, id_number: str):
        self.id_number = id_number
        super().__init__("A guest with this ID number already exists")


class DuplicateRoomNumberError(HotelDomainError):
    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Room number {number} already exists")
