"""Pre-flight validation for new reservations"""
import logging
from datetime import date
from typing import List

from domain.repositories import Clock, UnitOfWork
from domain.value_objects import BookingRequest, ValidationResult
from application.services import AvailabilityService, UnitOfWorkFactory

logger = logging.getLogger(__name__)

# National identity numbers are fixed-width
ID_NUMBER_LENGTH = 11


class ReservationValidator:
    """Collects every business-rule violation of a booking request.

    Never raises for a rule violation; the result lists all of them so the
    caller can reject the request in one response. Reads may be stale:
    the reservation engine rechecks availability when it commits.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, availability: AvailabilityService, clock: Clock):
        self._uow_factory = uow_factory
        self.availability = availability
        self.clock = clock

    async def validate_create(self, request: BookingRequest) -> ValidationResult:
        errors: List[str] = []
        check_in, check_out = request.check_in_date, request.check_out_date

        # Dates
        if check_in >= check_out:
            errors.append("Check-out date must be after check-in date")
        if check_in < self.clock.today():
            errors.append("Check-in date cannot be in the past")

        async with self._uow_factory() as uow:
            # Room
            room = await uow.rooms.find_by_id(request.room_id)
            if room is None:
                errors.append("Room not found")
            else:
                if room.capacity < request.number_of_guests:
                    errors.append(
                        f"Room capacity ({room.capacity}) exceeded. Guests: {request.number_of_guests}"
                    )
                if not await self.availability.is_available(room.room_id, check_in, check_out, uow=uow):
                    errors.append("Room is not available for selected dates")

            # Guest count
            expected = 1 + len(request.additional_guests)
            if request.number_of_guests != expected:
                errors.append(
                    f"Number of guests ({request.number_of_guests}) doesn't match "
                    f"provided guest details ({expected})"
                )

            # Primary guest
            primary = request.primary_guest
            if not primary.name.strip():
                errors.append("Primary guest name is required")
            if not primary.id_number.strip():
                errors.append("Primary guest ID number is required")
            if len(primary.id_number) != ID_NUMBER_LENGTH:
                errors.append(f"Primary guest ID number must be {ID_NUMBER_LENGTH} characters")

            if primary.id_number.strip() and await self._has_active_stay(uow, primary.id_number, check_in, check_out):
                errors.append("Primary guest already has an active reservation for these dates")

        # Payment
        if request.total_amount < 0:
            errors.append("Total amount cannot be negative")
        if request.paid_amount < 0:
            errors.append("Paid amount cannot be negative")
        if request.paid_amount > request.total_amount:
            errors.append("Paid amount cannot exceed total amount")

        if errors:
            logger.warning("Reservation request for room %s rejected: %d error(s)", request.room_id, len(errors))
        return ValidationResult(is_valid=not errors, errors=errors)

    @staticmethod
    async def _has_active_stay(uow: UnitOfWork, id_number: str, check_in: date, check_out: date) -> bool:
        """Whether the identity already holds an overlapping live reservation"""
        guest = await uow.guests.find_by_id_number(id_number)
        if guest is None:
            return False

        reservations = await uow.reservations.find_by_guest_id(guest.guest_id)
        return any(
            r.blocks_room() and r.date_range.overlaps(check_in, check_out)
            for r in reservations
        )
