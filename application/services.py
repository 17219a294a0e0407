"""Application Services - Business use cases"""
import logging
from contextlib import asynccontextmanager
from uuid import UUID, uuid4
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncIterator, Callable, List, Optional, Tuple

from pydantic import BaseModel

from domain.repositories import UnitOfWork, Clock
from domain.entities import Reservation, Room, Guest
from domain.enums import ReservationStatus, RoomStatus, RoomType
from domain.exceptions import (
    DuplicateGuestError, DuplicateRoomNumberError, InvalidStateTransitionError, RoomUnavailableError,
)
from domain.value_objects import BookingRequest, CheckOutResult, DateRange, GuestDetails
from infrastructure.clock import SystemClock
from infrastructure.locks import KeyedLock, identity_key, room_key

logger = logging.getLogger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]


class StayGuest(BaseModel):
    """A guest together with their role on one reservation"""
    guest: Guest
    is_primary: bool


class ReservationDetails(BaseModel):
    """Reservation with its resolved guest list"""
    reservation: Reservation
    guests: List[StayGuest] = []


# ============================================================================
# ROOM REGISTRY
# ============================================================================

class RoomService:
    """Service for Room use cases"""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory

    async def create_room(
        self,
        number: str,
        capacity: int,
        price: Decimal,
        room_type: RoomType = RoomType.SINGLE,
        floor: int = 0,
        features: Optional[List[str]] = None
    ) -> Room:
        """Create a room; new rooms start AVAILABLE"""
        async with self._uow_factory() as uow:
            if await uow.rooms.find_by_number(number):
                raise DuplicateRoomNumberError(number)

            room = Room(
                number=number,
                room_type=room_type,
                price=price,
                floor=floor,
                capacity=capacity,
                features=features or [],
                status=RoomStatus.AVAILABLE
            )
            await uow.rooms.save(room)
            await uow.commit()

        logger.info("Room %s created (%s)", room.number, room.room_id)
        return room

    async def get_room(self, room_id: UUID) -> Optional[Room]:
        """Get room by ID"""
        async with self._uow_factory() as uow:
            return await uow.rooms.find_by_id(room_id)

    async def get_all_rooms(self) -> List[Room]:
        """Get all rooms"""
        async with self._uow_factory() as uow:
            return await uow.rooms.find_all()

    async def update_room(
        self,
        room_id: UUID,
        number: Optional[str] = None,
        room_type: Optional[RoomType] = None,
        price: Optional[Decimal] = None,
        floor: Optional[int] = None,
        capacity: Optional[int] = None,
        features: Optional[List[str]] = None,
        status: Optional[RoomStatus] = None
    ) -> Optional[Room]:
        """Administrative edit, including a manual status override"""
        async with self._uow_factory() as uow:
            room = await uow.rooms.find_by_id(room_id)
            if not room:
                return None

            if number is not None:
                room.number = number
            if room_type is not None:
                room.room_type = room_type
            if price is not None:
                room.price = price
            if floor is not None:
                room.floor = floor
            if capacity is not None:
                if capacity < 1:
                    raise ValueError("Capacity must be at least 1")
                room.capacity = capacity
            if features is not None:
                room.features = features
            if status is not None and status != room.status:
                logger.info("Room %s status overridden: %s -> %s", room.number, room.status.value, status.value)
                room.override_status(status)

            await uow.rooms.update(room)
            await uow.commit()
            return room

    async def delete_room(self, room_id: UUID) -> bool:
        """Delete a room that no live reservation points at"""
        async with self._uow_factory() as uow:
            if not await uow.rooms.find_by_id(room_id):
                return False

            reservations = await uow.reservations.find_by_room_id(room_id)
            if any(r.blocks_room() for r in reservations):
                raise ValueError("Cannot delete a room with active reservations")

            await uow.rooms.delete(room_id)
            await uow.commit()
            return True

    async def complete_cleaning(self, room_id: UUID) -> Optional[Room]:
        """Cleaning -> Available; any other status is rejected"""
        async with self._uow_factory() as uow:
            room = await uow.rooms.find_by_id(room_id)
            if not room:
                return None

            room.complete_cleaning()
            await uow.rooms.update(room)
            await uow.commit()

        logger.info("Room %s cleaned and available", room.number)
        return room


# ============================================================================
# GUEST DIRECTORY
# ============================================================================

class GuestService:
    """Service for Guest use cases"""

    def __init__(self, uow_factory: UnitOfWorkFactory, locks: Optional[KeyedLock] = None):
        self._uow_factory = uow_factory
        self.locks = locks if locks is not None else KeyedLock()

    async def get_all_guests(self) -> List[Guest]:
        """Get all guests"""
        async with self._uow_factory() as uow:
            return await uow.guests.find_all()

    async def get_guest(self, guest_id: UUID) -> Optional[Guest]:
        """Get guest by ID"""
        async with self._uow_factory() as uow:
            return await uow.guests.find_by_id(guest_id)

    async def get_guest_by_id_number(self, id_number: str) -> Optional[Guest]:
        """Get guest by identity number, matched literally"""
        async with self._uow_factory() as uow:
            return await uow.guests.find_by_id_number(id_number)

    async def create_guest(self, details: GuestDetails) -> Guest:
        """Register a guest outside of a booking"""
        async with self.locks.acquire(identity_key(details.id_number)):
            async with self._uow_factory() as uow:
                if details.id_number and await uow.guests.find_by_id_number(details.id_number):
                    raise DuplicateGuestError(details.id_number)

                guest = Guest.create(details)
                await uow.guests.save(guest)
                await uow.commit()
                return guest

    async def update_guest(
        self,
        guest_id: UUID,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        id_number: Optional[str] = None,
        address: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> Optional[Guest]:
        """Administrative edit of a guest profile"""
        async with self._uow_factory() as uow:
            guest = await uow.guests.find_by_id(guest_id)
            if not guest:
                return None

            if name is not None:
                guest.name = name
            if email is not None:
                guest.email = email
            if phone is not None:
                guest.phone = phone
            if id_number is not None:
                guest.id_number = id_number
            if address is not None:
                guest.address = address
            if is_active is not None:
                guest.is_active = is_active

            await uow.guests.update(guest)
            await uow.commit()
            return guest

    async def delete_guest(self, guest_id: UUID) -> bool:
        """Delete guest"""
        async with self._uow_factory() as uow:
            deleted = await uow.guests.delete(guest_id)
            await uow.commit()
            return deleted

    async def resolve_guest(self, uow: UnitOfWork, details: GuestDetails) -> Guest:
        """Find by identity number inside ``uow`` or create a new profile.

        An existing profile gets its contact fields refreshed. The result is
        staged in ``uow``; the caller commits.
        """
        guest = await uow.guests.find_by_id_number(details.id_number)
        if guest is None:
            guest = Guest.create(details)
            await uow.guests.save(guest)
        else:
            guest.update_contact(details)
            await uow.guests.update(guest)
        return guest


# ============================================================================
# AVAILABILITY CHECKER
# ============================================================================

class AvailabilityService:
    """Room/date-range overlap checks"""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory

    async def find_conflict(
        self,
        room_id: UUID,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[UUID] = None,
        uow: Optional[UnitOfWork] = None
    ) -> Optional[Reservation]:
        """First reservation that still holds the room and overlaps [check_in, check_out)"""
        if uow is None:
            async with self._uow_factory() as own_uow:
                return await self._scan(own_uow, room_id, check_in, check_out, exclude_reservation_id)
        return await self._scan(uow, room_id, check_in, check_out, exclude_reservation_id)

    async def is_available(
        self,
        room_id: UUID,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[UUID] = None,
        uow: Optional[UnitOfWork] = None
    ) -> bool:
        """Check if the room is free for the date range"""
        conflict = await self.find_conflict(room_id, check_in, check_out, exclude_reservation_id, uow)
        return conflict is None

    async def _scan(
        self,
        uow: UnitOfWork,
        room_id: UUID,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[UUID]
    ) -> Optional[Reservation]:
        reservations = await uow.reservations.find_by_room_id(room_id)
        for reservation in sorted(reservations, key=lambda r: r.check_in_date):
            if reservation.reservation_id == exclude_reservation_id:
                continue
            if reservation.conflicts_with(room_id, check_in, check_out):
                # ids and dates only, never guest data
                logger.warning(
                    "Room conflict: room=%s requested=%s..%s conflicting_reservation=%s existing=%s..%s",
                    room_id, check_in, check_out, reservation.reservation_id,
                    reservation.check_in_date, reservation.check_out_date
                )
                return reservation
        return None


# ============================================================================
# RESERVATION ENGINE
# ============================================================================

class ReservationService:
    """Service for Reservation lifecycle use cases"""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        availability: Optional[AvailabilityService] = None,
        guests: Optional[GuestService] = None,
        clock: Optional[Clock] = None,
        locks: Optional[KeyedLock] = None,
        id_factory: Callable[[], UUID] = uuid4,
        currency: str = "TL"
    ):
        self._uow_factory = uow_factory
        self.locks = locks if locks is not None else KeyedLock()
        self.availability = availability or AvailabilityService(uow_factory)
        self.guests = guests or GuestService(uow_factory, self.locks)
        self.clock = clock or SystemClock()
        self._id_factory = id_factory
        self.currency = currency

    # ==================== CREATION ====================
    async def create_reservation(self, request: BookingRequest) -> ReservationDetails:
        """Create a pending reservation and reconcile its guests.

        The room lock is held across the availability recheck and the
        commit, and identity locks across the guest upserts; the store's
        overlap and identity constraints back both up at commit time.
        """
        date_range = DateRange(check_in=request.check_in_date, check_out=request.check_out_date)
        all_details = [request.primary_guest] + list(request.additional_guests)
        keys = [room_key(request.room_id)]
        keys += [identity_key(d.id_number) for d in all_details if d.id_number]

        async with self.locks.acquire(*keys):
            async with self._uow_factory() as uow:
                conflict = await self.availability.find_conflict(
                    request.room_id, date_range.check_in, date_range.check_out, uow=uow
                )
                if conflict is not None:
                    raise RoomUnavailableError(
                        request.room_id, date_range.check_in, date_range.check_out,
                        conflicting_reservation_id=conflict.reservation_id
                    )

                now = self.clock.now()
                primary = await self.guests.resolve_guest(uow, request.primary_guest)

                reservation = Reservation.create(
                    reservation_id=self._id_factory(),
                    guest_id=primary.guest_id,
                    room_id=request.room_id,
                    date_range=date_range,
                    number_of_guests=request.number_of_guests,
                    total_amount=request.total_amount,
                    paid_amount=request.paid_amount,
                    payment_method=request.payment_method,
                    special_requests=request.special_requests,
                    now=now
                )

                # Only the primary guest carries the spend
                reservation.link_guest(primary.guest_id, is_primary=True)
                primary.record_visit(reservation.reservation_id, spend=reservation.total_amount)
                await uow.guests.update(primary)
                stay_guests = [StayGuest(guest=primary, is_primary=True)]

                seen = {request.primary_guest.id_number}
                for details in request.additional_guests:
                    # A repeated identity number is the same person; blank ones never match
                    if details.id_number and details.id_number in seen:
                        continue
                    seen.add(details.id_number)
                    guest = await self.guests.resolve_guest(uow, details)
                    if not reservation.link_guest(guest.guest_id, is_primary=False):
                        continue
                    guest.record_visit(reservation.reservation_id)
                    await uow.guests.update(guest)
                    stay_guests.append(StayGuest(guest=guest, is_primary=False))

                await uow.reservations.save(reservation)
                await uow.commit()

        logger.info(
            "Reservation %s created: room=%s %s..%s guests=%d",
            reservation.reservation_id, reservation.room_id,
            reservation.check_in_date, reservation.check_out_date, len(stay_guests)
        )
        return ReservationDetails(reservation=reservation, guests=stay_guests)

    # ==================== QUERIES ====================
    async def get_reservation(self, reservation_id: UUID) -> Optional[ReservationDetails]:
        """Get reservation by ID"""
        async with self._uow_factory() as uow:
            reservation = await uow.reservations.find_by_id(reservation_id)
            if not reservation:
                return None
            return await self._details(uow, reservation)

    async def get_all_reservations(self) -> List[ReservationDetails]:
        """Get all reservations"""
        async with self._uow_factory() as uow:
            reservations = await uow.reservations.find_all()
            return [await self._details(uow, r) for r in reservations]

    async def get_reservations_by_guest(self, guest_id: UUID) -> List[ReservationDetails]:
        """Get all reservations a guest is part of"""
        async with self._uow_factory() as uow:
            reservations = await uow.reservations.find_by_guest_id(guest_id)
            return [await self._details(uow, r) for r in reservations]

    # ==================== STATE TRANSITIONS ====================
    async def confirm_reservation(self, reservation_id: UUID) -> Optional[ReservationDetails]:
        """Pending -> Confirmed"""
        async with self._locked_reservation(reservation_id) as (uow, reservation):
            if not reservation:
                return None

            reservation.confirm(self.clock.now())
            await uow.reservations.update(reservation)
            await uow.commit()
            logger.info("Reservation %s confirmed", reservation_id)
            return await self._details(uow, reservation)

    async def check_in_guest(self, reservation_id: UUID) -> Optional[ReservationDetails]:
        """Check in: reservation, room and guests change together"""
        async with self._locked_reservation(reservation_id) as (uow, reservation):
            if not reservation:
                return None

            now = self.clock.now()
            reservation.check_in(today=now.date(), now=now)

            room = await uow.rooms.find_by_id(reservation.room_id)
            if room:
                room.mark_occupied()
                await uow.rooms.update(room)
            else:
                logger.warning("Reservation %s references missing room %s", reservation_id, reservation.room_id)

            for guest in await uow.guests.find_by_ids(reservation.guest_ids()):
                guest.activate()
                await uow.guests.update(guest)

            await uow.reservations.update(reservation)
            await uow.commit()
            logger.info("Reservation %s checked in", reservation_id)
            return await self._details(uow, reservation)

    async def check_out_guest(self, reservation_id: UUID, force: bool = False) -> Optional[CheckOutResult]:
        """Check out, unless a balance is open and ``force`` is not set.

        Guests stay active after check-out; they remain guest history.
        """
        async with self._locked_reservation(reservation_id) as (uow, reservation):
            if not reservation:
                return None

            if reservation.status != ReservationStatus.CHECKED_IN:
                raise InvalidStateTransitionError("reservation", "check out", reservation.status.value)

            remaining = reservation.remaining_amount
            if not reservation.is_paid and not force:
                logger.info("Reservation %s check-out blocked: balance %s open", reservation_id, remaining)
                return CheckOutResult(
                    success=False,
                    message=f"Payment incomplete. Remaining: {remaining:.2f} {self.currency}",
                    requires_payment=True,
                    remaining_amount=remaining
                )

            now = self.clock.now()
            reservation.check_out(now)

            room = await uow.rooms.find_by_id(reservation.room_id)
            if room:
                room.mark_cleaning()
                await uow.rooms.update(room)
            else:
                logger.warning("Reservation %s references missing room %s", reservation_id, reservation.room_id)

            await uow.reservations.update(reservation)
            await uow.commit()

        if remaining > 0:
            logger.warning("Reservation %s force checked out with balance %s", reservation_id, remaining)
            message = f"Check-out completed with outstanding balance: {remaining:.2f} {self.currency}"
        else:
            logger.info("Reservation %s checked out", reservation_id)
            message = "Check-out completed successfully"

        return CheckOutResult(
            success=True,
            message=message,
            requires_payment=False,
            remaining_amount=remaining
        )

    async def cancel_reservation(self, reservation_id: UUID) -> Optional[ReservationDetails]:
        """Pending/Confirmed -> Cancelled; frees the room's dates"""
        async with self._locked_reservation(reservation_id) as (uow, reservation):
            if not reservation:
                return None

            reservation.cancel(self.clock.now())
            await uow.reservations.update(reservation)
            await uow.commit()
            logger.info("Reservation %s cancelled", reservation_id)
            return await self._details(uow, reservation)

    # ==================== ADMINISTRATIVE EDITS ====================
    async def record_payment(
        self,
        reservation_id: UUID,
        amount: Decimal,
        payment_method: Optional[str] = None
    ) -> Optional[ReservationDetails]:
        """Book a payment against the reservation"""
        async with self._locked_reservation(reservation_id) as (uow, reservation):
            if not reservation:
                return None

            reservation.record_payment(amount, self.clock.now(), payment_method)
            await uow.reservations.update(reservation)
            await uow.commit()
            logger.info("Reservation %s payment recorded, paid=%s", reservation_id, reservation.is_paid)
            return await self._details(uow, reservation)

    async def update_reservation(
        self,
        reservation_id: UUID,
        check_in_date: Optional[date] = None,
        check_out_date: Optional[date] = None,
        total_amount: Optional[Decimal] = None,
        paid_amount: Optional[Decimal] = None,
        payment_method: Optional[str] = None,
        special_requests: Optional[str] = None,
        status: Optional[ReservationStatus] = None
    ) -> Optional[ReservationDetails]:
        """Administrative edit.

        Status edits go through the state machine: only confirm and cancel
        are reachable here; check-in and check-out have their own
        operations because they move the room too. The guest count is fixed
        by the guests linked at creation and is not editable.
        """
        async with self._locked_reservation(reservation_id) as (uow, reservation):
            if not reservation:
                return None

            now = self.clock.now()

            if check_in_date is not None or check_out_date is not None:
                date_range = DateRange(
                    check_in=check_in_date or reservation.check_in_date,
                    check_out=check_out_date or reservation.check_out_date
                )
                if date_range != reservation.date_range:
                    conflict = await self.availability.find_conflict(
                        reservation.room_id, date_range.check_in, date_range.check_out,
                        exclude_reservation_id=reservation_id, uow=uow
                    )
                    if conflict is not None:
                        raise RoomUnavailableError(
                            reservation.room_id, date_range.check_in, date_range.check_out,
                            conflicting_reservation_id=conflict.reservation_id
                        )
                    reservation.reschedule(date_range, now)

            if total_amount is not None or paid_amount is not None:
                reservation.update_amounts(
                    total_amount if total_amount is not None else reservation.total_amount,
                    paid_amount if paid_amount is not None else reservation.paid_amount,
                    now
                )

            if payment_method is not None:
                reservation.payment_method = payment_method
            if special_requests is not None:
                reservation.special_requests = special_requests

            if status is not None and status != reservation.status:
                self._apply_status(reservation, status, now)

            reservation.updated_at = now
            await uow.reservations.update(reservation)
            await uow.commit()
            logger.info("Reservation %s updated", reservation_id)
            return await self._details(uow, reservation)

    async def delete_reservation(self, reservation_id: UUID) -> bool:
        """Hard delete"""
        async with self._locked_reservation(reservation_id) as (uow, reservation):
            if not reservation:
                return False

            await uow.reservations.delete(reservation_id)
            await uow.commit()
            logger.info("Reservation %s deleted", reservation_id)
            return True

    # ==================== HELPERS ====================
    @asynccontextmanager
    async def _locked_reservation(
        self, reservation_id: UUID
    ) -> AsyncIterator[Tuple[Optional[UnitOfWork], Optional[Reservation]]]:
        """Yield a fresh read of the reservation with its room locked"""
        async with self._uow_factory() as uow:
            current = await uow.reservations.find_by_id(reservation_id)
        if current is None:
            yield None, None
            return

        async with self.locks.acquire(room_key(current.room_id)):
            async with self._uow_factory() as uow:
                yield uow, await uow.reservations.find_by_id(reservation_id)

    @staticmethod
    def _apply_status(reservation: Reservation, status: ReservationStatus, now: datetime) -> None:
        if status == ReservationStatus.CONFIRMED:
            reservation.confirm(now)
        elif status == ReservationStatus.CANCELLED:
            reservation.cancel(now)
        else:
            raise InvalidStateTransitionError(
                "reservation", f"set status {status.value} on", reservation.status.value,
                detail="use the check-in or check-out operation"
            )

    @staticmethod
    async def _details(uow: UnitOfWork, reservation: Reservation) -> ReservationDetails:
        roles = {link.guest_id: link.is_primary for link in reservation.guests}
        guests = await uow.guests.find_by_ids(reservation.guest_ids())
        return ReservationDetails(
            reservation=reservation,
            guests=[StayGuest(guest=g, is_primary=roles[g.guest_id]) for g in guests]
        )
