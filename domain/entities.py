"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timezone
from typing import Optional, List
from decimal import Decimal

from domain.enums import ReservationStatus, RoomStatus, RoomType, BLOCKING_STATUSES
from domain.exceptions import InvalidStateTransitionError
from domain.value_objects import DateRange, GuestDetails


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Room(BaseModel):
    """Room Aggregate Root Entity"""

    room_id: UUID = Field(default_factory=uuid4)
    number: str
    room_type: RoomType = RoomType.SINGLE
    price: Decimal = Field(ge=0)
    floor: int = 0
    capacity: int = Field(gt=0)
    features: List[str] = []
    status: RoomStatus = RoomStatus.AVAILABLE

    class Config:
        from_attributes = True

    # ==================== STATE TRANSITION METHODS ====================
    def mark_occupied(self) -> None:
        """Guest checked in"""
        self.status = RoomStatus.OCCUPIED

    def mark_cleaning(self) -> None:
        """Guest checked out; housekeeping pending"""
        self.status = RoomStatus.CLEANING

    def complete_cleaning(self) -> None:
        """Return a cleaned room to the available pool"""
        if self.status != RoomStatus.CLEANING:
            raise InvalidStateTransitionError(
                entity=f"room {self.number}",
                action="complete cleaning of",
                current_status=self.status.value,
            )
        self.status = RoomStatus.AVAILABLE

    def override_status(self, status: RoomStatus) -> None:
        """Administrative override (maintenance, manual corrections)"""
        self.status = status


class Guest(BaseModel):
    """Guest Aggregate Root Entity, keyed naturally by id_number"""

    guest_id: UUID = Field(default_factory=uuid4)
    name: str
    email: str = ""
    phone: str = ""
    id_number: str = ""
    address: str = ""

    # Latest stay this guest was linked to
    reservation_id: Optional[UUID] = None

    is_active: bool = True

    # Statistics
    visits: int = Field(ge=0, default=0)
    total_spent: Decimal = Decimal("0")

    created_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    @staticmethod
    def create(details: GuestDetails) -> "Guest":
        """New guest with zeroed statistics"""
        return Guest(
            name=details.name,
            email=details.email,
            phone=details.phone,
            id_number=details.id_number,
            address=details.address,
            is_active=True,
            visits=0,
            total_spent=Decimal("0"),
        )

    def update_contact(self, details: GuestDetails) -> None:
        """Repeat bookings refresh contact fields only"""
        self.phone = details.phone
        self.email = details.email
        self.address = details.address

    def record_visit(self, reservation_id: UUID, spend: Decimal = Decimal("0")) -> None:
        """Link to a new stay and bump statistics"""
        self.reservation_id = reservation_id
        self.visits += 1
        self.total_spent += spend

    def activate(self) -> None:
        self.is_active = True


class ReservationGuest(BaseModel):
    """Link between a reservation and a guest; the role is per stay"""
    guest_id: UUID
    is_primary: bool = False

    class Config:
        frozen = True


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)

    # References
    guest_id: UUID
    room_id: UUID

    # Stay
    date_range: DateRange
    actual_check_out_date: Optional[datetime] = None
    number_of_guests: int = Field(ge=1)

    # Payment bookkeeping
    total_amount: Decimal = Field(ge=0)
    total_price: Decimal = Field(ge=0)
    paid_amount: Decimal = Field(ge=0, default=Decimal("0"))
    payment_date: Optional[datetime] = None
    payment_method: str = ""

    special_requests: str = ""
    status: ReservationStatus = ReservationStatus.PENDING

    guests: List[ReservationGuest] = []

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        reservation_id: UUID,
        guest_id: UUID,
        room_id: UUID,
        date_range: DateRange,
        number_of_guests: int,
        total_amount: Decimal,
        paid_amount: Decimal,
        payment_method: str,
        special_requests: str,
        now: datetime,
    ) -> "Reservation":
        """Create a pending reservation"""
        Reservation._validate_amounts(total_amount, paid_amount)

        return Reservation(
            reservation_id=reservation_id,
            guest_id=guest_id,
            room_id=room_id,
            date_range=date_range,
            number_of_guests=number_of_guests,
            total_amount=total_amount,
            total_price=total_amount,
            paid_amount=paid_amount,
            payment_method=payment_method,
            payment_date=now if paid_amount > 0 else None,
            special_requests=special_requests,
            status=ReservationStatus.PENDING,
            created_at=now,
        )

    # ==================== COMPUTED PROPERTIES ====================
    @property
    def is_paid(self) -> bool:
        return self.paid_amount >= self.total_amount

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.total_amount - self.paid_amount, Decimal("0"))

    @property
    def check_in_date(self) -> date:
        return self.date_range.check_in

    @property
    def check_out_date(self) -> date:
        return self.date_range.check_out

    @property
    def is_terminal(self) -> bool:
        return self.status in (ReservationStatus.CHECKED_OUT, ReservationStatus.CANCELLED)

    def blocks_room(self) -> bool:
        """Whether this stay still holds its room"""
        return self.status in BLOCKING_STATUSES

    def conflicts_with(self, room_id: UUID, check_in: date, check_out: date) -> bool:
        return (
            self.room_id == room_id
            and self.blocks_room()
            and self.date_range.overlaps(check_in, check_out)
        )

    def guest_ids(self) -> List[UUID]:
        return [link.guest_id for link in self.guests]

    # ==================== GUEST LINKS ====================
    def link_guest(self, guest_id: UUID, is_primary: bool = False) -> bool:
        """Attach a guest once; returns False if already linked"""
        if guest_id in self.guest_ids():
            return False
        self.guests.append(ReservationGuest(guest_id=guest_id, is_primary=is_primary))
        return True

    # ==================== STATE TRANSITION METHODS ====================
    def confirm(self, now: datetime) -> None:
        """Pending -> Confirmed (administrative)"""
        if self.status != ReservationStatus.PENDING:
            raise InvalidStateTransitionError("reservation", "confirm", self.status.value)

        self.status = ReservationStatus.CONFIRMED
        self.updated_at = now

    def check_in(self, today: date, now: datetime) -> None:
        """Pending/Confirmed -> CheckedIn, not before the booked date"""
        if self.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise InvalidStateTransitionError("reservation", "check in", self.status.value)

        if self.date_range.check_in > today:
            raise InvalidStateTransitionError(
                "reservation", "check in", self.status.value,
                detail=f"check-in date {self.date_range.check_in} is in the future",
            )

        self.status = ReservationStatus.CHECKED_IN
        self.updated_at = now

    def check_out(self, now: datetime) -> None:
        """CheckedIn -> CheckedOut; payment gating is the caller's concern"""
        if self.status != ReservationStatus.CHECKED_IN:
            raise InvalidStateTransitionError("reservation", "check out", self.status.value)

        self.actual_check_out_date = now
        self.status = ReservationStatus.CHECKED_OUT
        self.updated_at = now

    def cancel(self, now: datetime) -> None:
        """Pending/Confirmed -> Cancelled"""
        if self.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise InvalidStateTransitionError("reservation", "cancel", self.status.value)

        self.status = ReservationStatus.CANCELLED
        self.updated_at = now

    # ==================== MODIFICATION METHODS ====================
    def reschedule(self, date_range: DateRange, now: datetime) -> None:
        """Move the stay; availability is checked by the caller"""
        if self.is_terminal:
            raise InvalidStateTransitionError("reservation", "change dates of", self.status.value)

        self.date_range = date_range
        self.updated_at = now

    def update_amounts(self, total_amount: Decimal, paid_amount: Decimal, now: datetime) -> None:
        """Administrative correction of the amounts"""
        Reservation._validate_amounts(total_amount, paid_amount)

        self.total_amount = total_amount
        self.total_price = total_amount
        self.paid_amount = paid_amount
        self._stamp_payment(now)
        self.updated_at = now

    def record_payment(self, amount: Decimal, now: datetime, payment_method: Optional[str] = None) -> None:
        """Book a payment against the outstanding balance"""
        if self.status == ReservationStatus.CANCELLED:
            raise InvalidStateTransitionError("reservation", "record payment for", self.status.value)
        if amount <= 0:
            raise ValueError("Payment amount must be greater than 0")
        if self.paid_amount + amount > self.total_amount:
            raise ValueError(
                f"Payment exceeds remaining balance ({self.remaining_amount:.2f})"
            )

        self.paid_amount += amount
        if payment_method:
            self.payment_method = payment_method
        self._stamp_payment(now)
        self.updated_at = now

    # ==================== PRIVATE METHODS ====================
    def _stamp_payment(self, now: datetime) -> None:
        if self.paid_amount > 0 and self.payment_date is None:
            self.payment_date = now

    @staticmethod
    def _validate_amounts(total_amount: Decimal, paid_amount: Decimal) -> None:
        if total_amount < 0:
            raise ValueError("Total amount cannot be negative")
        if paid_amount < 0:
            raise ValueError("Paid amount cannot be negative")
        if paid_amount > total_amount:
            raise ValueError("Paid amount cannot exceed total amount")
