"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date
from decimal import Decimal
from uuid import UUID
from typing import List


class DateRange(BaseModel):
    """Value Object for a stay, half-open: [check_in, check_out)"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, check_in: date, check_out: date) -> bool:
        """Adjacent stays (one ends the day the other starts) do not overlap"""
        return self.check_in < check_out and check_in < self.check_out

    class Config:
        frozen = True


class GuestDetails(BaseModel):
    """Identity and contact details supplied with a booking"""
    name: str = ""
    id_number: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""

    class Config:
        frozen = True


class BookingRequest(BaseModel):
    """Everything a create-reservation call carries.

    Dates are not cross-checked here: the validator reports a bad range
    together with every other problem instead of failing on the first one.
    """
    room_id: UUID
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    total_amount: Decimal
    paid_amount: Decimal = Decimal("0")
    payment_method: str = ""
    special_requests: str = ""
    primary_guest: GuestDetails
    additional_guests: List[GuestDetails] = []

    class Config:
        frozen = True


class ValidationResult(BaseModel):
    """Outcome of the pre-flight check"""
    is_valid: bool
    errors: List[str] = []


class CheckOutResult(BaseModel):
    """Outcome of a check-out attempt; payment-required is not an error"""
    success: bool
    message: str
    requires_payment: bool = False
    remaining_amount: Decimal = Decimal("0")
