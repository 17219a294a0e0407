"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import ReservationStatus, RoomStatus, RoomType


# ============================================================================
# ROOM SCHEMAS
# ============================================================================

class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    number: str = Field(min_length=1)
    room_type: RoomType = RoomType.SINGLE
    price: Decimal = Field(ge=0)
    floor: int = 0
    capacity: int = Field(ge=1)
    features: List[str] = []


class UpdateRoomRequest(BaseModel):
    """Update room request DTO; status is an administrative override"""
    number: Optional[str] = Field(None, min_length=1)
    room_type: Optional[RoomType] = None
    price: Optional[Decimal] = Field(None, ge=0)
    floor: Optional[int] = None
    capacity: Optional[int] = Field(None, ge=1)
    features: Optional[List[str]] = None
    status: Optional[RoomStatus] = None


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    number: str
    room_type: str
    price: Decimal
    floor: int
    capacity: int
    features: List[str]
    status: str


class AvailabilityResponse(BaseModel):
    """Availability check response DTO"""
    room_id: UUID
    check_in: date
    check_out: date
    available: bool


# ============================================================================
# GUEST SCHEMAS
# ============================================================================

class GuestDetailsRequest(BaseModel):
    """Guest identity and contact DTO"""
    name: str = ""
    id_number: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""


class UpdateGuestRequest(BaseModel):
    """Update guest request DTO"""
    name: Optional[str] = None
    id_number: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None


class GuestResponse(BaseModel):
    """Guest response DTO"""
    guest_id: UUID
    name: str
    email: str
    phone: str
    id_number: str
    address: str
    reservation_id: Optional[UUID] = None
    is_active: bool
    visits: int
    total_spent: Decimal


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    room_id: UUID
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    total_amount: Decimal
    paid_amount: Decimal = Decimal("0")
    payment_method: str = ""
    special_requests: str = ""
    primary_guest: GuestDetailsRequest
    additional_guests: List[GuestDetailsRequest] = []


class UpdateReservationRequest(BaseModel):
    """Update reservation request DTO"""
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    paid_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    special_requests: Optional[str] = None
    status: Optional[ReservationStatus] = None


class RecordPaymentRequest(BaseModel):
    """Record payment request DTO"""
    amount: Decimal = Field(gt=0)
    payment_method: Optional[str] = None


class StayGuestResponse(BaseModel):
    """Guest on a reservation, with their role on that stay"""
    guest_id: UUID
    name: str
    email: str
    phone: str
    id_number: str
    address: str
    is_primary_guest: bool


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    guest_id: UUID
    room_id: UUID
    check_in_date: date
    check_out_date: date
    actual_check_out_date: Optional[datetime] = None
    number_of_guests: int
    total_price: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    is_paid: bool
    payment_date: Optional[datetime] = None
    payment_method: str
    status: str
    special_requests: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    guests: List[StayGuestResponse]


class ValidationResponse(BaseModel):
    """Validation result DTO"""
    is_valid: bool
    errors: List[str]


class CheckOutResponse(BaseModel):
    """Check-out result DTO"""
    success: bool
    message: str
    requires_payment: bool
    remaining_amount: Decimal


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str
    disabled: bool
