import logging

from fastapi import FastAPI, HTTPException, Depends
from uuid import UUID
from datetime import date, timedelta
from typing import List
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Rooms
    CreateRoomRequest, UpdateRoomRequest, RoomResponse, AvailabilityResponse,
    # Guests
    GuestDetailsRequest, UpdateGuestRequest, GuestResponse,
    # Reservations
    CreateReservationRequest, UpdateReservationRequest, RecordPaymentRequest,
    ReservationResponse, StayGuestResponse, ValidationResponse, CheckOutResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import get_current_active_user, staff_db, get_user
from infrastructure.config import settings
from infrastructure.clock import SystemClock
from infrastructure.locks import KeyedLock
from infrastructure.log_config import configure_logging
from infrastructure.security import verify_password, create_access_token
from domain.auth import User

from application.services import (
    RoomService, GuestService, AvailabilityService, ReservationService, ReservationDetails
)
from application.validation import ReservationValidator
from infrastructure.repositories.in_memory_repositories import InMemoryStore, InMemoryUnitOfWork
from domain.entities import Room, Guest
from domain.enums import ReservationStatus, RoomStatus, RoomType
from domain.exceptions import RoomUnavailableError
from domain.value_objects import BookingRequest, GuestDetails

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Reservation lifecycle and room availability for a single hotel",
    version="1.0.0",
    debug=settings.DEBUG
)

# Shared state
store = InMemoryStore()
locks = KeyedLock()
clock = SystemClock()


def uow_factory() -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(store)


# Dependency injection
def get_room_service() -> RoomService:
    return RoomService(uow_factory)

def get_guest_service() -> GuestService:
    return GuestService(uow_factory, locks)

def get_availability_service() -> AvailabilityService:
    return AvailabilityService(uow_factory)

def get_reservation_service() -> ReservationService:
    return ReservationService(
        uow_factory,
        availability=get_availability_service(),
        guests=get_guest_service(),
        clock=clock,
        locks=locks,
        currency=settings.CURRENCY
    )

def get_reservation_validator() -> ReservationValidator:
    return ReservationValidator(uow_factory, get_availability_service(), clock)


def _to_http_error(error: ValueError) -> HTTPException:
    """Commit-time conflicts are 409; every other rule violation is 400"""
    if isinstance(error, RoomUnavailableError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {
        "values": [item.name for item in ReservationStatus],
        "description": "Reservation status values: PENDING, CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED"
    }

@app.get("/api/enums/room-status", tags=["Enum Reference"])
async def get_room_statuses():
    """Get all RoomStatus enum values"""
    return {
        "values": [item.name for item in RoomStatus],
        "description": "Room status values: AVAILABLE, OCCUPIED, CLEANING, MAINTENANCE, RESERVED"
    }

@app.get("/api/enums/room-type", tags=["Enum Reference"])
async def get_room_types():
    """Get all RoomType enum values"""
    return {
        "values": [item.name for item in RoomType],
        "description": "Room type values: SINGLE, DOUBLE, SUITE, DELUXE"
    }

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(staff_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning("Failed login attempt")
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(
        data={"sub": user.username},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.post("/api/rooms", response_model=RoomResponse, status_code=201, tags=["Rooms"])
async def create_room(
    request: CreateRoomRequest,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create room"""
    try:
        room = await service.create_room(
            number=request.number,
            capacity=request.capacity,
            price=request.price,
            room_type=request.room_type,
            floor=request.floor,
            features=request.features
        )
        return _room_to_response(room)
    except ValueError as e:
        raise _to_http_error(e)

@app.get("/api/rooms", response_model=List[RoomResponse], tags=["Rooms"])
async def get_all_rooms(
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get all rooms"""
    return [_room_to_response(r) for r in await service.get_all_rooms()]

@app.get("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def get_room(
    room_id: UUID,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get room by ID"""
    room = await service.get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return _room_to_response(room)

@app.put("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def update_room(
    room_id: UUID,
    request: UpdateRoomRequest,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Update room details or override its status"""
    try:
        room = await service.update_room(room_id, **request.model_dump(exclude_unset=True))
        if not room:
            raise HTTPException(status_code=404, detail="Room not found")
        return _room_to_response(room)
    except ValueError as e:
        raise _to_http_error(e)

@app.delete("/api/rooms/{room_id}", status_code=204, tags=["Rooms"])
async def delete_room(
    room_id: UUID,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Delete room"""
    try:
        deleted = await service.delete_room(room_id)
    except ValueError as e:
        raise _to_http_error(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Room not found")

@app.post("/api/rooms/{room_id}/complete-cleaning", response_model=RoomResponse, tags=["Rooms"])
async def complete_cleaning(
    room_id: UUID,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Mark a room in CLEANING as AVAILABLE"""
    try:
        room = await service.complete_cleaning(room_id)
        if not room:
            raise HTTPException(status_code=404, detail="Room not found")
        return _room_to_response(room)
    except ValueError as e:
        raise _to_http_error(e)

@app.get("/api/rooms/{room_id}/availability", response_model=AvailabilityResponse, tags=["Rooms"])
async def check_room_availability(
    room_id: UUID,
    check_in: date,
    check_out: date,
    rooms: RoomService = Depends(get_room_service),
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(get_current_active_user)
):
    """Check whether a room is free for [check_in, check_out)"""
    if check_out <= check_in:
        raise HTTPException(status_code=400, detail="Check-out must be after check-in")
    if not await rooms.get_room(room_id):
        raise HTTPException(status_code=404, detail="Room not found")
    available = await service.is_available(room_id, check_in, check_out)
    return AvailabilityResponse(room_id=room_id, check_in=check_in, check_out=check_out, available=available)

# ============================================================================
# GUEST ENDPOINTS
# ============================================================================

@app.post("/api/guests", response_model=GuestResponse, status_code=201, tags=["Guests"])
async def create_guest(
    request: GuestDetailsRequest,
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    """Register a guest"""
    try:
        guest = await service.create_guest(GuestDetails(**request.model_dump()))
        return _guest_to_response(guest)
    except ValueError as e:
        raise _to_http_error(e)

@app.get("/api/guests", response_model=List[GuestResponse], tags=["Guests"])
async def get_all_guests(
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get all guests"""
    return [_guest_to_response(g) for g in await service.get_all_guests()]

@app.get("/api/guests/id-number/{id_number}", response_model=GuestResponse, tags=["Guests"])
async def get_guest_by_id_number(
    id_number: str,
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get guest by identity number"""
    guest = await service.get_guest_by_id_number(id_number)
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found")
    return _guest_to_response(guest)

@app.get("/api/guests/{guest_id}", response_model=GuestResponse, tags=["Guests"])
async def get_guest(
    guest_id: UUID,
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get guest by ID"""
    guest = await service.get_guest(guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found")
    return _guest_to_response(guest)

@app.put("/api/guests/{guest_id}", response_model=GuestResponse, tags=["Guests"])
async def update_guest(
    guest_id: UUID,
    request: UpdateGuestRequest,
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    """Update guest profile"""
    try:
        guest = await service.update_guest(guest_id, **request.model_dump(exclude_unset=True))
        if not guest:
            raise HTTPException(status_code=404, detail="Guest not found")
        return _guest_to_response(guest)
    except ValueError as e:
        raise _to_http_error(e)

@app.delete("/api/guests/{guest_id}", status_code=204, tags=["Guests"])
async def delete_guest(
    guest_id: UUID,
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    """Delete guest"""
    if not await service.delete_guest(guest_id):
        raise HTTPException(status_code=404, detail="Guest not found")

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations/validate", response_model=ValidationResponse, tags=["Reservations"])
async def validate_reservation(
    request: CreateReservationRequest,
    validator: ReservationValidator = Depends(get_reservation_validator),
    current_user: User = Depends(get_current_active_user)
):
    """Run the pre-flight checks without booking"""
    result = await validator.validate_create(_to_booking_request(request))
    return ValidationResponse(is_valid=result.is_valid, errors=result.errors)

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    validator: ReservationValidator = Depends(get_reservation_validator),
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Validate, then create a reservation"""
    booking = _to_booking_request(request)
    result = await validator.validate_create(booking)
    if not result.is_valid:
        return JSONResponse(status_code=400, content={"errors": result.errors})

    try:
        details = await service.create_reservation(booking)
        return _reservation_to_response(details)
    except ValueError as e:
        raise _to_http_error(e)

@app.get("/api/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_all_reservations(
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get all reservations"""
    return [_reservation_to_response(d) for d in await service.get_all_reservations()]

@app.get("/api/reservations/guest/{guest_id}", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_guest_reservations(
    guest_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get all reservations for a guest"""
    return [_reservation_to_response(d) for d in await service.get_reservations_by_guest(guest_id)]

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get reservation by ID"""
    details = await service.get_reservation(reservation_id)
    if not details:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(details)

@app.put("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def update_reservation(
    reservation_id: UUID,
    request: UpdateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Administrative edit of a reservation"""
    try:
        details = await service.update_reservation(reservation_id, **request.model_dump(exclude_unset=True))
        if not details:
            raise HTTPException(status_code=404, detail="Reservation not found")
        return _reservation_to_response(details)
    except ValueError as e:
        raise _to_http_error(e)

@app.delete("/api/reservations/{reservation_id}", status_code=204, tags=["Reservations"])
async def delete_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Delete reservation"""
    if not await service.delete_reservation(reservation_id):
        raise HTTPException(status_code=404, detail="Reservation not found")

@app.post("/api/reservations/{reservation_id}/confirm", response_model=ReservationResponse, tags=["Reservations"])
async def confirm_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Confirm a pending reservation"""
    try:
        details = await service.confirm_reservation(reservation_id)
        if not details:
            raise HTTPException(status_code=404, detail="Reservation not found")
        return _reservation_to_response(details)
    except ValueError as e:
        raise _to_http_error(e)

@app.post("/api/reservations/{reservation_id}/check-in", response_model=ReservationResponse, tags=["Reservations"])
async def check_in_guest(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Check in guest"""
    try:
        details = await service.check_in_guest(reservation_id)
        if not details:
            raise HTTPException(status_code=404, detail="Reservation not found")
        return _reservation_to_response(details)
    except ValueError as e:
        raise _to_http_error(e)

@app.post("/api/reservations/{reservation_id}/check-out", response_model=CheckOutResponse, tags=["Reservations"])
async def check_out_guest(
    reservation_id: UUID,
    force: bool = False,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Check out guest; an open balance returns requires_payment unless forced"""
    try:
        result = await service.check_out_guest(reservation_id, force=force)
    except ValueError as e:
        raise _to_http_error(e)
    if result is None:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return CheckOutResponse(**result.model_dump())

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel reservation"""
    try:
        details = await service.cancel_reservation(reservation_id)
        if not details:
            raise HTTPException(status_code=404, detail="Reservation not found")
        return _reservation_to_response(details)
    except ValueError as e:
        raise _to_http_error(e)

@app.post("/api/reservations/{reservation_id}/payments", response_model=ReservationResponse, tags=["Reservations"])
async def record_payment(
    reservation_id: UUID,
    request: RecordPaymentRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Record a payment against the reservation"""
    try:
        details = await service.record_payment(reservation_id, request.amount, request.payment_method)
        if not details:
            raise HTTPException(status_code=404, detail="Reservation not found")
        return _reservation_to_response(details)
    except ValueError as e:
        raise _to_http_error(e)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _to_booking_request(request: CreateReservationRequest) -> BookingRequest:
    """Convert API request to the domain booking request"""
    return BookingRequest(
        room_id=request.room_id,
        check_in_date=request.check_in_date,
        check_out_date=request.check_out_date,
        number_of_guests=request.number_of_guests,
        total_amount=request.total_amount,
        paid_amount=request.paid_amount,
        payment_method=request.payment_method,
        special_requests=request.special_requests,
        primary_guest=GuestDetails(**request.primary_guest.model_dump()),
        additional_guests=[GuestDetails(**g.model_dump()) for g in request.additional_guests]
    )

def _room_to_response(room: Room) -> RoomResponse:
    """Convert Room entity to RoomResponse"""
    return RoomResponse(
        room_id=room.room_id,
        number=room.number,
        room_type=room.room_type.value,
        price=room.price,
        floor=room.floor,
        capacity=room.capacity,
        features=room.features,
        status=room.status.value
    )

def _guest_to_response(guest: Guest) -> GuestResponse:
    """Convert Guest entity to GuestResponse"""
    return GuestResponse(
        guest_id=guest.guest_id,
        name=guest.name,
        email=guest.email,
        phone=guest.phone,
        id_number=guest.id_number,
        address=guest.address,
        reservation_id=guest.reservation_id,
        is_active=guest.is_active,
        visits=guest.visits,
        total_spent=guest.total_spent
    )

def _reservation_to_response(details: ReservationDetails) -> ReservationResponse:
    """Convert ReservationDetails to ReservationResponse"""
    reservation = details.reservation
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        guest_id=reservation.guest_id,
        room_id=reservation.room_id,
        check_in_date=reservation.check_in_date,
        check_out_date=reservation.check_out_date,
        actual_check_out_date=reservation.actual_check_out_date,
        number_of_guests=reservation.number_of_guests,
        total_price=reservation.total_price,
        total_amount=reservation.total_amount,
        paid_amount=reservation.paid_amount,
        remaining_amount=reservation.remaining_amount,
        is_paid=reservation.is_paid,
        payment_date=reservation.payment_date,
        payment_method=reservation.payment_method,
        status=reservation.status.value,
        special_requests=reservation.special_requests,
        created_at=reservation.created_at,
        updated_at=reservation.updated_at,
        guests=[
            StayGuestResponse(
                guest_id=sg.guest.guest_id,
                name=sg.guest.name,
                email=sg.guest.email,
                phone=sg.guest.phone,
                id_number=sg.guest.id_number,
                address=sg.guest.address,
                is_primary_guest=sg.is_primary
            )
            for sg in details.guests
        ]
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
