"""In-Memory Repository Implementations"""
from typing import Optional, List, Dict, Any
from uuid import UUID

from domain.repositories import RoomRepository, GuestRepository, ReservationRepository, UnitOfWork
from domain.entities import Reservation, Room, Guest
from domain.exceptions import DuplicateGuestError, DuplicateRoomNumberError, RoomUnavailableError

_DELETED = object()


def _merge(rows: Dict[UUID, Any], staged: Optional[Dict[UUID, Any]]) -> Dict[UUID, Any]:
    if not staged:
        return rows
    merged = dict(rows)
    for key, value in staged.items():
        if value is _DELETED:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


class _InMemoryTable:
    """Row access shared by the repositories.

    With ``staged`` set, writes are buffered there and reads see the
    buffered rows layered over the committed ones. Entities are copied on
    the way in and out so callers never hold a reference to stored state.
    """

    def __init__(self, rows: Optional[Dict[UUID, Any]] = None, staged: Optional[Dict[UUID, Any]] = None):
        self._rows = rows if rows is not None else {}
        self._staged = staged

    def _visible(self) -> Dict[UUID, Any]:
        return _merge(self._rows, self._staged)

    def _get(self, key: UUID):
        row = self._visible().get(key)
        return row.model_copy(deep=True) if row is not None else None

    def _values(self) -> List[Any]:
        return [row.model_copy(deep=True) for row in self._visible().values()]

    def _write(self, key: UUID, entity):
        target = self._rows if self._staged is None else self._staged
        target[key] = entity.model_copy(deep=True)
        return entity

    def _exists(self, key: UUID) -> bool:
        return key in self._visible()

    def _remove(self, key: UUID) -> bool:
        if not self._exists(key):
            return False
        if self._staged is None:
            del self._rows[key]
        else:
            self._staged[key] = _DELETED
        return True


class InMemoryRoomRepository(_InMemoryTable, RoomRepository):
    """In-memory implementation of RoomRepository"""

    async def save(self, room: Room) -> Room:
        """Save room to memory"""
        return self._write(room.room_id, room)

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        return self._get(room_id)

    async def find_by_number(self, number: str) -> Optional[Room]:
        """Find room by number"""
        for room in self._visible().values():
            if room.number == number:
                return room.model_copy(deep=True)
        return None

    async def find_all(self) -> List[Room]:
        """Find all rooms"""
        return self._values()

    async def update(self, room: Room) -> Room:
        """Update room"""
        if self._exists(room.room_id):
            return self._write(room.room_id, room)
        raise ValueError("Room not found")

    async def delete(self, room_id: UUID) -> bool:
        """Delete room"""
        return self._remove(room_id)


class InMemoryGuestRepository(_InMemoryTable, GuestRepository):
    """In-memory implementation of GuestRepository"""

    async def save(self, guest: Guest) -> Guest:
        """Save guest to memory"""
        return self._write(guest.guest_id, guest)

    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        """Find guest by ID"""
        return self._get(guest_id)

    async def find_by_id_number(self, id_number: str) -> Optional[Guest]:
        """Find guest by identity number"""
        if not id_number:
            return None
        for guest in self._visible().values():
            if guest.id_number == id_number:
                return guest.model_copy(deep=True)
        return None

    async def find_by_ids(self, guest_ids: List[UUID]) -> List[Guest]:
        """Find guests by IDs"""
        found = [self._get(guest_id) for guest_id in guest_ids]
        return [guest for guest in found if guest is not None]

    async def find_all(self) -> List[Guest]:
        """Find all guests"""
        return self._values()

    async def update(self, guest: Guest) -> Guest:
        """Update guest"""
        if self._exists(guest.guest_id):
            return self._write(guest.guest_id, guest)
        raise ValueError("Guest not found")

    async def delete(self, guest_id: UUID) -> bool:
        """Delete guest"""
        return self._remove(guest_id)


class InMemoryReservationRepository(_InMemoryTable, ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation to memory"""
        return self._write(reservation.reservation_id, reservation)

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        return self._get(reservation_id)

    async def find_by_room_id(self, room_id: UUID) -> List[Reservation]:
        """Find reservations for a room"""
        return [r.model_copy(deep=True) for r in self._visible().values() if r.room_id == room_id]

    async def find_by_guest_id(self, guest_id: UUID) -> List[Reservation]:
        """Find reservations by linked guest ID"""
        return [
            r.model_copy(deep=True) for r in self._visible().values()
            if r.guest_id == guest_id or guest_id in r.guest_ids()
        ]

    async def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        return self._values()

    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation"""
        if self._exists(reservation.reservation_id):
            return self._write(reservation.reservation_id, reservation)
        raise ValueError("Reservation not found")

    async def delete(self, reservation_id: UUID) -> bool:
        """Delete reservation"""
        return self._remove(reservation_id)


class InMemoryStore:
    """Committed state plus the constraints a database would enforce"""

    def __init__(self):
        self.rooms: Dict[UUID, Room] = {}
        self.guests: Dict[UUID, Guest] = {}
        self.reservations: Dict[UUID, Reservation] = {}

    def apply(
        self,
        rooms: Dict[UUID, Any],
        guests: Dict[UUID, Any],
        reservations: Dict[UUID, Any],
    ) -> None:
        """Check constraints against the would-be state, then write it.

        No awaits happen in here, so a commit is atomic with respect to
        every other coroutine on the loop.
        """
        self._check_room_numbers(_merge(self.rooms, rooms), rooms)
        self._check_guest_id_numbers(_merge(self.guests, guests), guests)
        self._check_room_overlaps(_merge(self.reservations, reservations), reservations)

        for table, staged in (
            (self.rooms, rooms),
            (self.guests, guests),
            (self.reservations, reservations),
        ):
            for key, value in staged.items():
                if value is _DELETED:
                    table.pop(key, None)
                else:
                    table[key] = value

    @staticmethod
    def _check_room_numbers(final: Dict[UUID, Room], staged: Dict[UUID, Any]) -> None:
        for key, room in staged.items():
            if room is _DELETED:
                continue
            for other_key, other in final.items():
                if other_key != key and other.number == room.number:
                    raise DuplicateRoomNumberError(room.number)

    @staticmethod
    def _check_guest_id_numbers(final: Dict[UUID, Guest], staged: Dict[UUID, Any]) -> None:
        for key, guest in staged.items():
            # Blank identity numbers are never deduplicated
            if guest is _DELETED or not guest.id_number:
                continue
            for other_key, other in final.items():
                if other_key != key and other.id_number == guest.id_number:
                    raise DuplicateGuestError(guest.id_number)

    @staticmethod
    def _check_room_overlaps(final: Dict[UUID, Reservation], staged: Dict[UUID, Any]) -> None:
        for key, reservation in staged.items():
            if reservation is _DELETED or not reservation.blocks_room():
                continue
            for other_key, other in final.items():
                if other_key != key and other.conflicts_with(
                    reservation.room_id, reservation.check_in_date, reservation.check_out_date
                ):
                    raise RoomUnavailableError(
                        reservation.room_id,
                        reservation.check_in_date,
                        reservation.check_out_date,
                        conflicting_reservation_id=other_key,
                    )


class InMemoryUnitOfWork(UnitOfWork):
    """Unit of work over an InMemoryStore"""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._staged_rooms: Dict[UUID, Any] = {}
        self._staged_guests: Dict[UUID, Any] = {}
        self._staged_reservations: Dict[UUID, Any] = {}
        self.rooms = InMemoryRoomRepository(store.rooms, self._staged_rooms)
        self.guests = InMemoryGuestRepository(store.guests, self._staged_guests)
        self.reservations = InMemoryReservationRepository(store.reservations, self._staged_reservations)

    async def commit(self) -> None:
        self._store.apply(self._staged_rooms, self._staged_guests, self._staged_reservations)
        await self.rollback()

    async def rollback(self) -> None:
        self._staged_rooms.clear()
        self._staged_guests.clear()
        self._staged_reservations.clear()
