"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from domain.entities import Reservation, Room, Guest


class RoomRepository(ABC):
    """Repository interface for Room Aggregate"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        """Save room"""
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        pass

    @abstractmethod
    async def find_by_number(self, number: str) -> Optional[Room]:
        """Find room by its human-facing number"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Room]:
        """Find all rooms"""
        pass

    @abstractmethod
    async def update(self, room: Room) -> Room:
        """Update room"""
        pass

    @abstractmethod
    async def delete(self, room_id: UUID) -> bool:
        """Delete room"""
        pass


class GuestRepository(ABC):
    """Repository interface for Guest Aggregate"""

    @abstractmethod
    async def save(self, guest: Guest) -> Guest:
        """Save guest"""
        pass

    @abstractmethod
    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        """Find guest by ID"""
        pass

    @abstractmethod
    async def find_by_id_number(self, id_number: str) -> Optional[Guest]:
        """Find guest by national identity number (literal match)"""
        pass

    @abstractmethod
    async def find_by_ids(self, guest_ids: List[UUID]) -> List[Guest]:
        """Find guests by IDs, preserving the given order"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Guest]:
        """Find all guests"""
        pass

    @abstractmethod
    async def update(self, guest: Guest) -> Guest:
        """Update guest"""
        pass

    @abstractmethod
    async def delete(self, guest_id: UUID) -> bool:
        """Delete guest"""
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_by_room_id(self, room_id: UUID) -> List[Reservation]:
        """Find reservations for a room"""
        pass

    @abstractmethod
    async def find_by_guest_id(self, guest_id: UUID) -> List[Reservation]:
        """Find reservations a guest is linked to, in any role"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        pass

    @abstractmethod
    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation"""
        pass

    @abstractmethod
    async def delete(self, reservation_id: UUID) -> bool:
        """Delete reservation"""
        pass


class UnitOfWork(ABC):
    """Transaction spanning the three repositories.

    Writes made through the repositories become visible to others only on
    commit(); leaving the block without committing discards them.
    """

    rooms: RoomRepository
    guests: GuestRepository
    reservations: ReservationRepository

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        """Apply all staged writes at once"""
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard staged writes"""
        pass


class Clock(ABC):
    """Source of the current UTC time"""

    @abstractmethod
    def now(self) -> datetime:
        pass

    def today(self) -> date:
        return self.now().date()
