"""Supervision seat accounting."""

from thesis_portal.engines.seats.seat_allocator import SeatAllocator, SeatInfo

__all__ = ["SeatAllocator", "SeatInfo"]
