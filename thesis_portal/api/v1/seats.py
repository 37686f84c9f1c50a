"""Faculty seat endpoints."""

import uuid

from fastapi import APIRouter, status

from thesis_portal.api.deps import AdminUser, CurrentUser, DbSession
from thesis_portal.engines.seats import SeatAllocator
from thesis_portal.schemas.common import OwnerRefSchema
from thesis_portal.schemas.supervision import (
    SeatCapacityUpdate,
    SeatIncreaseCreate,
    SeatIncreaseResponse,
    SeatIncreaseReview,
    SeatInfoResponse,
    SuperviseeResponse,
)

router = APIRouter()


@router.post("/seat-requests", response_model=SeatIncreaseResponse, status_code=status.HTTP_201_CREATED)
async def request_seat_increase(data: SeatIncreaseCreate, user: CurrentUser, db: DbSession):
    return await SeatAllocator(db).request_seat_increase(user, data.requested_seats, data.reason)


@router.get("/seat-requests/pending", response_model=list[SeatIncreaseResponse])
async def pending_seat_requests(user: AdminUser, db: DbSession):
    return await SeatAllocator(db).pending_seat_requests()


@router.post("/seat-requests/review", response_model=SeatIncreaseResponse)
async def review_seat_request(data: SeatIncreaseReview, user: AdminUser, db: DbSession):
    return await SeatAllocator(db).review_seat_increase(
        user, data.request_id, data.approve, comments=data.comments
    )


@router.get("/{faculty_id}/seats", response_model=SeatInfoResponse)
async def seat_info(faculty_id: uuid.UUID, user: CurrentUser, db: DbSession):
    """Capacity and current usage of one faculty member."""
    info = await SeatAllocator(db).seat_info(faculty_id)
    return SeatInfoResponse(**vars(info))


@router.put("/{faculty_id}/seats/capacity", response_model=SeatInfoResponse)
async def set_capacity(
    faculty_id: uuid.UUID,
    data: SeatCapacityUpdate,
    user: CurrentUser,
    db: DbSession,
):
    info = await SeatAllocator(db).set_capacity(user, faculty_id, data.seat_capacity)
    return SeatInfoResponse(**vars(info))


@router.get("/{faculty_id}/supervisees", response_model=list[SuperviseeResponse])
async def supervisees(faculty_id: uuid.UUID, user: CurrentUser, db: DbSession):
    """Students and groups holding a seat with this faculty member."""
    allocator = SeatAllocator(db)
    seats = await allocator.supervisees(faculty_id, user)
    return [
        SuperviseeResponse(
            id=seat.id,
            owner=OwnerRefSchema.from_owner(seat.owner),
            label=await allocator.directory.owner_label(seat.owner),
            accepted_at=seat.accepted_at,
        )
        for seat in seats
    ]
