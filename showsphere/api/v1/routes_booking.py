from urllib.parse import urlsplit
from fastapi import APIRouter, Depends, Request

from showsphere.core.auth import get_current_user_id
from showsphere.core.container import Services, get_services
from showsphere.crud.booking import crud_booking
from showsphere.crud.show import crud_show
from showsphere.schemas.booking import (
    CreateBookingRequest,
    CreateBookingResponse,
    OccupiedSeatsResponse,
    UserBookingsResponse,
)

router = APIRouter(
    prefix="/booking"
)


def request_origin(request: Request, fallback: str) -> str:
    """scheme://host of the calling frontend, used to build payment redirect urls."""
    origin = request.headers.get("origin")
    if origin and origin != "null":
        return origin.rstrip("/")
    referer = request.headers.get("referer")
    if referer:
        parts = urlsplit(referer)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
    return fallback.rstrip("/")


@router.post("/create", status_code=201, response_model=CreateBookingResponse)
async def create_booking(
        data: CreateBookingRequest,
        request: Request,
        user_id: str = Depends(get_current_user_id),
        services: Services = Depends(get_services)):
    origin = request_origin(request, services.settings.FRONTEND_URL)
    result = await services.booking.create_booking(user_id, data.show_id, data.selected_seats, origin)
    return CreateBookingResponse(url=result.url)


@router.get("/seats/{show_id}", response_model=OccupiedSeatsResponse)
async def get_occupied_seats(show_id: str, services: Services = Depends(get_services)):
    async with services.session_factory() as db:
        occupied = await crud_show.get_occupied_seats(db, show_id)
    return OccupiedSeatsResponse(occupiedSeats=occupied)


@router.get("/my-bookings", response_model=UserBookingsResponse)
async def get_my_bookings(
        user_id: str = Depends(get_current_user_id),
        services: Services = Depends(get_services)):
    async with services.session_factory() as db:
        bookings = await crud_booking.get_user_bookings(db, user_id)
    return {"success": True, "bookings": bookings}
