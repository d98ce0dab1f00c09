from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class CreateBookingRequest(BaseModel):
    show_id: Optional[str] = Field(default=None, alias="showId")
    selected_seats: Optional[List[str]] = Field(default=None, alias="selectedSeats")

    class Config:
        populate_by_name = True


class CreateBookingResponse(BaseModel):
    success: bool = True
    url: str


class OccupiedSeatsResponse(BaseModel):
    success: bool = True
    occupiedSeats: List[str]


class BookingResponse(BaseModel):
    id: str
    user_id: str
    show_id: str
    amount: float
    booked_seats: List[str]
    is_paid: bool
    payment_link: str
    booking_token: str
    created_at: datetime

    class Config:
        from_attributes = True


class UserBookingsResponse(BaseModel):
    success: bool = True
    bookings: List[BookingResponse]
