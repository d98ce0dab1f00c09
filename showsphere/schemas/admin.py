from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from showsphere.schemas.booking import BookingResponse
from showsphere.schemas.show import ShowResponse


class DashboardData(BaseModel):
    totalBookings: int
    totalRevenue: float
    activeShows: List[ShowResponse]
    totalUser: int


class DashboardResponse(BaseModel):
    success: bool = True
    dashboardData: DashboardData


class AdminBookingResponse(BookingResponse):
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    movie_title: Optional[str] = None
    show_date_time: Optional[datetime] = None


class AdminBookingListResponse(BaseModel):
    success: bool = True
    bookings: List[AdminBookingResponse]
