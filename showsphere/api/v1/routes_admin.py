from fastapi import APIRouter, Depends

from showsphere.core.auth import require_admin
from showsphere.core.container import Services, get_services
from showsphere.core.timeutils import utc_now
from showsphere.crud.booking import crud_booking
from showsphere.crud.show import crud_show
from showsphere.crud.user import crud_user
from showsphere.schemas.admin import AdminBookingListResponse, AdminBookingResponse, DashboardResponse
from showsphere.schemas.booking import BookingResponse


router = APIRouter(
    prefix="/admin",
    dependencies=[Depends(require_admin)]
)


@router.get("/is-admin")
async def is_admin():
    return {"success": True, "isAdmin": True}


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(services: Services = Depends(get_services)):
    async with services.session_factory() as db:
        total_bookings, total_revenue = await crud_booking.get_paid_totals(db)
        active_shows = await crud_show.get_upcoming_shows(db, utc_now())
        total_users = await crud_user.count_users(db)
    return {
        "success": True,
        "dashboardData": {
            "totalBookings": total_bookings,
            "totalRevenue": float(total_revenue),
            "activeShows": active_shows,
            "totalUser": total_users,
        },
    }


@router.get("/all-bookings", response_model=AdminBookingListResponse)
async def get_all_bookings(services: Services = Depends(get_services)):
    """Every booking, newest first, with the booker and the show it is for."""
    async with services.session_factory() as db:
        bookings = await crud_booking.get_all_bookings(db)
        users = {user.id: user for user in await crud_user.get_users_by_ids(db, {b.user_id for b in bookings})}
        shows = {show.id: show for show in await crud_show.get_shows_by_ids(db, {b.show_id for b in bookings})}

    rows = []
    for booking in bookings:
        user = users.get(booking.user_id)
        show = shows.get(booking.show_id)
        rows.append(AdminBookingResponse(
            **BookingResponse.model_validate(booking).model_dump(),
            user_name=user.name if user else None,
            user_email=user.email if user else None,
            movie_title=show.movie.title if show and show.movie else None,
            show_date_time=show.show_date_time if show else None,
        ))
    return {"success": True, "bookings": rows}
