from fastapi import APIRouter, Depends

from showsphere.core.auth import require_admin
from showsphere.core.container import Services, get_services
from showsphere.schemas.show import AddShowRequest, ShowListResponse, ShowResponse


router = APIRouter(
    prefix="/show"
)


@router.post("/add", status_code=201)
async def add_show(
        data: AddShowRequest,
        _admin_id: str = Depends(require_admin),
        services: Services = Depends(get_services)):
    shows = await services.catalog.add_shows(data.movie_id, data.movie_title, data.shows_input, data.show_price)
    return {"success": True, "message": "Show Added successfully.", "count": len(shows)}


@router.get("/all", response_model=ShowListResponse)
async def get_upcoming_shows(services: Services = Depends(get_services)):
    return {"success": True, "shows": await services.catalog.get_upcoming_shows()}


@router.get("/{show_id}", response_model=ShowResponse)
async def get_show(show_id: str, services: Services = Depends(get_services)):
    return await services.catalog.get_show(show_id)
