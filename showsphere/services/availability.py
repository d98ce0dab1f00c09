from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from showsphere.core.exceptions import ShowNotFoundError
from showsphere.crud.show import crud_show
from showsphere.services.seat_map import taken_seats


class AvailabilityChecker:
    """Read-only check of requested seats against a show's current seat map."""

    async def unavailable_seats(self, db: AsyncSession, show_id: str, seats: List[str]) -> List[str]:
        show = await crud_show.get_show(db, show_id)
        if show is None:
            raise ShowNotFoundError()
        return taken_seats(show.occupied_seats, seats)

    async def is_available(self, db: AsyncSession, show_id: str, seats: List[str]) -> bool:
        return not await self.unavailable_seats(db, show_id, seats)


availability_checker = AvailabilityChecker()
