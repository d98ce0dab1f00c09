import re
from typing import Iterable, List, Optional, Tuple

from showsphere.core.exceptions import InvalidInputError
from showsphere.models.Show import SeatMap

# row letters followed by a column number, e.g. "A3" or "AA12"
SEAT_ID_PATTERN = re.compile(r"^[A-Z]{1,2}[1-9][0-9]{0,2}$")


def normalize_seats(seats, max_seats: int) -> List[str]:
    """Validate a requested seat list and drop duplicates, keeping request order."""
    if not isinstance(seats, list) or len(seats) == 0:
        raise InvalidInputError("At least one seat must be selected")
    if len(seats) > max_seats:
        raise InvalidInputError(f"Maximum {max_seats} seats can be booked at once")
    for seat in seats:
        if not isinstance(seat, str) or not SEAT_ID_PATTERN.match(seat):
            raise InvalidInputError(f"Invalid seat id: {seat!r}")
    return list(dict.fromkeys(seats))


def taken_seats(seat_map: Optional[SeatMap], seats: Iterable[str]) -> List[str]:
    occupied = seat_map or {}
    return [seat for seat in seats if seat in occupied]


def occupy(seat_map: Optional[SeatMap], seats: Iterable[str], user_id: str) -> SeatMap:
    updated = dict(seat_map or {})
    for seat in seats:
        updated[seat] = user_id
    return updated


def release(seat_map: Optional[SeatMap], seats: Iterable[str], holder_id: str) -> Tuple[SeatMap, List[str]]:
    """Free the seats still held by holder_id. Seats already free, or held by someone else, are left alone."""
    updated = dict(seat_map or {})
    released = []
    for seat in seats:
        if updated.get(seat) == holder_id:
            del updated[seat]
            released.append(seat)
    return updated, released
