from datetime import timedelta

import pytest

from showsphere.core.timeutils import utc_now
from showsphere.crud.booking import crud_booking
from showsphere.crud.show import crud_show
from showsphere.services.scheduler import DelayedTaskWorker

ORIGIN = "http://localhost:5173"


async def book(services, show_id, user_id, seats):
    result = await services.booking.create_booking(user_id, show_id, seats, ORIGIN)
    return result.booking_id


@pytest.mark.asyncio
async def test_unpaid_booking_is_released_after_the_hold(paid_services, db_session_factory, seeded_test_data):
    show_id = seeded_test_data["show_id"]
    booking_id = await book(paid_services, show_id, "user_1", ["A1", "A2"])

    assert await paid_services.reaper.expire_if_unpaid(booking_id, utc_now() + timedelta(minutes=5)) is False
    assert await paid_services.reaper.expire_if_unpaid(booking_id, utc_now() + timedelta(minutes=11)) is True

    async with db_session_factory() as db:
        assert await crud_booking.get_booking(db, booking_id) is None
        assert await crud_show.get_occupied_seats(db, show_id) == []

    # already gone, nothing left to do
    assert await paid_services.reaper.expire_if_unpaid(booking_id, utc_now() + timedelta(minutes=11)) is False


@pytest.mark.asyncio
async def test_paid_booking_is_never_reaped(paid_services, db_session_factory, seeded_test_data):
    show_id = seeded_test_data["show_id"]
    booking_id = await book(paid_services, show_id, "user_1", ["B1"])
    async with db_session_factory() as db:
        await crud_booking.mark_paid(db, booking_id)

    later = utc_now() + timedelta(days=2)
    assert await paid_services.reaper.expire_if_unpaid(booking_id, later) is False
    result = await paid_services.reaper.sweep(later)
    assert result.cleaned == 0

    async with db_session_factory() as db:
        assert await crud_booking.get_booking(db, booking_id) is not None
        assert await crud_show.get_occupied_seats(db, show_id) == ["B1"]


@pytest.mark.asyncio
async def test_release_skips_seats_rebooked_by_someone_else(paid_services, db_session_factory, seeded_test_data):
    show_id = seeded_test_data["show_id"]
    booking_id = await book(paid_services, show_id, "user_1", ["C1", "C2"])

    async with db_session_factory() as db:
        async with db.begin():
            show = await crud_show.get_show(db, show_id)
            show.occupied_seats = {"C1": "user_1", "C2": "user_2"}

    assert await paid_services.reaper.expire_if_unpaid(booking_id, utc_now() + timedelta(minutes=11)) is True
    async with db_session_factory() as db:
        show = await crud_show.get_show(db, show_id)
    assert show.occupied_seats == {"C2": "user_2"}


@pytest.mark.asyncio
async def test_sweep_cleans_stale_unpaid_bookings_and_is_idempotent(paid_services, db_session_factory, seeded_test_data):
    show_id = seeded_test_data["show_id"]
    stale = [
        await book(paid_services, show_id, "user_1", ["D1"]),
        await book(paid_services, show_id, "user_2", ["D2", "D3"]),
    ]
    paid = await book(paid_services, show_id, "user_2", ["D4"])
    async with db_session_factory() as db:
        await crud_booking.mark_paid(db, paid)

    later = utc_now() + timedelta(minutes=11)
    first = await paid_services.reaper.sweep(later)
    second = await paid_services.reaper.sweep(later)

    assert (first.cleaned, first.errors) == (2, 0)
    assert (second.cleaned, second.errors) == (0, 0)
    async with db_session_factory() as db:
        for booking_id in stale:
            assert await crud_booking.get_booking(db, booking_id) is None
        assert await crud_show.get_occupied_seats(db, show_id) == ["D4"]


@pytest.mark.asyncio
async def test_delayed_check_runs_once_when_due(paid_services, db_session_factory, seeded_test_data):
    show_id = seeded_test_data["show_id"]
    booking_id = await book(paid_services, show_id, "user_1", ["E1"])
    later = utc_now() + timedelta(minutes=11)

    worker = DelayedTaskWorker(
        paid_services.expiry_queue,
        lambda task_id: paid_services.reaper.expire_if_unpaid(task_id, later),
    )
    assert await worker.run_once(utc_now()) == 0
    assert await paid_services.expiry_queue.pending() == 1

    assert await worker.run_once(later) == 1
    assert await worker.run_once(later) == 0
    assert await paid_services.expiry_queue.pending() == 0

    async with db_session_factory() as db:
        assert await crud_booking.get_booking(db, booking_id) is None
        assert await crud_show.get_occupied_seats(db, show_id) == []
