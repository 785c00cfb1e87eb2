import logging
import random
from decimal import Decimal

import pytest

from cinema_ledger.errors import NotFound, PersistenceError, SeatInUse, SeatUnavailable, ValidationError
from cinema_ledger.schemas import PaymentMode, Role, Schedule
from cinema_ledger.service import BookingService
from cinema_ledger.storage import PersistenceGateway

SHOW = Schedule(date="2025-06-01", time="18:00")
NEXT_DAY = Schedule(date="2025-06-02", time="20:30")


def _populate(svc: BookingService):
    svc.ensure_admin("admin", "admin123")
    svc.register("alice", "pw1", "Alice Liddell")
    svc.register("bob", "pw2", "")
    inception = svc.add_movie("Inception", "Sci-Fi", Decimal("12.50"), [SHOW, NEXT_DAY])
    svc.add_movie("Up, Again", "Animation", Decimal("7"), [SHOW])
    svc.add_seat(inception.id, SHOW.date, "I1")
    svc.create_booking("alice", inception.id, SHOW, "C5", PaymentMode.cash)
    svc.create_booking("bob", inception.id, NEXT_DAY, "A1", PaymentMode.gcash)
    svc.create_booking("alice", inception.id, SHOW, "I1", PaymentMode.card)
    return inception


def test_round_trip_reproduces_state(gateway, stored_service):
    _populate(stored_service)

    reloaded = BookingService(PersistenceGateway(gateway.data_dir))
    reloaded.load()

    assert reloaded.directory.list() == stored_service.directory.list()
    assert reloaded.list_movies() == stored_service.list_movies()
    assert reloaded.list_all_bookings() == stored_service.list_all_bookings()
    assert reloaded.seats.snapshot() == stored_service.seats.snapshot()


TITLES = ["Heat", "Up, Again", "The \"Quoted\" Cut", "\"Leading quote", "Comma, \"and\" quote", "Caf\u00e9 Noir", ""]
DATES = ["2025-06-01", "2025-06-02", "2026-01-15"]
TIMES = ["10:00", "18:00", "21:30"]


def _assert_reload_matches(gateway, svc):
    reloaded = BookingService(PersistenceGateway(gateway.data_dir))
    reloaded.load()
    assert reloaded.directory.list() == svc.directory.list()
    assert reloaded.list_movies() == svc.list_movies()
    assert reloaded.list_all_bookings() == svc.list_all_bookings()
    assert reloaded.seats.snapshot() == svc.seats.snapshot()


@pytest.mark.parametrize("seed", range(6))
def test_round_trip_random_state(gateway, stored_service, seed):
    rng = random.Random(seed)
    svc = stored_service
    svc.ensure_admin("admin", "admin123")
    customers = []
    for n in range(rng.randint(1, 4)):
        name = f"user{n}"
        svc.register(name, f"pw{n}", rng.choice(["", "Ann O'Neil", "Lee, Sam", "\"Q\""]))
        customers.append(name)

    for _ in range(120):
        movies = svc.list_movies()
        bookings = svc.list_all_bookings()
        op = rng.choice(["movie", "schedule", "seat", "unseat", "book", "book", "cancel", "delete"])
        try:
            if op == "movie" or not movies:
                svc.add_movie(
                    rng.choice(TITLES), rng.choice(TITLES),
                    Decimal(rng.randint(0, 2000)) / 100,
                    [Schedule(date=rng.choice(DATES), time=rng.choice(TIMES))],
                )
            elif op == "schedule":
                svc.add_schedule(rng.choice(movies).id, Schedule(date=rng.choice(DATES), time=rng.choice(TIMES)))
            elif op in ("seat", "unseat"):
                movie = rng.choice(movies)
                if movie.schedules:
                    date = rng.choice(movie.schedules).date
                    seat = rng.choice(["I1", "J2", "A1", "H10"])
                    if op == "seat":
                        svc.add_seat(movie.id, date, seat)
                    else:
                        svc.remove_seat(movie.id, date, seat)
            elif op == "book":
                movie = rng.choice(movies)
                if movie.schedules:
                    svc.create_booking(
                        rng.choice(customers), movie.id, rng.choice(movie.schedules),
                        rng.choice(["A1", "B2", "C3", "I1", "J2"]), rng.choice(list(PaymentMode)),
                    )
            elif op == "cancel" and bookings:
                svc.cancel_booking(rng.choice(bookings).id)
            elif op == "delete" and rng.random() < 0.3:
                svc.delete_movie(rng.choice(movies).id, confirm=True)
        except (NotFound, SeatInUse, SeatUnavailable, ValidationError):
            pass

    svc.add_movie("Finale", "Drama", Decimal("9.99"), [Schedule(date="2025-06-01", time="18:00")])
    _assert_reload_matches(gateway, svc)


def test_ids_continue_after_reload(gateway, stored_service):
    inception = _populate(stored_service)
    stored_service.cancel_booking(3)

    reloaded = BookingService(gateway)
    reloaded.load()
    movie = reloaded.add_movie("Tenet", "Sci-Fi", Decimal("9"))
    booking = reloaded.create_booking("bob", inception.id, SHOW, "B1")
    assert movie.id == 3
    assert booking.id == 3


def test_file_layout(gateway, stored_service):
    _populate(stored_service)
    read = lambda name: (gateway.data_dir / name).read_text().splitlines()

    assert read("users.txt") == [
        "ADMIN,admin,admin123",
        "CUSTOMER,alice,pw1,Alice Liddell",
        "CUSTOMER,bob,pw2,",
    ]
    assert read("movies.txt") == [
        "1,Inception,Sci-Fi,12.50,2025-06-01,18:00,2025-06-02,20:30",
        '2,"Up, Again",Animation,7.00,2025-06-01,18:00',
    ]
    assert read("bookings.txt")[0] == "1,alice,1,2025-06-01,18:00,C5,12.50,Cash"
    assert read("bookings.txt")[2] == "3,alice,1,2025-06-01,18:00,I1,12.50,Credit/Debit Card"

    seats = read("seats.txt")
    assert len(seats) == 80 + 1 + 80 + 80
    assert "1,2025-06-01,C5,0" in seats
    assert "1,2025-06-01,C4,1" in seats
    assert "1,2025-06-01,I1,0" in seats


def test_empty_directory_loads_empty_state(gateway):
    state = gateway.load()
    assert state.users == [] and state.movies == [] and state.bookings == []
    assert state.seats == {}


def test_missing_seat_file_seeds_default_grids(gateway):
    gateway.data_dir.joinpath("movies.txt").write_text(
        "1,Inception,Sci-Fi,12.50,2025-06-01,18:00,2025-06-02,20:30\n"
        "2,Up,Animation,7.00\n"
    )
    gateway.data_dir.joinpath("bookings.txt").write_text(
        "1,alice,1,2025-06-01,18:00,C5,12.50,Cash\n"
    )

    svc = BookingService(gateway)
    svc.load()

    assert svc.seats.keys() == [(1, "2025-06-01"), (1, "2025-06-02")]
    for key in svc.seats.keys():
        layout = svc.seats.layout(*key)
        assert len(layout) == 80
        assert all(layout.values())
    # seat state is not rebuilt from bookings
    assert svc.seats.is_available(1, "2025-06-01", "C5")


def test_malformed_lines_are_skipped(gateway, caplog):
    gateway.data_dir.joinpath("users.txt").write_text(
        "ADMIN,admin,admin123\n"
        "CUSTOMER,nameless,pw\n"
        "GUEST,x,y\n"
        "CUSTOMER,alice,pw,Alice\n"
    )
    gateway.data_dir.joinpath("movies.txt").write_text(
        "x,Bad,Drama,1.00\n"
        "\n"
        "2,Ok,Drama,5.00,2025-06-01,18:00\n"
        "3,BadDate,Drama,5.00,2025-13-01,18:00\n"
        "4,BadPrice,Drama,cheap\n"
        "5,Short\n"
    )
    gateway.data_dir.joinpath("bookings.txt").write_text(
        "1,alice,2,2025-06-01,18:00,A1,5.00,Bitcoin\n"
        "2,alice,2,2025-06-01,18:00,A2,5.00,GCash\n"
    )
    gateway.data_dir.joinpath("seats.txt").write_text(
        "2,2025-06-01,A1,1\n"
        "2,2025-06-01,A2,0\n"
        "two,2025-06-01,A3,1\n"
    )

    with caplog.at_level(logging.WARNING, logger="cinema_ledger.storage"):
        svc = BookingService(gateway)
        svc.load()

    assert [(u.username, u.role) for u in svc.directory.list()] == [
        ("admin", Role.admin),
        ("alice", Role.customer),
    ]
    assert [m.id for m in svc.list_movies()] == [2]
    assert [b.id for b in svc.list_all_bookings()] == [2]
    assert svc.seats.layout(2, "2025-06-01") == {"A1": True, "A2": False}
    assert "GUEST,x,y" in caplog.text
    assert "x,Bad,Drama,1.00" in caplog.text

    # next movie id follows the highest one that loaded
    assert svc.add_movie("New", "Drama", Decimal("1")).id == 3


def test_undecodable_line_is_skipped(gateway, caplog):
    gateway.data_dir.joinpath("users.txt").write_bytes(
        b"ADMIN,admin,admin123\n"
        b"CUSTOMER,jos\xe9,pw,Jos\xe9\n"
        b"CUSTOMER,alice,pw,Alice\n"
    )

    with caplog.at_level(logging.WARNING, logger="cinema_ledger.storage"):
        state = gateway.load()

    assert [u.username for u in state.users] == ["admin", "alice"]
    assert "users.txt:2" in caplog.text


def test_stray_quote_spoils_only_its_own_line(gateway, caplog):
    gateway.data_dir.joinpath("movies.txt").write_text(
        '1,"Heat,Crime,9.00\n'
        "2,Up,Animation,7.00,2025-06-01,18:00\n"
        '3,"Up, Again",Animation,7.00\n'
    )

    with caplog.at_level(logging.WARNING, logger="cinema_ledger.storage"):
        state = gateway.load()

    assert [m.id for m in state.movies] == [2, 3]
    assert state.movies[1].title == "Up, Again"
    assert "movies.txt:1" in caplog.text
    assert "movies.txt:2" not in caplog.text


def test_unreadable_data_file_raises_persistence_error(gateway):
    gateway.data_dir.joinpath("users.txt").mkdir()
    with pytest.raises(PersistenceError):
        gateway.load()
