import logging
import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, List, Optional

from .catalog import Catalog
from .directory import Directory
from .errors import (
    MovieInUse, NotFound, ScheduleInUse, SeatInUse, SeatUnavailable, ValidationError,
)
from .ledger import Ledger
from .schemas import (
    Booking, Movie, PaymentMode, SalesReport, SalesRow, Schedule,
    SeatCell, SeatLayout, User,
)
from .seatmap import SeatMap
from .storage import PersistenceGateway
from .utils import DEFAULT_SEAT_ROWS, DEFAULT_SEATS_PER_ROW, money, normalize_seat

logger = logging.getLogger(__name__)


class BookingService:
    """
    Orchestrates Catalog, Ledger, SeatMap and Directory.

    Every mutating operation is a critical section: check, mutate, then
    write the full snapshot through the gateway. If anything fails on the
    way (including the write) the in-memory state is put back as it was.
    """

    def __init__(
        self,
        gateway: Optional[PersistenceGateway] = None,
        rows: str = DEFAULT_SEAT_ROWS,
        cols: int = DEFAULT_SEATS_PER_ROW,
    ):
        self.gateway = gateway
        self.catalog = Catalog()
        self.ledger = Ledger()
        self.seats = SeatMap(rows, cols)
        self.directory = Directory()
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings) -> "BookingService":
        gateway = PersistenceGateway(settings.DATA_DIR, settings.SEAT_ROWS, settings.SEATS_PER_ROW)
        return cls(gateway, settings.SEAT_ROWS, settings.SEATS_PER_ROW)

    # =========================
    #       PERSISTENCE
    # =========================
    def load(self) -> None:
        if self.gateway is None:
            return
        with self._lock:
            state = self.gateway.load()
            self.directory.load(state.users)
            self.catalog.load(state.movies)
            self.ledger.load(state.bookings)
            self.seats.restore(state.seats)
            if state.seats_seeded and len(self.ledger):
                logger.warning(
                    "Seat file missing; regenerated default seat maps with all seats "
                    "available although %d booking(s) exist", len(self.ledger),
                )

    def save(self) -> None:
        if self.gateway is None:
            return
        self.gateway.save(
            self.directory.list(),
            self.catalog.list(),
            self.ledger.list(),
            self.seats.items(),
        )

    def _snapshot(self) -> tuple:
        return (
            self.catalog.snapshot(),
            self.ledger.snapshot(),
            self.seats.snapshot(),
            self.directory.snapshot(),
        )

    def _restore(self, state: tuple) -> None:
        catalog, ledger, seats, directory = state
        self.catalog.restore(catalog)
        self.ledger.restore(ledger)
        self.seats.restore(seats)
        self.directory.restore(directory)

    @contextmanager
    def _transaction(self):
        with self._lock:
            state = self._snapshot()
            try:
                yield
                self.save()
            except Exception:
                self._restore(state)
                raise

    # =========================
    #         HELPERS
    # =========================
    def _booking_for(self, booking_id: int, customer: Optional[str]) -> Booking:
        b = self.ledger.get(booking_id)
        if customer is not None and b.customer_username != customer:
            raise NotFound(f"Booking {booking_id} not found")
        return b

    def _require_schedule(self, movie: Movie, schedule: Schedule) -> None:
        if schedule not in movie.schedules:
            raise NotFound(f"Movie {movie.id} has no showing on {schedule.full()}")

    # =========================
    #        BOOKINGS
    # =========================
    def create_booking(
        self,
        customer: str,
        movie_id: int,
        schedule: Schedule,
        seat: str,
        payment_mode: PaymentMode = PaymentMode.cash,
    ) -> Booking:
        seat = normalize_seat(seat)
        with self._transaction():
            movie = self.catalog.get(movie_id)
            self._require_schedule(movie, schedule)
            if not self.seats.is_available(movie_id, schedule.date, seat):
                raise SeatUnavailable(f"Seat {seat} is not available on {schedule.date}")
            booking = self.ledger.create(customer, movie_id, schedule, seat, movie.price, payment_mode)
            self.seats.book(movie_id, schedule.date, seat)
        logger.info("Booking %d: %s took %s for movie %d on %s", booking.id, customer, seat, movie_id, schedule.full())
        return booking

    def edit_booking(
        self,
        booking_id: int,
        new_schedule: Optional[Schedule] = None,
        new_seat: Optional[str] = None,
        new_payment_mode: Optional[PaymentMode] = None,
        customer: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking to another showing and/or seat of the same movie.

        The old seat is released before the new one is checked, so a booking
        can move to a seat it already holds on another showing of the same
        date. If the new seat is taken the old one is booked again and
        SeatUnavailable is raised. The price is re-read from the movie.
        """
        with self._transaction():
            current = self._booking_for(booking_id, customer)
            movie = self.catalog.get(current.movie_id)
            schedule = current.schedule
            if new_schedule is not None:
                self._require_schedule(movie, new_schedule)
                schedule = new_schedule
            seat = normalize_seat(new_seat) if new_seat else current.seat

            old_date = current.schedule.date
            if (schedule.date, seat) != (old_date, current.seat):
                self.seats.free(movie.id, old_date, current.seat)
                if not self.seats.is_available(movie.id, schedule.date, seat):
                    self.seats.book(movie.id, old_date, current.seat)
                    raise SeatUnavailable(f"Seat {seat} is not available on {schedule.date}")
                self.seats.book(movie.id, schedule.date, seat)

            updated = self.ledger.update(booking_id, schedule, seat, movie.price, new_payment_mode)
        logger.info("Booking %d moved to %s on %s", booking_id, seat, schedule.full())
        return updated

    def cancel_booking(self, booking_id: int, customer: Optional[str] = None) -> Booking:
        with self._transaction():
            b = self._booking_for(booking_id, customer)
            self.seats.free(b.movie_id, b.schedule.date, b.seat)
            self.ledger.remove(booking_id)
        logger.info("Booking %d cancelled, seat %s released", booking_id, b.seat)
        return b

    # =========================
    #         MOVIES
    # =========================
    def add_movie(self, title: str, genre: str, price, schedules: Iterable[Schedule] = ()) -> Movie:
        with self._transaction():
            movie = self.catalog.add_movie(title, genre, price)
            for s in schedules:
                movie = self._add_schedule(movie.id, s)
        logger.info("Movie %d '%s' added with %d schedule(s)", movie.id, movie.title, len(movie.schedules))
        return movie

    def edit_movie(
        self,
        movie_id: int,
        title: Optional[str] = None,
        genre: Optional[str] = None,
        price: Optional[Decimal] = None,
    ) -> Movie:
        with self._transaction():
            movie = self.catalog.edit_movie(movie_id, title, genre, price)
        return movie

    def delete_movie(self, movie_id: int, confirm: bool = False) -> int:
        """
        Delete a movie. When bookings reference it the caller must confirm;
        unconfirmed, MovieInUse carries the number of bookings at stake.
        Confirmed, those bookings and all of the movie's seat maps go too.
        Returns the number of bookings cancelled.
        """
        with self._transaction():
            movie = self.catalog.get(movie_id)
            bookings = self.ledger.find_by_movie(movie_id)
            if bookings and not confirm:
                raise MovieInUse(
                    f"Movie {movie_id} has {len(bookings)} active booking(s); confirm to delete them too",
                    booking_count=len(bookings),
                )
            for b in bookings:
                self.ledger.remove(b.id)
            for key in self.seats.keys():
                if key[0] == movie_id:
                    self.seats.remove(*key)
            self.catalog.delete_movie(movie_id)
        logger.info("Movie %d '%s' deleted, %d booking(s) cancelled", movie_id, movie.title, len(bookings))
        return len(bookings)

    # =========================
    #        SCHEDULES
    # =========================
    def _add_schedule(self, movie_id: int, schedule: Schedule) -> Movie:
        movie = self.catalog.add_schedule(movie_id, schedule)
        # showings on one date share a seat map
        if not self.seats.has_map(movie_id, schedule.date):
            self.seats.initialize(movie_id, schedule.date)
        return movie

    def add_schedule(self, movie_id: int, schedule: Schedule) -> Movie:
        with self._transaction():
            movie = self._add_schedule(movie_id, schedule)
        return movie

    def remove_schedule(self, movie_id: int, index: int) -> Schedule:
        """Remove the schedule at ``index`` (0-based). Never cascades to bookings."""
        with self._transaction():
            movie = self.catalog.get(movie_id)
            if not 0 <= index < len(movie.schedules):
                raise NotFound(f"Schedule #{index + 1} not found for movie {movie_id}")
            date = movie.schedules[index].date
            if self.ledger.has_booking_for(movie_id, date):
                raise ScheduleInUse(f"Movie {movie_id} has bookings on {date}")
            removed = self.catalog.remove_schedule(movie_id, index)
            if not self.catalog.has_date(movie_id, date):
                self.seats.remove(movie_id, date)
        return removed

    # =========================
    #          SEATS
    # =========================
    def _require_date(self, movie_id: int, date: str) -> None:
        if not self.catalog.has_date(movie_id, date):
            raise NotFound(f"Movie {movie_id} has no showing on {date}")

    def add_seat(self, movie_id: int, date: str, seat: str) -> str:
        seat = normalize_seat(seat)
        if not seat:
            raise ValidationError("Seat label must not be empty")
        with self._transaction():
            self._require_date(movie_id, date)
            if self.seats.has_seat(movie_id, date, seat):
                raise ValidationError(f"Seat {seat} already exists")
            self.seats.add_seat(movie_id, date, seat)
        return seat

    def remove_seat(self, movie_id: int, date: str, seat: str) -> str:
        seat = normalize_seat(seat)
        with self._transaction():
            self._require_date(movie_id, date)
            if not self.seats.has_seat(movie_id, date, seat):
                raise NotFound(f"Seat {seat} does not exist")
            if self.ledger.has_booking_for_seat(movie_id, date, seat):
                raise SeatInUse(f"Seat {seat} has an active booking")
            self.seats.remove_seat(movie_id, date, seat)
        return seat

    # =========================
    #          USERS
    # =========================
    def register(self, username: str, password: str, display_name: str = "") -> User:
        with self._transaction():
            user = self.directory.register(username, password, display_name)
        logger.info("Registered customer %s", username)
        return user

    def authenticate(self, username: str, password: str) -> Optional[User]:
        with self._lock:
            return self.directory.authenticate(username, password)

    def ensure_admin(self, username: str, password: str) -> Optional[User]:
        with self._lock:
            if any(u.is_admin for u in self.directory.list()):
                return None
            with self._transaction():
                admin = self.directory.ensure_admin(username, password)
        logger.info("No admin found; created default admin %s", username)
        return admin

    # =========================
    #         QUERIES
    # =========================
    def list_movies(self) -> List[Movie]:
        with self._lock:
            return self.catalog.list()

    def get_movie(self, movie_id: int) -> Movie:
        with self._lock:
            return self.catalog.get(movie_id)

    def list_schedules_for(self, movie_id: int) -> List[Schedule]:
        with self._lock:
            return list(self.catalog.get(movie_id).schedules)

    def list_bookings_for(self, username: str) -> List[Booking]:
        with self._lock:
            return self.ledger.find_by_customer(username)

    def list_all_bookings(self) -> List[Booking]:
        with self._lock:
            return self.ledger.list()

    def get_booking(self, booking_id: int, customer: Optional[str] = None) -> Booking:
        with self._lock:
            return self._booking_for(booking_id, customer)

    def seat_layout(self, movie_id: int, date: str) -> SeatLayout:
        """Seat map for one movie/date, plus a row-by-row grid for display."""
        with self._lock:
            self.catalog.get(movie_id)
            seats = self.seats.layout(movie_id, date)
        if seats is None:
            raise NotFound(f"No seat map for movie {movie_id} on {date}")

        grid: List[List[SeatCell]] = []
        current_row = None
        for code, available in seats.items():
            row = code.rstrip("0123456789")
            if row != current_row:
                grid.append([])
                current_row = row
            grid[-1].append(SeatCell(code=code, available=available))

        available_count = sum(seats.values())
        return SeatLayout(
            movie_id=movie_id,
            date=date,
            available_count=available_count,
            booked_count=len(seats) - available_count,
            seats=seats,
            grid=grid,
        )

    def sales_report(self) -> SalesReport:
        with self._lock:
            stats = self.ledger.revenue_and_count_by_movie()
            movies = self.catalog.list()
        rows = [
            SalesRow(movie_id=m.id, title=m.title, tickets=stats[m.id][0], revenue=stats[m.id][1])
            for m in movies
            if m.id in stats
        ]
        return SalesReport(
            rows=rows,
            total_tickets=sum(count for count, _ in stats.values()),
            total_revenue=money(sum((total for _, total in stats.values()), Decimal("0"))),
        )
