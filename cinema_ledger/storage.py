"""
Flat-file persistence: four comma-delimited record streams, one entity per line.

    users.txt     role,username,password[,display_name]
    movies.txt    id,title,genre,price[,date,time]*
    bookings.txt  id,username,movie_id,date,time,seat,price,payment_mode
    seats.txt     movie_id,date,seat,flag        (flag 1 = available)

Every save rewrites all four files. Malformed lines are skipped on load.
"""
import csv
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import PersistenceError
from .schemas import Booking, Movie, PaymentMode, Role, Schedule, User
from .seatmap import SeatKey
from .utils import DEFAULT_SEAT_ROWS, DEFAULT_SEATS_PER_ROW, default_grid, format_money

logger = logging.getLogger(__name__)

USERS_FILE = "users.txt"
MOVIES_FILE = "movies.txt"
BOOKINGS_FILE = "bookings.txt"
SEATS_FILE = "seats.txt"


class MalformedRecord(ValueError):
    pass


@dataclass
class StoredState:
    users: List[User] = field(default_factory=list)
    movies: List[Movie] = field(default_factory=list)
    bookings: List[Booking] = field(default_factory=list)
    seats: Dict[SeatKey, Dict[str, bool]] = field(default_factory=dict)
    seats_seeded: bool = False  # True when seats.txt was missing


# =========================
#      RECORD PARSING
# =========================
def parse_user(tokens: List[str]) -> User:
    if len(tokens) < 3:
        raise MalformedRecord("expected role,username,password")
    role = tokens[0]
    if role == Role.customer.value:
        if len(tokens) < 4:
            raise MalformedRecord("customer record needs a display name")
        return User(id=0, username=tokens[1], password=tokens[2], role=Role.customer, display_name=tokens[3])
    if role == Role.admin.value:
        return User(id=0, username=tokens[1], password=tokens[2], role=Role.admin)
    raise MalformedRecord(f"unknown role {role!r}")


def parse_movie(tokens: List[str]) -> Movie:
    if len(tokens) < 4:
        raise MalformedRecord("expected id,title,genre,price")
    # a dangling date without its time is dropped
    schedules = [
        Schedule(date=tokens[i], time=tokens[i + 1])
        for i in range(4, len(tokens) - 1, 2)
    ]
    return Movie(
        id=int(tokens[0]),
        title=tokens[1],
        genre=tokens[2],
        price=tokens[3],
        schedules=schedules,
    )


def parse_booking(tokens: List[str]) -> Booking:
    if len(tokens) < 8:
        raise MalformedRecord("expected 8 booking fields")
    return Booking(
        id=int(tokens[0]),
        customer_username=tokens[1],
        movie_id=int(tokens[2]),
        schedule=Schedule(date=tokens[3], time=tokens[4]),
        seat=tokens[5],
        price=tokens[6],
        payment_mode=PaymentMode(tokens[7]),
    )


def parse_seat(tokens: List[str]) -> Tuple[int, str, str, bool]:
    if len(tokens) < 4:
        raise MalformedRecord("expected movie_id,date,seat,flag")
    return int(tokens[0]), tokens[1], tokens[2], tokens[3] == "1"


# =========================
#      RECORD FORMATTING
# =========================
def format_user(u: User) -> List[str]:
    if u.role == Role.customer:
        return [u.role.value, u.username, u.password, u.display_name or ""]
    return [u.role.value, u.username, u.password]


def format_movie(m: Movie) -> List[str]:
    row = [str(m.id), m.title, m.genre, format_money(m.price)]
    for s in m.schedules:
        row += [s.date, s.time]
    return row


def format_booking(b: Booking) -> List[str]:
    return [
        str(b.id), b.customer_username, str(b.movie_id),
        b.schedule.date, b.schedule.time, b.seat,
        format_money(b.price), b.payment_mode.value,
    ]


class PersistenceGateway:
    """Loads and saves full snapshots. Never touches the live collections."""

    def __init__(
        self,
        data_dir,
        rows: str = DEFAULT_SEAT_ROWS,
        cols: int = DEFAULT_SEATS_PER_ROW,
    ):
        self.data_dir = Path(data_dir)
        self.rows = rows
        self.cols = cols

    def path(self, name: str) -> Path:
        return self.data_dir / name

    # ---------- load ----------
    def _read(self, name: str, parse: Callable[[List[str]], object]) -> Iterator:
        # one physical line per record; a stray quote or bad byte spoils only its own line
        raw = self.path(name).read_bytes()
        for lineno, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                tokens = next(csv.reader([line.decode("utf-8")], strict=True))
                yield parse(tokens)
            except (ValueError, ArithmeticError, csv.Error) as exc:
                # UnicodeDecodeError and pydantic's ValidationError are ValueErrors too
                logger.warning(
                    "Skipping malformed record %s:%d %r (%s)",
                    name, lineno, line.decode("utf-8", "replace"), exc,
                )

    def _read_if_present(self, name: str, parse) -> Optional[list]:
        if not self.path(name).exists():
            return None
        return list(self._read(name, parse))

    def load(self) -> StoredState:
        """Load users, movies, bookings, then seats."""
        state = StoredState()
        try:
            state.users = _unique(self._read_if_present(USERS_FILE, parse_user) or [], lambda u: u.username, USERS_FILE)
            state.movies = _unique(self._read_if_present(MOVIES_FILE, parse_movie) or [], lambda m: m.id, MOVIES_FILE)
            state.bookings = _unique(self._read_if_present(BOOKINGS_FILE, parse_booking) or [], lambda b: b.id, BOOKINGS_FILE)
            seats = self._read_if_present(SEATS_FILE, parse_seat)
        except OSError as exc:
            logger.exception("Failed to load data from %s", self.data_dir)
            raise PersistenceError(f"Could not read data: {exc}") from exc

        if seats is None:
            # no seat file: every scheduled (movie, date) starts fully available
            state.seats_seeded = True
            for m in state.movies:
                for s in m.schedules:
                    state.seats[(m.id, s.date)] = default_grid(self.rows, self.cols)
        else:
            for movie_id, date, seat, available in seats:
                state.seats.setdefault((movie_id, date), {})[seat] = available

        logger.info(
            "Loaded %d user(s), %d movie(s), %d booking(s), %d seat map(s) from %s",
            len(state.users), len(state.movies), len(state.bookings), len(state.seats), self.data_dir,
        )
        return state

    # ---------- save ----------
    def _write(self, name: str, rows: Iterable[List[str]]) -> None:
        fd, tmp = tempfile.mkstemp(prefix=f".{name}.", dir=self.data_dir)
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f, lineterminator="\n")
                writer.writerows(rows)
            os.replace(tmp, self.path(name))
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def save(
        self,
        users: Iterable[User],
        movies: Iterable[Movie],
        bookings: Iterable[Booking],
        seats: Iterable[Tuple[SeatKey, Dict[str, bool]]],
    ) -> None:
        """Rewrite all four streams in full."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._write(USERS_FILE, (format_user(u) for u in users))
            self._write(MOVIES_FILE, (format_movie(m) for m in movies))
            self._write(BOOKINGS_FILE, (format_booking(b) for b in bookings))
            self._write(SEATS_FILE, (
                [str(movie_id), date, code, "1" if available else "0"]
                for (movie_id, date), layout in seats
                for code, available in layout.items()
            ))
        except OSError as exc:
            logger.exception("Failed to save data to %s", self.data_dir)
            raise PersistenceError(f"Could not write data: {exc}") from exc


def _unique(records: list, key, name: str) -> list:
    seen = {}
    for r in records:
        k = key(r)
        if k in seen:
            logger.warning("Skipping duplicate record in %s: %r", name, k)
            continue
        seen[k] = r
    return list(seen.values())
