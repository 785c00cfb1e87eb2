import itertools
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

from .errors import NotFound, ValidationError
from .schemas import Movie, Schedule
from .utils import is_single_line, money


class Catalog:
    """Movies and their ordered schedules, with a sequential movie id counter."""

    def __init__(self):
        self._movies: Dict[int, Movie] = {}
        self._ids = itertools.count(1)

    # ---------- id generator ----------
    def next_id(self) -> int:
        return next(self._ids)

    def load(self, movies: Iterable[Movie]) -> None:
        """Replace the contents; ids continue after the highest loaded one."""
        self._movies = {m.id: m for m in movies}
        self._ids = itertools.count(max(self._movies, default=0) + 1)

    # ---------- movie ops ----------
    def get(self, movie_id: int) -> Movie:
        m = self._movies.get(movie_id)
        if m is None:
            raise NotFound(f"Movie {movie_id} not found")
        return m

    def list(self) -> List[Movie]:
        return list(self._movies.values())

    def add_movie(self, title: str, genre: str, price) -> Movie:
        _check_text(title=title, genre=genre)
        price = _price(price)
        if price < 0:
            raise ValidationError("Price must not be negative")
        m = Movie(id=self.next_id(), title=title, genre=genre, price=price)
        self._movies[m.id] = m
        return m

    def edit_movie(
        self,
        movie_id: int,
        title: Optional[str] = None,
        genre: Optional[str] = None,
        price: Optional[Decimal] = None,
    ) -> Movie:
        """Partial update: blank title/genre and price <= 0 keep the current value."""
        m = self.get(movie_id)
        _check_text(title=title or "", genre=genre or "")
        update = {}
        if title:
            update["title"] = title
        if genre:
            update["genre"] = genre
        if price is not None:
            price = _price(price)
            if price > 0:
                update["price"] = price
        updated = m.model_copy(update=update)
        self._movies[movie_id] = updated
        return updated

    def delete_movie(self, movie_id: int) -> Movie:
        m = self.get(movie_id)
        del self._movies[movie_id]
        return m

    # ---------- schedule ops ----------
    def add_schedule(self, movie_id: int, schedule: Schedule) -> Movie:
        m = self.get(movie_id)
        updated = m.model_copy(update={"schedules": [*m.schedules, schedule]})
        self._movies[movie_id] = updated
        return updated

    def remove_schedule(self, movie_id: int, index: int) -> Schedule:
        """Remove by position (0-based), not by value."""
        m = self.get(movie_id)
        if not 0 <= index < len(m.schedules):
            raise NotFound(f"Schedule #{index + 1} not found for movie {movie_id}")
        schedules = list(m.schedules)
        removed = schedules.pop(index)
        self._movies[movie_id] = m.model_copy(update={"schedules": schedules})
        return removed

    def has_date(self, movie_id: int, date: str) -> bool:
        return any(s.date == date for s in self.get(movie_id).schedules)

    # ---------- snapshot ----------
    # ids handed out by a rolled-back operation are not reissued
    def snapshot(self) -> Dict[int, Movie]:
        # models are replaced on every edit, so a shallow copy is enough
        return dict(self._movies)

    def restore(self, state: Dict[int, Movie]) -> None:
        self._movies = dict(state)


def _price(value) -> Decimal:
    try:
        price = money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid price {value!r}") from None
    if not price.is_finite():
        raise ValidationError(f"Invalid price {value!r}")
    return price


def _check_text(**fields: str) -> None:
    for name, value in fields.items():
        if not is_single_line(value):
            raise ValidationError(f"Movie {name} must fit on one line")
