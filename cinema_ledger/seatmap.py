from typing import Dict, Iterator, List, Tuple

from .utils import DEFAULT_SEAT_ROWS, DEFAULT_SEATS_PER_ROW, default_grid, seat_sort_key

SeatKey = Tuple[int, str]  # (movie_id, date)


class SeatMap:
    """
    Seat availability per (movie_id, date): seat code -> True when available.

    Book/free on an unknown seat is a silent no-op and never creates the seat;
    keeping the map in step with the ledger is the caller's job.
    """

    def __init__(self, rows: str = DEFAULT_SEAT_ROWS, cols: int = DEFAULT_SEATS_PER_ROW):
        self.rows = rows
        self.cols = cols
        self._seats: Dict[SeatKey, Dict[str, bool]] = {}

    def initialize(self, movie_id: int, date: str) -> None:
        # overwrites an existing map for the key
        self._seats[(movie_id, date)] = default_grid(self.rows, self.cols)

    def has_map(self, movie_id: int, date: str) -> bool:
        return (movie_id, date) in self._seats

    def has_seat(self, movie_id: int, date: str, seat: str) -> bool:
        return seat in self._seats.get((movie_id, date), {})

    def is_available(self, movie_id: int, date: str, seat: str) -> bool:
        return self._seats.get((movie_id, date), {}).get(seat, False)

    def book(self, movie_id: int, date: str, seat: str) -> None:
        seats = self._seats.get((movie_id, date))
        if seats is not None and seat in seats:
            seats[seat] = False

    def free(self, movie_id: int, date: str, seat: str) -> None:
        seats = self._seats.get((movie_id, date))
        if seats is not None and seat in seats:
            seats[seat] = True

    def remove(self, movie_id: int, date: str) -> None:
        self._seats.pop((movie_id, date), None)

    def add_seat(self, movie_id: int, date: str, seat: str) -> None:
        self._seats.setdefault((movie_id, date), {})[seat] = True

    def remove_seat(self, movie_id: int, date: str, seat: str) -> None:
        self._seats.get((movie_id, date), {}).pop(seat, None)

    def layout(self, movie_id: int, date: str) -> Dict[str, bool] | None:
        seats = self._seats.get((movie_id, date))
        if seats is None:
            return None
        return {code: seats[code] for code in sorted(seats, key=seat_sort_key)}

    def keys(self) -> List[SeatKey]:
        return sorted(self._seats)

    def items(self) -> Iterator[Tuple[SeatKey, Dict[str, bool]]]:
        for key in self.keys():
            yield key, self.layout(*key)

    def snapshot(self) -> Dict[SeatKey, Dict[str, bool]]:
        return {key: dict(seats) for key, seats in self._seats.items()}

    def restore(self, state: Dict[SeatKey, Dict[str, bool]]) -> None:
        self._seats = {key: dict(seats) for key, seats in state.items()}
