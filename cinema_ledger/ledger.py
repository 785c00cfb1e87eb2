import itertools
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import NotFound
from .schemas import Booking, PaymentMode, Schedule
from .utils import money


class Ledger:
    """All active bookings, in insertion order."""

    def __init__(self):
        self._bookings: Dict[int, Booking] = {}
        self._ids = itertools.count(1)

    def load(self, bookings: Iterable[Booking]) -> None:
        self._bookings = {b.id: b for b in bookings}
        self._ids = itertools.count(max(self._bookings, default=0) + 1)

    def next_id(self) -> int:
        return next(self._ids)

    def add(self, booking: Booking) -> Booking:
        self._bookings[booking.id] = booking
        return booking

    def create(
        self,
        customer_username: str,
        movie_id: int,
        schedule: Schedule,
        seat: str,
        price: Decimal,
        payment_mode: PaymentMode,
    ) -> Booking:
        b = Booking(
            id=self.next_id(),
            customer_username=customer_username,
            movie_id=movie_id,
            schedule=schedule,
            seat=seat,
            price=price,
            payment_mode=payment_mode,
        )
        return self.add(b)

    def get(self, booking_id: int) -> Booking:
        b = self._bookings.get(booking_id)
        if b is None:
            raise NotFound(f"Booking {booking_id} not found")
        return b

    def remove(self, booking_id: int) -> Booking:
        b = self.get(booking_id)
        del self._bookings[booking_id]
        return b

    def update(
        self,
        booking_id: int,
        new_schedule: Schedule,
        new_seat: str,
        new_price: Optional[Decimal] = None,
        new_payment_mode: Optional[PaymentMode] = None,
    ) -> Booking:
        """Replace the record wholesale; id and customer are kept."""
        old = self.get(booking_id)
        replaced = Booking(
            id=old.id,
            customer_username=old.customer_username,
            movie_id=old.movie_id,
            schedule=new_schedule,
            seat=new_seat,
            price=old.price if new_price is None else new_price,
            payment_mode=new_payment_mode or old.payment_mode,
        )
        self._bookings[booking_id] = replaced
        return replaced

    # ---------- queries ----------
    def list(self) -> List[Booking]:
        return list(self._bookings.values())

    def find_by_customer(self, username: str) -> List[Booking]:
        return [b for b in self._bookings.values() if b.customer_username == username]

    def find_by_movie(self, movie_id: int) -> List[Booking]:
        return [b for b in self._bookings.values() if b.movie_id == movie_id]

    def has_booking_for(self, movie_id: int, date: str) -> bool:
        return any(
            b.movie_id == movie_id and b.schedule.date == date
            for b in self._bookings.values()
        )

    def has_booking_for_seat(self, movie_id: int, date: str, seat: str) -> bool:
        return any(
            b.movie_id == movie_id and b.schedule.date == date and b.seat == seat
            for b in self._bookings.values()
        )

    def revenue_and_count_by_movie(self) -> Dict[int, Tuple[int, Decimal]]:
        stats: Dict[int, Tuple[int, Decimal]] = {}
        for b in self._bookings.values():
            count, total = stats.get(b.movie_id, (0, Decimal("0")))
            stats[b.movie_id] = (count + 1, money(total + b.price))
        return stats

    def __len__(self) -> int:
        return len(self._bookings)

    # ---------- snapshot ----------
    def snapshot(self) -> Dict[int, Booking]:
        return dict(self._bookings)

    def restore(self, state: Dict[int, Booking]) -> None:
        self._bookings = dict(state)
