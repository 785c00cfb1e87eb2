from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import is_valid_credential, is_valid_date, is_valid_time, money


# ---------- ENUM ----------
class Role(str, Enum):
    customer = "CUSTOMER"
    admin = "ADMIN"


class PaymentMode(str, Enum):
    cash = "Cash"
    card = "Credit/Debit Card"
    gcash = "GCash"


# ---------- SCHEDULE ----------
class Schedule(BaseModel):
    """One showing of a movie. Immutable; identified by (date, time)."""

    model_config = ConfigDict(frozen=True)

    date: str = Field(..., examples=["2025-06-01"])
    time: str = Field(..., examples=["18:00"])  # HH:MM (24 jam)

    @field_validator("date")
    @classmethod
    def _date(cls, v: str) -> str:
        if not is_valid_date(v):
            raise ValueError("date must be YYYY-MM-DD (year >= 2023)")
        return v

    @field_validator("time")
    @classmethod
    def _time(cls, v: str) -> str:
        if not is_valid_time(v):
            raise ValueError("time must be HH:MM 24h")
        return v

    def full(self) -> str:
        return f"{self.date} {self.time}"


# ---------- MOVIE ----------
class MovieBase(BaseModel):
    title: str = Field(..., examples=["Inception"])
    genre: str = Field(..., examples=["Sci-Fi"])
    price: Decimal = Field(..., ge=0, examples=["12.50"])

    @field_validator("price")
    @classmethod
    def _price(cls, v: Decimal) -> Decimal:
        return money(v)


class MovieCreate(MovieBase):
    schedules: List[Schedule] = []


class MovieUpdate(BaseModel):
    # "" / None keeps title and genre, price <= 0 keeps the price
    title: Optional[str] = None
    genre: Optional[str] = None
    price: Optional[Decimal] = None


class Movie(MovieBase):
    id: int
    schedules: List[Schedule] = []


# ---------- BOOKING ----------
class BookingCreate(BaseModel):
    movie_id: int
    schedule: Schedule
    seat: str = Field(..., examples=["C5"])
    payment_mode: PaymentMode = PaymentMode.cash


class BookingUpdate(BaseModel):
    schedule: Optional[Schedule] = None
    seat: Optional[str] = None
    payment_mode: Optional[PaymentMode] = None


class Booking(BaseModel):
    id: int
    customer_username: str
    movie_id: int
    schedule: Schedule
    seat: str
    price: Decimal
    payment_mode: PaymentMode

    @field_validator("price")
    @classmethod
    def _price(cls, v: Decimal) -> Decimal:
        return money(v)


# ---------- USER ----------
class User(BaseModel):
    id: int
    username: str
    password: str
    role: Role
    display_name: Optional[str] = None  # CUSTOMER only

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


class RegisterRequest(BaseModel):
    username: str
    password: str
    display_name: str = ""

    @field_validator("username", "password")
    @classmethod
    def _no_spaces(cls, v: str) -> str:
        if not is_valid_credential(v):
            raise ValueError("must be non-empty and contain no spaces")
        return v


class UserOut(BaseModel):
    username: str
    role: Role
    display_name: Optional[str] = None


# ---------- SEATS ----------
class SeatCreate(BaseModel):
    date: str
    seat: str

    @field_validator("date")
    @classmethod
    def _date(cls, v: str) -> str:
        if not is_valid_date(v):
            raise ValueError("date must be YYYY-MM-DD (year >= 2023)")
        return v


class SeatCell(BaseModel):
    code: str
    available: bool


class SeatLayout(BaseModel):
    movie_id: int
    date: str
    available_count: int
    booked_count: int
    seats: Dict[str, bool]
    grid: List[List[SeatCell]]


# ---------- REPORTS ----------
class SalesRow(BaseModel):
    movie_id: int
    title: str
    tickets: int
    revenue: Decimal


class SalesReport(BaseModel):
    rows: List[SalesRow]
    total_tickets: int
    total_revenue: Decimal


class DeleteMovieResponse(BaseModel):
    movie_id: int
    cancelled_bookings: int
