# cinema_ledger/main.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .config import Settings, settings as default_settings
from .errors import BookingError, MovieInUse
from .schemas import (
    # Movie / Schedule
    MovieCreate, MovieUpdate, Movie, Schedule, DeleteMovieResponse,
    # Booking
    BookingCreate, BookingUpdate, Booking,
    # Seats & reports
    SeatCreate, SeatLayout, SalesReport,
    # Users
    RegisterRequest, User, UserOut,
)
from .service import BookingService

logger = logging.getLogger(__name__)

security = HTTPBasic()
router = APIRouter()


# =========================
#       DEPENDENCIES
# =========================

def get_service(request: Request) -> BookingService:
    return request.app.state.service


def current_user(
    credentials: HTTPBasicCredentials = Depends(security),
    service: BookingService = Depends(get_service),
) -> User:
    user = service.authenticate(credentials.username, credentials.password)
    if user is None:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid username or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return user


def require_admin(user: User = Depends(current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin access required")
    return user


def _user_out(user: User) -> UserOut:
    return UserOut(username=user.username, role=user.role, display_name=user.display_name)


# =========================
#          AUTH
# =========================

@router.post("/auth/register", response_model=UserOut, status_code=201, tags=["Auth"])
def register(data: RegisterRequest, service: BookingService = Depends(get_service)):
    return _user_out(service.register(data.username, data.password, data.display_name))

@router.get("/auth/me", response_model=UserOut, tags=["Auth"])
def me(user: User = Depends(current_user)):
    return _user_out(user)


# =========================
#         ADMIN
# =========================

@router.post("/admin/movies", response_model=Movie, status_code=201, tags=["Admin"])
def create_movie(
    data: MovieCreate,
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    return service.add_movie(data.title, data.genre, data.price, data.schedules)

@router.put("/admin/movies/{movie_id}", response_model=Movie, tags=["Admin"])
def update_movie(
    movie_id: int,
    data: MovieUpdate,
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    return service.edit_movie(movie_id, data.title, data.genre, data.price)

@router.delete("/admin/movies/{movie_id}", response_model=DeleteMovieResponse, tags=["Admin"])
def delete_movie(
    movie_id: int,
    confirm: bool = False,
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    cancelled = service.delete_movie(movie_id, confirm=confirm)
    return DeleteMovieResponse(movie_id=movie_id, cancelled_bookings=cancelled)

@router.post("/admin/movies/{movie_id}/schedules", response_model=Movie, status_code=201, tags=["Admin"])
def add_schedule(
    movie_id: int,
    data: Schedule,
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    return service.add_schedule(movie_id, data)

# index is the 0-based position in the movie's schedule list
@router.delete("/admin/movies/{movie_id}/schedules/{index}", response_model=Schedule, tags=["Admin"])
def remove_schedule(
    movie_id: int,
    index: int,
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    return service.remove_schedule(movie_id, index)

@router.post("/admin/movies/{movie_id}/seats", response_model=SeatLayout, status_code=201, tags=["Admin"])
def add_seat(
    movie_id: int,
    data: SeatCreate,
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    service.add_seat(movie_id, data.date, data.seat)
    return service.seat_layout(movie_id, data.date)

@router.delete("/admin/movies/{movie_id}/seats/{seat}", response_model=SeatLayout, tags=["Admin"])
def remove_seat(
    movie_id: int,
    seat: str,
    date: str,
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    service.remove_seat(movie_id, date, seat)
    return service.seat_layout(movie_id, date)

@router.get("/admin/bookings", response_model=List[Booking], tags=["Admin"])
def list_all_bookings(
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    return service.list_all_bookings()

@router.get("/admin/reports/sales", response_model=SalesReport, tags=["Admin"])
def sales_report(
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_service),
):
    return service.sales_report()


# =========================
#          USER
# =========================

@router.get("/movies", response_model=List[Movie], tags=["User"])
def list_movies(service: BookingService = Depends(get_service)):
    return service.list_movies()

@router.get("/movies/{movie_id}", response_model=Movie, tags=["User"])
def get_movie(movie_id: int, service: BookingService = Depends(get_service)):
    return service.get_movie(movie_id)

@router.get("/movies/{movie_id}/schedules", response_model=List[Schedule], tags=["User"])
def list_schedules(movie_id: int, service: BookingService = Depends(get_service)):
    return service.list_schedules_for(movie_id)

@router.get("/movies/{movie_id}/seats", response_model=SeatLayout, tags=["User"])
def get_seats(movie_id: int, date: str, service: BookingService = Depends(get_service)):
    return service.seat_layout(movie_id, date)

# -------- Bookings --------
@router.post("/bookings", response_model=Booking, status_code=201, tags=["User"])
def create_booking(
    data: BookingCreate,
    user: User = Depends(current_user),
    service: BookingService = Depends(get_service),
):
    return service.create_booking(user.username, data.movie_id, data.schedule, data.seat, data.payment_mode)

@router.get("/bookings", response_model=List[Booking], tags=["User"])
def my_bookings(
    user: User = Depends(current_user),
    service: BookingService = Depends(get_service),
):
    return service.list_bookings_for(user.username)

@router.get("/bookings/{booking_id}", response_model=Booking, tags=["User"])
def get_booking(
    booking_id: int,
    user: User = Depends(current_user),
    service: BookingService = Depends(get_service),
):
    return service.get_booking(booking_id, customer=user.username)

@router.put("/bookings/{booking_id}", response_model=Booking, tags=["User"])
def edit_booking(
    booking_id: int,
    data: BookingUpdate,
    user: User = Depends(current_user),
    service: BookingService = Depends(get_service),
):
    return service.edit_booking(
        booking_id,
        new_schedule=data.schedule,
        new_seat=data.seat,
        new_payment_mode=data.payment_mode,
        customer=user.username,
    )

@router.delete("/bookings/{booking_id}", response_model=Booking, tags=["User"])
def cancel_booking(
    booking_id: int,
    user: User = Depends(current_user),
    service: BookingService = Depends(get_service),
):
    return service.cancel_booking(booking_id, customer=user.username)


# =========================
#          APP
# =========================

async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    content = {"detail": exc.message}
    if isinstance(exc, MovieInUse):
        content["booking_count"] = exc.booking_count
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[BookingService] = None,
) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(level=settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: load flat files and make sure an admin can log in
        svc = service or BookingService.from_settings(settings)
        if service is None:
            svc.load()
        svc.ensure_admin(settings.DEFAULT_ADMIN_USERNAME, settings.DEFAULT_ADMIN_PASSWORD)
        app.state.service = svc
        yield

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=(
            "Booking ledger for a small cinema: movies, schedules, seat maps "
            "and bookings, persisted to flat files after every change."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(BookingError, booking_error_handler)
    app.include_router(router)
    return app


app = create_app()
