from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Cinema Booking Ledger"
    LOG_LEVEL: str = "INFO"

    # Flat-file storage (users.txt, movies.txt, bookings.txt, seats.txt)
    DATA_DIR: Path = Path("data")

    # Default seat grid for every new (movie, date)
    SEAT_ROWS: str = "ABCDEFGH"
    SEATS_PER_ROW: int = 10

    # Seeded on startup when no admin exists
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"

    model_config = SettingsConfigDict(
        env_prefix="CINEMA_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
