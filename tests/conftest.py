from decimal import Decimal

import pytest

from cinema_ledger.schemas import Schedule
from cinema_ledger.service import BookingService
from cinema_ledger.storage import PersistenceGateway

SHOW = Schedule(date="2025-06-01", time="18:00")


@pytest.fixture
def service() -> BookingService:
    """In-memory service, nothing written to disk."""
    return BookingService()


@pytest.fixture
def gateway(tmp_path) -> PersistenceGateway:
    return PersistenceGateway(tmp_path)


@pytest.fixture
def stored_service(gateway) -> BookingService:
    svc = BookingService(gateway)
    svc.load()
    return svc


@pytest.fixture
def inception(service):
    return service.add_movie("Inception", "Sci-Fi", Decimal("12.50"), [SHOW])
