"""
Service interfaces shared by the two data-access backends.

``services.orm`` implements them with SQLModel ORM queries and the session's
unit of work; ``services.sql`` issues hand-written SQL through ``text()``.
Both work on the request's session, so a request never holds more than one
connection. Validation, pricing and rating rules come from ``validation`` and
``pricing`` so the backends differ only in how they talk to the database.
"""
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlmodel import Session

import schemas

logger = logging.getLogger(__name__)


@contextmanager
def atomic(session: Session, operation: str) -> Iterator[Session]:
    """Commit on success; roll back and re-raise on any exception."""
    try:
        yield session
        session.commit()
    except Exception:
        logger.warning("%s failed, rolling back", operation, exc_info=True)
        session.rollback()
        raise


class SessionService:
    backend = "base"

    def __init__(self, session: Session):
        self.session = session


class AuthenticationService(SessionService, ABC):
    @abstractmethod
    def login(self, cnic: str, password: str) -> schemas.LoginResult: ...

    @abstractmethod
    def validate_cnic_format(self, cnic: str) -> bool: ...

    @abstractmethod
    def generate_password_hash(self, password: str) -> str: ...


class CitizenService(SessionService, ABC):
    @abstractmethod
    def register_citizen(self, dto: schemas.CitizenRegistration) -> str: ...

    @abstractmethod
    def create_waste_listing(self, dto: schemas.ListingCreate) -> int: ...

    @abstractmethod
    def get_my_listings(self, citizen_id: str) -> List[schemas.ListingRead]: ...

    @abstractmethod
    def cancel_listing(self, listing_id: int, citizen_id: str) -> bool: ...

    @abstractmethod
    def calculate_price(self, category_id: int, weight: Decimal) -> Decimal: ...

    @abstractmethod
    def get_price_estimate(self, category_id: int, weight: Decimal) -> schemas.PriceEstimate: ...

    @abstractmethod
    def get_my_transactions(self, citizen_id: str) -> List[schemas.TransactionRead]: ...

    @abstractmethod
    def get_my_profile(self, citizen_id: str) -> Optional[schemas.CitizenProfile]: ...

    @abstractmethod
    def get_areas(self) -> List[schemas.AreaRead]: ...

    @abstractmethod
    def get_active_categories(self) -> List[schemas.CategoryRead]: ...

    @abstractmethod
    def file_complaint(self, dto: schemas.ComplaintCreate) -> int: ...


class OperatorService(SessionService, ABC):
    HISTORY_LIMIT = 100

    @abstractmethod
    def get_operator_details(self, operator_id: str) -> Optional[schemas.OperatorDetails]: ...

    @abstractmethod
    def get_my_collection_points(self, operator_id: str) -> List[schemas.CollectionPoint]: ...

    @abstractmethod
    def collect_waste(self, dto: schemas.CollectionCreate) -> schemas.CollectionResult: ...

    @abstractmethod
    def deposit_waste(self, dto: schemas.WarehouseDeposit) -> bool: ...

    @abstractmethod
    def get_my_collection_history(self, operator_id: str) -> List[schemas.CollectionRead]: ...

    @abstractmethod
    def get_my_performance(self, operator_id: str) -> Optional[schemas.OperatorPerformance]: ...

    @abstractmethod
    def get_my_complaints(self, operator_id: str) -> List[schemas.ActiveComplaint]: ...

    @abstractmethod
    def update_complaint_status(self, complaint_id: int, new_status: str) -> bool: ...


class GovernmentService(SessionService, ABC):
    # warehouses
    @abstractmethod
    def get_warehouse_inventory(self, warehouse_id: Optional[int] = None) -> List[schemas.WarehouseInventory]: ...

    @abstractmethod
    def get_all_warehouses(self) -> List[schemas.WarehouseRead]: ...

    @abstractmethod
    def get_warehouse_stock(self, warehouse_id: Optional[int] = None) -> List[schemas.WarehouseStockRead]: ...

    @abstractmethod
    def create_warehouse(self, dto: schemas.WarehouseCreate) -> int: ...

    # reports
    @abstractmethod
    def analyze_high_yield_areas(
        self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> List[schemas.HighYieldArea]: ...

    @abstractmethod
    def get_operator_performance_report(self) -> List[schemas.OperatorPerformanceReport]: ...

    @abstractmethod
    def get_transaction_summaries(self) -> List[schemas.TransactionSummary]: ...

    # categories
    @abstractmethod
    def get_all_categories(self) -> List[schemas.CategoryRead]: ...

    @abstractmethod
    def create_category(self, dto: schemas.CategoryCreate) -> int: ...

    @abstractmethod
    def update_category_price(self, category_id: int, new_price: Decimal) -> bool: ...

    @abstractmethod
    def delete_category(self, category_id: int) -> bool: ...

    # operators
    @abstractmethod
    def create_operator(self, dto: schemas.OperatorCreate) -> schemas.OperatorCreated: ...

    @abstractmethod
    def assign_operator_to_route(self, operator_id: str, route_id: int, warehouse_id: int) -> bool: ...

    @abstractmethod
    def deactivate_operator(self, operator_id: str) -> bool: ...

    @abstractmethod
    def get_all_operators(self) -> List[schemas.OperatorRead]: ...

    # complaints
    @abstractmethod
    def get_all_complaints(self, status: Optional[str] = None) -> List[schemas.ComplaintRead]: ...

    @abstractmethod
    def update_complaint_status(self, complaint_id: int, new_status: str) -> bool: ...

    # routes & areas
    @abstractmethod
    def get_all_routes(self) -> List[schemas.RouteRead]: ...

    @abstractmethod
    def get_all_areas(self) -> List[schemas.AreaRead]: ...

    @abstractmethod
    def create_area(self, dto: schemas.AreaCreate) -> int: ...

    @abstractmethod
    def create_route(self, dto: schemas.RouteCreate) -> int: ...
