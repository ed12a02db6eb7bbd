from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp; columns are timestamp without time zone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role:
    GOVERNMENT = 1
    CITIZEN = 2
    OPERATOR = 3

    NAMES = {GOVERNMENT: "Government", CITIZEN: "Citizen", OPERATOR: "Operator"}


class ListingStatus:
    PENDING = "Pending"
    COLLECTED = "Collected"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class OperatorStatus:
    AVAILABLE = "Available"
    BUSY = "Busy"
    OFFLINE = "Offline"


class ComplaintStatus:
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    ALL = (OPEN, IN_PROGRESS, RESOLVED, CLOSED)
    ACTIVE = (OPEN, IN_PROGRESS)
    OPERATOR_SETTABLE = (IN_PROGRESS, RESOLVED)


class PaymentStatus:
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"


class UserRole(SQLModel, table=True):
    __tablename__ = "user_role"

    role_id: Optional[int] = Field(default=None, primary_key=True)
    role_name: str = Field(max_length=50)


class User(SQLModel, table=True):
    __tablename__ = "users"

    user_id: str = Field(primary_key=True, max_length=15)  # CNIC: 12345-1234567-1
    password_hash: str = Field(max_length=255)
    role_id: int = Field(foreign_key="user_role.role_id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())


class Area(SQLModel, table=True):
    area_id: Optional[int] = Field(default=None, primary_key=True)
    area_name: str = Field(max_length=255)
    city: str = Field(max_length=100)


class Category(SQLModel, table=True):
    category_id: Optional[int] = Field(default=None, primary_key=True)
    category_name: str = Field(max_length=255)
    base_price_per_kg: Decimal = Field(max_digits=10, decimal_places=2)
    description: Optional[str] = None


class Citizen(SQLModel, table=True):
    citizen_id: str = Field(primary_key=True, foreign_key="users.user_id", max_length=15)
    full_name: str = Field(max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    area_id: int = Field(foreign_key="area.area_id")
    address: Optional[str] = Field(default=None, max_length=500)


class Route(SQLModel, table=True):
    route_id: Optional[int] = Field(default=None, primary_key=True)
    route_name: str = Field(max_length=255)
    area_id: int = Field(foreign_key="area.area_id")


class Warehouse(SQLModel, table=True):
    warehouse_id: Optional[int] = Field(default=None, primary_key=True)
    warehouse_name: str = Field(max_length=255)
    area_id: int = Field(foreign_key="area.area_id")
    address: str = Field(max_length=500)
    capacity: float
    current_inventory: float = 0


class Operator(SQLModel, table=True):
    operator_id: str = Field(primary_key=True, foreign_key="users.user_id", max_length=15)
    full_name: str = Field(max_length=255)
    phone_number: str = Field(default="", max_length=50)
    route_id: Optional[int] = Field(default=None, foreign_key="route.route_id")
    warehouse_id: Optional[int] = Field(default=None, foreign_key="warehouse.warehouse_id")
    status: str = Field(default=OperatorStatus.AVAILABLE, max_length=50)


class WarehouseStock(SQLModel, table=True):
    __tablename__ = "warehouse_stock"

    warehouse_id: int = Field(primary_key=True, foreign_key="warehouse.warehouse_id")
    category_id: int = Field(primary_key=True, foreign_key="category.category_id")
    current_weight: float = 0
    last_updated: datetime = Field(default_factory=utcnow, sa_type=DateTime())


# WasteListing, TransactionRecord and Collection are time-partitioned in
# production; their timestamp columns are always set by the application.


class WasteListing(SQLModel, table=True):
    __tablename__ = "waste_listing"

    listing_id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(index=True, sa_type=DateTime())
    citizen_id: str = Field(foreign_key="citizen.citizen_id", index=True, max_length=15)
    category_id: int = Field(foreign_key="category.category_id")

    weight: Decimal = Field(max_digits=10, decimal_places=2)
    status: str = Field(default=ListingStatus.PENDING, max_length=50)  # Pending | Collected | Completed | Cancelled
    estimated_price: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    transaction_id: Optional[int] = None


class TransactionRecord(SQLModel, table=True):
    __tablename__ = "transaction_record"

    transaction_id: Optional[int] = Field(default=None, primary_key=True)
    transaction_date: datetime = Field(index=True, sa_type=DateTime())
    citizen_id: str = Field(foreign_key="citizen.citizen_id", index=True, max_length=15)
    operator_id: Optional[str] = Field(default=None, foreign_key="operator.operator_id", max_length=15)

    total_amount: Decimal = Field(max_digits=10, decimal_places=2)
    payment_status: str = Field(default=PaymentStatus.PENDING, max_length=50)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    verification_code: Optional[str] = Field(default=None, max_length=100)


class Collection(SQLModel, table=True):
    collection_id: Optional[int] = Field(default=None, primary_key=True)
    collected_date: datetime = Field(index=True, sa_type=DateTime())
    operator_id: str = Field(foreign_key="operator.operator_id", index=True, max_length=15)
    listing_id: int = Field(foreign_key="waste_listing.listing_id")
    warehouse_id: int = Field(foreign_key="warehouse.warehouse_id")

    collected_weight: Decimal = Field(max_digits=10, decimal_places=2)
    photo_proof: Optional[str] = Field(default=None, max_length=255)
    is_verified: bool = False


class Complaint(SQLModel, table=True):
    complaint_id: Optional[int] = Field(default=None, primary_key=True)
    citizen_id: str = Field(foreign_key="citizen.citizen_id", max_length=15)
    operator_id: Optional[str] = Field(default=None, foreign_key="operator.operator_id", max_length=15)

    complaint_type: str = Field(max_length=100)
    description: str
    status: str = Field(default=ComplaintStatus.OPEN, max_length=50)  # Open | In Progress | Resolved | Closed
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())
