from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from models import utcnow


def to_wire_name(field_name: str) -> str:
    """listing_id -> listingID, base_price_per_kg -> basePricePerKg"""
    camel = to_camel(field_name)
    if camel.endswith("Id"):
        camel = camel[:-2] + "ID"
    return camel


# decimal(10,2) columns travel as JSON numbers
JsonDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_wire_name,
        populate_by_name=True,
        from_attributes=True,
    )


def capacity_figures(capacity: float, current_inventory: float) -> tuple[float, float]:
    """(percent of capacity used, capacity still available)"""
    used = round(current_inventory / capacity * 100, 2) if capacity else 0.0
    return used, capacity - current_inventory


def days_since(moment: datetime) -> int:
    return max((utcnow() - moment).days, 0)


# ============================================
# Authentication
# ============================================


class LoginRequest(WireModel):
    cnic: str
    password: str


class LoginResult(WireModel):
    success: bool
    message: str = ""
    user_id: Optional[str] = None
    role_id: Optional[int] = None
    role_name: Optional[str] = None
    citizen_id: Optional[str] = None
    operator_id: Optional[str] = None


# ============================================
# Citizen
# ============================================


class CitizenRegistration(WireModel):
    cnic: str
    full_name: str
    phone_number: Optional[str] = None
    area_id: int
    address: Optional[str] = None
    password: str = Field(min_length=1)


class ListingCreate(WireModel):
    citizen_id: str
    category_id: int
    weight: Decimal


class CancelListingRequest(WireModel):
    citizen_id: str


class PriceEstimateRequest(WireModel):
    category_id: int
    weight: Decimal


class ComplaintCreate(WireModel):
    citizen_id: str
    operator_id: Optional[str] = None
    complaint_type: str
    description: str


class PriceEstimate(WireModel):
    category_id: int
    category_name: str
    weight: JsonDecimal
    estimated_price: JsonDecimal
    base_price_per_kg: JsonDecimal


class ListingRead(WireModel):
    listing_id: int
    created_at: datetime
    citizen_id: str
    category_id: int
    category_name: str = ""
    weight: JsonDecimal
    status: str
    estimated_price: Optional[JsonDecimal] = None
    transaction_id: Optional[int] = None


class TransactionRead(WireModel):
    transaction_id: int
    transaction_date: datetime
    citizen_id: str
    operator_id: Optional[str] = None
    total_amount: JsonDecimal
    payment_status: str
    payment_method: Optional[str] = None
    verification_code: Optional[str] = None


class CitizenProfile(WireModel):
    citizen_id: str
    full_name: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    area_id: int
    area_name: str
    city: str
    member_since: datetime


# ============================================
# Reference data
# ============================================


class AreaCreate(WireModel):
    area_name: str
    city: str


class AreaRead(WireModel):
    area_id: int
    area_name: str
    city: str


class CategoryCreate(WireModel):
    category_name: str
    base_price_per_kg: Decimal
    description: Optional[str] = None


class CategoryPriceUpdate(WireModel):
    new_price: Decimal


class CategoryRead(WireModel):
    category_id: int
    category_name: str
    base_price_per_kg: JsonDecimal
    description: Optional[str] = None


class RouteCreate(WireModel):
    route_name: str
    area_id: int


class RouteRead(WireModel):
    route_id: int
    route_name: str
    area_id: int
    area_name: Optional[str] = None


class WarehouseCreate(WireModel):
    warehouse_name: str
    area_id: int
    address: str
    capacity: float = Field(gt=0)


class WarehouseRead(WireModel):
    warehouse_id: int
    warehouse_name: str
    area_id: int
    area_name: Optional[str] = None
    address: str
    capacity: float
    current_inventory: float


# ============================================
# Operator
# ============================================


class OperatorRead(WireModel):
    operator_id: str
    full_name: str
    phone_number: str
    route_id: Optional[int] = None
    route_name: Optional[str] = None
    warehouse_id: Optional[int] = None
    warehouse_name: Optional[str] = None
    status: str


class OperatorDetails(OperatorRead):
    route: Optional[RouteRead] = None
    warehouse: Optional[WarehouseRead] = None


class CollectionPoint(WireModel):
    operator_id: str
    operator_name: str
    route_id: Optional[int] = None
    route_name: Optional[str] = None
    listing_id: int
    citizen_id: str
    citizen_name: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    area_name: str
    category_name: str
    weight: JsonDecimal
    estimated_price: Optional[JsonDecimal] = None
    status: str
    verification_code: Optional[str] = None


class CollectionCreate(WireModel):
    operator_id: str
    listing_id: int
    collected_weight: Decimal
    warehouse_id: int


class CollectionResult(WireModel):
    success: bool
    collection_id: int
    transaction_id: Optional[int] = None
    payment_amount: Optional[JsonDecimal] = None
    verification_code: Optional[str] = None
    message: str


class CollectionRead(WireModel):
    collection_id: int
    collected_date: datetime
    operator_id: str
    listing_id: int
    warehouse_id: int
    warehouse_name: Optional[str] = None
    collected_weight: JsonDecimal
    photo_proof: Optional[str] = None
    is_verified: bool


class WarehouseDeposit(WireModel):
    warehouse_id: int
    category_id: int
    quantity: Decimal = Field(gt=0)


class OperatorPerformance(WireModel):
    operator_id: str
    full_name: str
    phone_number: str
    route_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    total_pickups: int
    total_collected_weight: JsonDecimal
    total_collected_amount: JsonDecimal


class ComplaintStatusUpdate(WireModel):
    complaint_id: int
    status: str


class ActiveComplaint(WireModel):
    complaint_id: int
    complaint_type: str
    description: str
    status: str
    created_at: datetime
    citizen_id: str
    citizen_name: str
    phone_number: Optional[str] = None
    operator_id: Optional[str] = None
    operator_name: Optional[str] = None
    route_name: Optional[str] = None
    area_name: str
    days_open: int


# ============================================
# Government
# ============================================


class OperatorCreate(WireModel):
    cnic: str
    full_name: str
    phone_number: Optional[str] = None
    route_id: Optional[int] = None
    warehouse_id: Optional[int] = None


class OperatorCreated(WireModel):
    operator_id: str
    temporary_password: str


class OperatorAssignment(WireModel):
    route_id: int
    warehouse_id: int


class ComplaintStatusChange(WireModel):
    new_status: str


class ComplaintRead(WireModel):
    complaint_id: int
    citizen_id: str
    citizen_name: Optional[str] = None
    operator_id: Optional[str] = None
    operator_name: Optional[str] = None
    complaint_type: str
    description: str
    status: str
    created_at: datetime


class WarehouseInventory(WireModel):
    warehouse_id: int
    warehouse_name: str
    area_name: str
    city: str
    capacity: float
    current_inventory: float
    capacity_used_percent: float
    available_capacity: float
    category_count: int


class WarehouseStockRead(WireModel):
    warehouse_id: int
    category_id: int
    category_name: str
    current_weight: float
    last_updated: datetime


class HighYieldArea(WireModel):
    area_id: int
    area_name: str
    city: str
    total_listings: int
    total_weight: JsonDecimal
    total_revenue: JsonDecimal
    revenue_rank: int


class OperatorPerformanceReport(WireModel):
    operator_id: str
    full_name: str
    total_collections: int
    total_weight_kg: JsonDecimal
    complaints: int
    rating: str


class TransactionSummary(WireModel):
    transaction_id: int
    citizen_name: str
    total_amount: JsonDecimal
    payment_status: str
    transaction_date: datetime
    item_count: int
    total_weight: JsonDecimal
    operator_name: Optional[str] = None
