import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlmodel import select

import pricing
from errors import ConflictError
from models import (
    Area,
    Category,
    Citizen,
    Collection,
    Complaint,
    ComplaintStatus,
    ListingStatus,
    Operator,
    OperatorStatus,
    Role,
    Route,
    TransactionRecord,
    User,
    Warehouse,
    WarehouseStock,
    WasteListing,
)
from schemas import (
    AreaCreate,
    AreaRead,
    CategoryCreate,
    CategoryRead,
    ComplaintRead,
    HighYieldArea,
    OperatorCreate,
    OperatorCreated,
    OperatorPerformanceReport,
    OperatorRead,
    RouteCreate,
    RouteRead,
    TransactionSummary,
    WarehouseCreate,
    WarehouseInventory,
    WarehouseRead,
    WarehouseStockRead,
    capacity_figures,
)
from security import generate_temporary_password, hash_password
from services.base import GovernmentService, atomic
from validation import require_cnic, require_phone, require_price, require_status, require_text

logger = logging.getLogger(__name__)


class OrmGovernmentService(GovernmentService):
    backend = "orm"

    # ============================================
    # Warehouses
    # ============================================

    def get_warehouse_inventory(self, warehouse_id: Optional[int] = None) -> List[WarehouseInventory]:
        category_count = (
            select(func.count())
            .where(WarehouseStock.warehouse_id == Warehouse.warehouse_id)
            .correlate(Warehouse)
            .scalar_subquery()
        )
        statement = (
            select(Warehouse, Area, category_count)
            .join(Area, Area.area_id == Warehouse.area_id)
            .order_by(Warehouse.warehouse_name, Warehouse.warehouse_id)
        )
        if warehouse_id is not None:
            statement = statement.where(Warehouse.warehouse_id == warehouse_id)

        inventory = []
        for warehouse, area, count in self.session.exec(statement).all():
            used, available = capacity_figures(warehouse.capacity, warehouse.current_inventory)
            inventory.append(
                WarehouseInventory(
                    warehouse_id=warehouse.warehouse_id,
                    warehouse_name=warehouse.warehouse_name,
                    area_name=area.area_name,
                    city=area.city,
                    capacity=warehouse.capacity,
                    current_inventory=warehouse.current_inventory,
                    capacity_used_percent=used,
                    available_capacity=available,
                    category_count=count,
                )
            )
        return inventory

    def get_all_warehouses(self) -> List[WarehouseRead]:
        rows = self.session.exec(
            select(Warehouse, Area.area_name)
            .join(Area, Area.area_id == Warehouse.area_id)
            .order_by(Warehouse.warehouse_name, Warehouse.warehouse_id)
        ).all()
        return [
            WarehouseRead.model_validate(warehouse).model_copy(update={"area_name": area_name})
            for warehouse, area_name in rows
        ]

    def get_warehouse_stock(self, warehouse_id: Optional[int] = None) -> List[WarehouseStockRead]:
        statement = (
            select(WarehouseStock, Category.category_name)
            .join(Category, Category.category_id == WarehouseStock.category_id)
            .order_by(WarehouseStock.warehouse_id, Category.category_name)
        )
        if warehouse_id is not None:
            statement = statement.where(WarehouseStock.warehouse_id == warehouse_id)
        return [
            WarehouseStockRead(
                warehouse_id=stock.warehouse_id,
                category_id=stock.category_id,
                category_name=category_name,
                current_weight=stock.current_weight,
                last_updated=stock.last_updated,
            )
            for stock, category_name in self.session.exec(statement).all()
        ]

    def create_warehouse(self, dto: WarehouseCreate) -> int:
        warehouse = Warehouse(
            warehouse_name=require_text(dto.warehouse_name, "Warehouse name"),
            area_id=dto.area_id,
            address=require_text(dto.address, "Address"),
            capacity=dto.capacity,
            current_inventory=0,
        )
        with atomic(self.session, "create_warehouse"):
            self.session.add(warehouse)
            self.session.flush()
            warehouse_id = warehouse.warehouse_id
        logger.info("Created warehouse %s", warehouse_id)
        return warehouse_id

    # ============================================
    # Reports
    # ============================================

    def analyze_high_yield_areas(
        self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> List[HighYieldArea]:
        revenue = func.coalesce(func.sum(WasteListing.estimated_price), 0)
        revenue_rank = func.rank().over(order_by=revenue.desc())
        statement = (
            select(
                Area.area_id,
                Area.area_name,
                Area.city,
                func.count(WasteListing.listing_id),
                func.coalesce(func.sum(WasteListing.weight), 0),
                revenue,
                revenue_rank,
            )
            .select_from(WasteListing)
            .join(Citizen, Citizen.citizen_id == WasteListing.citizen_id)
            .join(Area, Area.area_id == Citizen.area_id)
            .where(WasteListing.status.in_((ListingStatus.COLLECTED, ListingStatus.COMPLETED)))
            .group_by(Area.area_id, Area.area_name, Area.city)
        )
        if start_date is not None:
            statement = statement.where(WasteListing.created_at >= start_date)
        if end_date is not None:
            statement = statement.where(WasteListing.created_at <= end_date)
        statement = statement.order_by(revenue_rank, Area.area_id)

        return [
            HighYieldArea(
                area_id=area_id,
                area_name=area_name,
                city=city,
                total_listings=listings,
                total_weight=pricing.to_money(weight),
                total_revenue=pricing.to_money(total),
                revenue_rank=rank,
            )
            for area_id, area_name, city, listings, weight, total, rank in self.session.exec(statement).all()
        ]

    def get_operator_performance_report(self) -> List[OperatorPerformanceReport]:
        collections = (
            select(
                Collection.operator_id,
                func.count(Collection.collection_id).label("total"),
                func.sum(Collection.collected_weight).label("weight"),
            )
            .group_by(Collection.operator_id)
            .subquery()
        )
        complaints = (
            select(Complaint.operator_id, func.count(Complaint.complaint_id).label("total"))
            .where(Complaint.operator_id.is_not(None))
            .group_by(Complaint.operator_id)
            .subquery()
        )
        rows = self.session.exec(
            select(
                Operator.operator_id,
                Operator.full_name,
                func.coalesce(collections.c.total, 0),
                func.coalesce(collections.c.weight, 0),
                func.coalesce(complaints.c.total, 0),
            )
            .outerjoin(collections, collections.c.operator_id == Operator.operator_id)
            .outerjoin(complaints, complaints.c.operator_id == Operator.operator_id)
            .order_by(Operator.full_name, Operator.operator_id)
        ).all()
        return [
            OperatorPerformanceReport(
                operator_id=operator_id,
                full_name=full_name,
                total_collections=total,
                total_weight_kg=pricing.to_money(weight),
                complaints=complaint_count,
                rating=pricing.performance_rating(total, complaint_count),
            )
            for operator_id, full_name, total, weight, complaint_count in rows
        ]

    def get_transaction_summaries(self) -> List[TransactionSummary]:
        items = (
            select(
                WasteListing.transaction_id,
                func.count(WasteListing.listing_id).label("item_count"),
                func.sum(WasteListing.weight).label("total_weight"),
            )
            .where(WasteListing.transaction_id.is_not(None))
            .group_by(WasteListing.transaction_id)
            .subquery()
        )
        rows = self.session.exec(
            select(
                TransactionRecord,
                Citizen.full_name,
                Operator.full_name,
                func.coalesce(items.c.item_count, 0),
                func.coalesce(items.c.total_weight, 0),
            )
            .join(Citizen, Citizen.citizen_id == TransactionRecord.citizen_id)
            .outerjoin(Operator, Operator.operator_id == TransactionRecord.operator_id)
            .outerjoin(items, items.c.transaction_id == TransactionRecord.transaction_id)
            .order_by(TransactionRecord.transaction_date.desc(), TransactionRecord.transaction_id.desc())
        ).all()
        return [
            TransactionSummary(
                transaction_id=record.transaction_id,
                citizen_name=citizen_name,
                total_amount=record.total_amount,
                payment_status=record.payment_status,
                transaction_date=record.transaction_date,
                item_count=item_count,
                total_weight=pricing.to_money(weight),
                operator_name=operator_name,
            )
            for record, citizen_name, operator_name, item_count, weight in rows
        ]

    # ============================================
    # Categories
    # ============================================

    def get_all_categories(self) -> List[CategoryRead]:
        categories = self.session.exec(select(Category).order_by(Category.category_name)).all()
        return [CategoryRead.model_validate(category) for category in categories]

    def create_category(self, dto: CategoryCreate) -> int:
        category = Category(
            category_name=require_text(dto.category_name, "Category name"),
            base_price_per_kg=pricing.to_money(require_price(dto.base_price_per_kg)),
            description=dto.description,
        )
        with atomic(self.session, "create_category"):
            self.session.add(category)
            self.session.flush()
            category_id = category.category_id
        logger.info("Created category %s (%s)", category_id, category.category_name)
        return category_id

    def update_category_price(self, category_id: int, new_price: Decimal) -> bool:
        price = pricing.to_money(require_price(new_price))
        category = self.session.get(Category, category_id)
        if category is None:
            return False

        with atomic(self.session, "update_category_price"):
            category.base_price_per_kg = price
            self.session.add(category)
            pending = self.session.exec(
                select(WasteListing).where(
                    WasteListing.category_id == category_id,
                    WasteListing.status == ListingStatus.PENDING,
                )
            ).all()
            for listing in pending:
                listing.estimated_price = pricing.estimate_price(listing.weight, price)
                self.session.add(listing)

        logger.info("Category %s price set to %s; %d pending listings repriced", category_id, price, len(pending))
        return True

    def delete_category(self, category_id: int) -> bool:
        category = self.session.get(Category, category_id)
        if category is None:
            return False

        listings = self.session.exec(
            select(func.count()).select_from(WasteListing).where(WasteListing.category_id == category_id)
        ).one()
        stock = self.session.exec(
            select(func.count()).select_from(WarehouseStock).where(WarehouseStock.category_id == category_id)
        ).one()
        if listings or stock:
            logger.info("Category %s is in use and cannot be deleted", category_id)
            return False

        with atomic(self.session, "delete_category"):
            self.session.delete(category)
        logger.info("Deleted category %s", category_id)
        return True

    # ============================================
    # Operators
    # ============================================

    def create_operator(self, dto: OperatorCreate) -> OperatorCreated:
        cnic = require_cnic(dto.cnic)
        full_name = require_text(dto.full_name, "Full name")
        phone = require_phone(dto.phone_number) or ""
        temporary_password = generate_temporary_password()

        with atomic(self.session, "create_operator"):
            if self.session.get(User, cnic) is not None:
                raise ConflictError("User with this CNIC already exists")

            self.session.add(
                User(user_id=cnic, password_hash=hash_password(temporary_password), role_id=Role.OPERATOR)
            )
            self.session.flush()
            self.session.add(
                Operator(
                    operator_id=cnic,
                    full_name=full_name,
                    phone_number=phone,
                    route_id=dto.route_id,
                    warehouse_id=dto.warehouse_id,
                    status=OperatorStatus.AVAILABLE,
                )
            )

        logger.info("Created operator %s", cnic)
        return OperatorCreated(operator_id=cnic, temporary_password=temporary_password)

    def assign_operator_to_route(self, operator_id: str, route_id: int, warehouse_id: int) -> bool:
        op = self.session.get(Operator, operator_id)
        if op is None:
            return False
        if self.session.get(Route, route_id) is None or self.session.get(Warehouse, warehouse_id) is None:
            logger.info("Cannot assign %s: route %s or warehouse %s missing", operator_id, route_id, warehouse_id)
            return False

        with atomic(self.session, "assign_operator_to_route"):
            op.route_id = route_id
            op.warehouse_id = warehouse_id
            self.session.add(op)
        logger.info("Assigned operator %s to route %s, warehouse %s", operator_id, route_id, warehouse_id)
        return True

    def deactivate_operator(self, operator_id: str) -> bool:
        op = self.session.get(Operator, operator_id)
        if op is None:
            return False

        with atomic(self.session, "deactivate_operator"):
            op.status = OperatorStatus.OFFLINE
            op.route_id = None
            op.warehouse_id = None
            self.session.add(op)
        logger.info("Deactivated operator %s", operator_id)
        return True

    def get_all_operators(self) -> List[OperatorRead]:
        rows = self.session.exec(
            select(Operator, Route.route_name, Warehouse.warehouse_name)
            .outerjoin(Route, Route.route_id == Operator.route_id)
            .outerjoin(Warehouse, Warehouse.warehouse_id == Operator.warehouse_id)
            .order_by(Operator.full_name, Operator.operator_id)
        ).all()
        return [
            OperatorRead.model_validate(op).model_copy(update={"route_name": route_name, "warehouse_name": warehouse_name})
            for op, route_name, warehouse_name in rows
        ]

    # ============================================
    # Complaints
    # ============================================

    def get_all_complaints(self, status: Optional[str] = None) -> List[ComplaintRead]:
        statement = (
            select(Complaint, Citizen.full_name, Operator.full_name)
            .outerjoin(Citizen, Citizen.citizen_id == Complaint.citizen_id)
            .outerjoin(Operator, Operator.operator_id == Complaint.operator_id)
            .order_by(Complaint.created_at.desc(), Complaint.complaint_id.desc())
        )
        if status:
            statement = statement.where(Complaint.status == status)
        return [
            ComplaintRead.model_validate(complaint).model_copy(
                update={"citizen_name": citizen_name, "operator_name": operator_name}
            )
            for complaint, citizen_name, operator_name in self.session.exec(statement).all()
        ]

    def update_complaint_status(self, complaint_id: int, new_status: str) -> bool:
        require_status(new_status, ComplaintStatus.ALL)
        complaint = self.session.get(Complaint, complaint_id)
        if complaint is None:
            return False

        with atomic(self.session, "update_complaint_status"):
            complaint.status = new_status
            self.session.add(complaint)
        logger.info("Complaint %s set to %s", complaint_id, new_status)
        return True

    # ============================================
    # Routes & areas
    # ============================================

    def get_all_routes(self) -> List[RouteRead]:
        rows = self.session.exec(
            select(Route, Area.area_name)
            .join(Area, Area.area_id == Route.area_id)
            .order_by(Route.route_name, Route.route_id)
        ).all()
        return [RouteRead.model_validate(route).model_copy(update={"area_name": area_name}) for route, area_name in rows]

    def get_all_areas(self) -> List[AreaRead]:
        areas = self.session.exec(select(Area).order_by(Area.city, Area.area_name)).all()
        return [AreaRead.model_validate(area) for area in areas]

    def create_area(self, dto: AreaCreate) -> int:
        area = Area(area_name=require_text(dto.area_name, "Area name"), city=require_text(dto.city, "City"))
        with atomic(self.session, "create_area"):
            self.session.add(area)
            self.session.flush()
            area_id = area.area_id
        logger.info("Created area %s", area_id)
        return area_id

    def create_route(self, dto: RouteCreate) -> int:
        route = Route(route_name=require_text(dto.route_name, "Route name"), area_id=dto.area_id)
        with atomic(self.session, "create_route"):
            self.session.add(route)
            self.session.flush()
            route_id = route.route_id
        logger.info("Created route %s", route_id)
        return route_id
