import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import DateTime

import pricing
from errors import ConflictError
from models import ComplaintStatus, ListingStatus, OperatorStatus, Role, utcnow
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
from services.sql.statements import MONEY, sql
from validation import require_cnic, require_phone, require_price, require_status, require_text

logger = logging.getLogger(__name__)

# ============================================
# Warehouses
# ============================================

WAREHOUSE_INVENTORY = """
    SELECT w.warehouse_id, w.warehouse_name, a.area_name, a.city, w.capacity, w.current_inventory,
           (SELECT COUNT(*) FROM warehouse_stock s WHERE s.warehouse_id = w.warehouse_id) AS category_count
      FROM warehouse w
      JOIN area a ON a.area_id = w.area_id
     {where}
     ORDER BY w.warehouse_name, w.warehouse_id
    """

ALL_WAREHOUSES = sql(
    """
    SELECT w.warehouse_id, w.warehouse_name, w.area_id, a.area_name, w.address,
           w.capacity, w.current_inventory
      FROM warehouse w
      JOIN area a ON a.area_id = w.area_id
     ORDER BY w.warehouse_name, w.warehouse_id
    """
)

WAREHOUSE_STOCK = """
    SELECT s.warehouse_id, s.category_id, c.category_name, s.current_weight, s.last_updated
      FROM warehouse_stock s
      JOIN category c ON c.category_id = s.category_id
     {where}
     ORDER BY s.warehouse_id, c.category_name
    """

INSERT_WAREHOUSE = sql(
    """
    INSERT INTO warehouse (warehouse_name, area_id, address, capacity, current_inventory)
    VALUES (:warehouse_name, :area_id, :address, :capacity, 0)
    RETURNING warehouse_id
    """
)

# ============================================
# Reports
# ============================================

HIGH_YIELD_AREAS = """
    SELECT a.area_id, a.area_name, a.city,
           COUNT(w.listing_id) AS total_listings,
           COALESCE(SUM(w.weight), 0) AS total_weight,
           COALESCE(SUM(w.estimated_price), 0) AS total_revenue,
           RANK() OVER (ORDER BY COALESCE(SUM(w.estimated_price), 0) DESC) AS revenue_rank
      FROM waste_listing w
      JOIN citizen c ON c.citizen_id = w.citizen_id
      JOIN area a ON a.area_id = c.area_id
     WHERE w.status IN (:collected, :completed)
       {window}
     GROUP BY a.area_id, a.area_name, a.city
     ORDER BY revenue_rank, a.area_id
    """

OPERATOR_PERFORMANCE = sql(
    """
    SELECT o.operator_id, o.full_name,
           COALESCE(col.total, 0) AS total_collections,
           COALESCE(col.weight, 0) AS total_weight_kg,
           COALESCE(cmp.total, 0) AS complaints
      FROM operator o
      LEFT JOIN (SELECT operator_id, COUNT(collection_id) AS total, SUM(collected_weight) AS weight
                   FROM collection
                  GROUP BY operator_id) col ON col.operator_id = o.operator_id
      LEFT JOIN (SELECT operator_id, COUNT(complaint_id) AS total
                   FROM complaint
                  WHERE operator_id IS NOT NULL
                  GROUP BY operator_id) cmp ON cmp.operator_id = o.operator_id
     ORDER BY o.full_name, o.operator_id
    """,
    total_weight_kg=MONEY,
)

TRANSACTION_SUMMARIES = sql(
    """
    SELECT t.transaction_id, c.full_name AS citizen_name, t.total_amount, t.payment_status,
           t.transaction_date, COALESCE(i.item_count, 0) AS item_count,
           COALESCE(i.total_weight, 0) AS total_weight, o.full_name AS operator_name
      FROM transaction_record t
      JOIN citizen c ON c.citizen_id = t.citizen_id
      LEFT JOIN operator o ON o.operator_id = t.operator_id
      LEFT JOIN (SELECT transaction_id, COUNT(listing_id) AS item_count, SUM(weight) AS total_weight
                   FROM waste_listing
                  WHERE transaction_id IS NOT NULL
                  GROUP BY transaction_id) i ON i.transaction_id = t.transaction_id
     ORDER BY t.transaction_date DESC, t.transaction_id DESC
    """,
    total_amount=MONEY,
    transaction_date=DateTime(),
    total_weight=MONEY,
)

# ============================================
# Categories
# ============================================

ALL_CATEGORIES = sql(
    "SELECT category_id, category_name, base_price_per_kg, description FROM category ORDER BY category_name",
    base_price_per_kg=MONEY,
)

INSERT_CATEGORY = sql(
    """
    INSERT INTO category (category_name, base_price_per_kg, description)
    VALUES (:category_name, :base_price_per_kg, :description)
    RETURNING category_id
    """,
    binds={"base_price_per_kg": MONEY},
)

SET_CATEGORY_PRICE = sql(
    "UPDATE category SET base_price_per_kg = :price WHERE category_id = :category_id",
    binds={"price": MONEY},
)

PENDING_LISTINGS_FOR_CATEGORY = sql(
    "SELECT listing_id, weight FROM waste_listing WHERE category_id = :category_id AND status = :pending",
    weight=MONEY,
)

SET_ESTIMATED_PRICE = sql(
    "UPDATE waste_listing SET estimated_price = :estimated_price WHERE listing_id = :listing_id",
    binds={"estimated_price": MONEY},
)

CATEGORY_USAGE = sql(
    """
    SELECT (SELECT COUNT(*) FROM waste_listing WHERE category_id = :category_id)
         + (SELECT COUNT(*) FROM warehouse_stock WHERE category_id = :category_id)
    """
)

CATEGORY_EXISTS = sql("SELECT 1 FROM category WHERE category_id = :category_id")

DELETE_CATEGORY = sql("DELETE FROM category WHERE category_id = :category_id")

# ============================================
# Operators
# ============================================

USER_EXISTS = sql("SELECT 1 FROM users WHERE user_id = :cnic")

INSERT_USER = sql(
    """
    INSERT INTO users (user_id, password_hash, role_id, created_at)
    VALUES (:user_id, :password_hash, :role_id, :created_at)
    """,
    binds={"created_at": DateTime()},
)

INSERT_OPERATOR = sql(
    """
    INSERT INTO operator (operator_id, full_name, phone_number, route_id, warehouse_id, status)
    VALUES (:operator_id, :full_name, :phone_number, :route_id, :warehouse_id, :status)
    """
)

ASSIGNMENT_TARGETS = sql(
    """
    SELECT (SELECT COUNT(*) FROM route WHERE route_id = :route_id) AS routes,
           (SELECT COUNT(*) FROM warehouse WHERE warehouse_id = :warehouse_id) AS warehouses
    """
)

ASSIGN_OPERATOR = sql(
    """
    UPDATE operator
       SET route_id = :route_id, warehouse_id = :warehouse_id
     WHERE operator_id = :operator_id
    """
)

DEACTIVATE_OPERATOR = sql(
    """
    UPDATE operator
       SET status = :offline, route_id = NULL, warehouse_id = NULL
     WHERE operator_id = :operator_id
    """
)

ALL_OPERATORS = sql(
    """
    SELECT o.operator_id, o.full_name, o.phone_number, o.route_id, r.route_name,
           o.warehouse_id, w.warehouse_name, o.status
      FROM operator o
      LEFT JOIN route r ON r.route_id = o.route_id
      LEFT JOIN warehouse w ON w.warehouse_id = o.warehouse_id
     ORDER BY o.full_name, o.operator_id
    """
)

# ============================================
# Complaints, routes & areas
# ============================================

ALL_COMPLAINTS = """
    SELECT cp.complaint_id, cp.citizen_id, c.full_name AS citizen_name, cp.operator_id,
           o.full_name AS operator_name, cp.complaint_type, cp.description, cp.status, cp.created_at
      FROM complaint cp
      LEFT JOIN citizen c ON c.citizen_id = cp.citizen_id
      LEFT JOIN operator o ON o.operator_id = cp.operator_id
     {where}
     ORDER BY cp.created_at DESC, cp.complaint_id DESC
    """

SET_COMPLAINT_STATUS = sql("UPDATE complaint SET status = :status WHERE complaint_id = :complaint_id")

ALL_ROUTES = sql(
    """
    SELECT r.route_id, r.route_name, r.area_id, a.area_name
      FROM route r
      JOIN area a ON a.area_id = r.area_id
     ORDER BY r.route_name, r.route_id
    """
)

ALL_AREAS = sql("SELECT area_id, area_name, city FROM area ORDER BY city, area_name")

INSERT_AREA = sql("INSERT INTO area (area_name, city) VALUES (:area_name, :city) RETURNING area_id")

INSERT_ROUTE = sql("INSERT INTO route (route_name, area_id) VALUES (:route_name, :area_id) RETURNING route_id")


def _present(**filters):
    """Keep only the optional filters that were given; each one adds a clause."""
    return {name: value for name, value in filters.items() if value is not None}


class SqlGovernmentService(GovernmentService):
    backend = "sql"

    def _rows(self, statement, **params):
        return self.session.exec(statement, params=params).mappings().all()

    # ============================================
    # Warehouses
    # ============================================

    def get_warehouse_inventory(self, warehouse_id: Optional[int] = None) -> List[WarehouseInventory]:
        where = "WHERE w.warehouse_id = :warehouse_id" if warehouse_id is not None else ""
        statement = sql(WAREHOUSE_INVENTORY.format(where=where))
        inventory = []
        for row in self._rows(statement, **_present(warehouse_id=warehouse_id)):
            used, available = capacity_figures(row["capacity"], row["current_inventory"])
            inventory.append(
                WarehouseInventory.model_validate(
                    dict(row, capacity_used_percent=used, available_capacity=available)
                )
            )
        return inventory

    def get_all_warehouses(self) -> List[WarehouseRead]:
        return [WarehouseRead.model_validate(dict(row)) for row in self._rows(ALL_WAREHOUSES)]

    def get_warehouse_stock(self, warehouse_id: Optional[int] = None) -> List[WarehouseStockRead]:
        where = "WHERE s.warehouse_id = :warehouse_id" if warehouse_id is not None else ""
        statement = sql(WAREHOUSE_STOCK.format(where=where), last_updated=DateTime())
        rows = self._rows(statement, **_present(warehouse_id=warehouse_id))
        return [WarehouseStockRead.model_validate(dict(row)) for row in rows]

    def create_warehouse(self, dto: WarehouseCreate) -> int:
        params = {
            "warehouse_name": require_text(dto.warehouse_name, "Warehouse name"),
            "area_id": dto.area_id,
            "address": require_text(dto.address, "Address"),
            "capacity": dto.capacity,
        }
        with atomic(self.session, "create_warehouse"):
            warehouse_id = self.session.exec(INSERT_WAREHOUSE, params=params).scalar_one()
        logger.info("Created warehouse %s", warehouse_id)
        return warehouse_id

    # ============================================
    # Reports
    # ============================================

    def analyze_high_yield_areas(
        self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> List[HighYieldArea]:
        window = []
        if start_date is not None:
            window.append("AND w.created_at >= :start_date")
        if end_date is not None:
            window.append("AND w.created_at <= :end_date")
        statement = sql(
            HIGH_YIELD_AREAS.format(window="\n       ".join(window)),
            binds={name: DateTime() for name in _present(start_date=start_date, end_date=end_date)},
            total_weight=MONEY,
            total_revenue=MONEY,
        )
        rows = self._rows(
            statement,
            collected=ListingStatus.COLLECTED,
            completed=ListingStatus.COMPLETED,
            **_present(start_date=start_date, end_date=end_date),
        )
        return [
            HighYieldArea.model_validate(
                dict(
                    row,
                    total_weight=pricing.to_money(row["total_weight"]),
                    total_revenue=pricing.to_money(row["total_revenue"]),
                )
            )
            for row in rows
        ]

    def get_operator_performance_report(self) -> List[OperatorPerformanceReport]:
        return [
            OperatorPerformanceReport.model_validate(
                dict(
                    row,
                    total_weight_kg=pricing.to_money(row["total_weight_kg"]),
                    rating=pricing.performance_rating(row["total_collections"], row["complaints"]),
                )
            )
            for row in self._rows(OPERATOR_PERFORMANCE)
        ]

    def get_transaction_summaries(self) -> List[TransactionSummary]:
        return [
            TransactionSummary.model_validate(dict(row, total_weight=pricing.to_money(row["total_weight"])))
            for row in self._rows(TRANSACTION_SUMMARIES)
        ]

    # ============================================
    # Categories
    # ============================================

    def get_all_categories(self) -> List[CategoryRead]:
        return [CategoryRead.model_validate(dict(row)) for row in self._rows(ALL_CATEGORIES)]

    def create_category(self, dto: CategoryCreate) -> int:
        params = {
            "category_name": require_text(dto.category_name, "Category name"),
            "base_price_per_kg": pricing.to_money(require_price(dto.base_price_per_kg)),
            "description": dto.description,
        }
        with atomic(self.session, "create_category"):
            category_id = self.session.exec(INSERT_CATEGORY, params=params).scalar_one()
        logger.info("Created category %s (%s)", category_id, params["category_name"])
        return category_id

    def update_category_price(self, category_id: int, new_price: Decimal) -> bool:
        price = pricing.to_money(require_price(new_price))
        with atomic(self.session, "update_category_price"):
            updated = self.session.exec(SET_CATEGORY_PRICE, params={"price": price, "category_id": category_id})
            if updated.rowcount == 0:
                return False
            pending = self._rows(PENDING_LISTINGS_FOR_CATEGORY, category_id=category_id, pending=ListingStatus.PENDING)
            for listing in pending:
                self.session.exec(
                    SET_ESTIMATED_PRICE,
                    params={
                        "estimated_price": pricing.estimate_price(listing["weight"], price),
                        "listing_id": listing["listing_id"],
                    },
                )

        logger.info("Category %s price set to %s; %d pending listings repriced", category_id, price, len(pending))
        return True

    def delete_category(self, category_id: int) -> bool:
        if self.session.exec(CATEGORY_EXISTS, params={"category_id": category_id}).first() is None:
            return False
        if self.session.exec(CATEGORY_USAGE, params={"category_id": category_id}).scalar_one():
            logger.info("Category %s is in use and cannot be deleted", category_id)
            return False

        with atomic(self.session, "delete_category"):
            self.session.exec(DELETE_CATEGORY, params={"category_id": category_id})
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
            if self.session.exec(USER_EXISTS, params={"cnic": cnic}).first() is not None:
                raise ConflictError("User with this CNIC already exists")

            self.session.exec(
                INSERT_USER,
                params={
                    "user_id": cnic,
                    "password_hash": hash_password(temporary_password),
                    "role_id": Role.OPERATOR,
                    "created_at": utcnow(),
                },
            )
            self.session.exec(
                INSERT_OPERATOR,
                params={
                    "operator_id": cnic,
                    "full_name": full_name,
                    "phone_number": phone,
                    "route_id": dto.route_id,
                    "warehouse_id": dto.warehouse_id,
                    "status": OperatorStatus.AVAILABLE,
                },
            )

        logger.info("Created operator %s", cnic)
        return OperatorCreated(operator_id=cnic, temporary_password=temporary_password)

    def assign_operator_to_route(self, operator_id: str, route_id: int, warehouse_id: int) -> bool:
        targets = self.session.exec(
            ASSIGNMENT_TARGETS, params={"route_id": route_id, "warehouse_id": warehouse_id}
        ).mappings().one()
        if not targets["routes"] or not targets["warehouses"]:
            logger.info("Cannot assign %s: route %s or warehouse %s missing", operator_id, route_id, warehouse_id)
            return False

        with atomic(self.session, "assign_operator_to_route"):
            result = self.session.exec(
                ASSIGN_OPERATOR,
                params={"route_id": route_id, "warehouse_id": warehouse_id, "operator_id": operator_id},
            )
        if result.rowcount == 0:
            return False
        logger.info("Assigned operator %s to route %s, warehouse %s", operator_id, route_id, warehouse_id)
        return True

    def deactivate_operator(self, operator_id: str) -> bool:
        with atomic(self.session, "deactivate_operator"):
            result = self.session.exec(
                DEACTIVATE_OPERATOR, params={"offline": OperatorStatus.OFFLINE, "operator_id": operator_id}
            )
        if result.rowcount == 0:
            return False
        logger.info("Deactivated operator %s", operator_id)
        return True

    def get_all_operators(self) -> List[OperatorRead]:
        return [OperatorRead.model_validate(dict(row)) for row in self._rows(ALL_OPERATORS)]

    # ============================================
    # Complaints
    # ============================================

    def get_all_complaints(self, status: Optional[str] = None) -> List[ComplaintRead]:
        where = "WHERE cp.status = :status" if status else ""
        statement = sql(ALL_COMPLAINTS.format(where=where), created_at=DateTime())
        rows = self._rows(statement, **_present(status=status or None))
        return [ComplaintRead.model_validate(dict(row)) for row in rows]

    def update_complaint_status(self, complaint_id: int, new_status: str) -> bool:
        require_status(new_status, ComplaintStatus.ALL)
        with atomic(self.session, "update_complaint_status"):
            result = self.session.exec(SET_COMPLAINT_STATUS, params={"status": new_status, "complaint_id": complaint_id})
        if result.rowcount == 0:
            return False
        logger.info("Complaint %s set to %s", complaint_id, new_status)
        return True

    # ============================================
    # Routes & areas
    # ============================================

    def get_all_routes(self) -> List[RouteRead]:
        return [RouteRead.model_validate(dict(row)) for row in self._rows(ALL_ROUTES)]

    def get_all_areas(self) -> List[AreaRead]:
        return [AreaRead.model_validate(dict(row)) for row in self._rows(ALL_AREAS)]

    def create_area(self, dto: AreaCreate) -> int:
        params = {"area_name": require_text(dto.area_name, "Area name"), "city": require_text(dto.city, "City")}
        with atomic(self.session, "create_area"):
            area_id = self.session.exec(INSERT_AREA, params=params).scalar_one()
        logger.info("Created area %s", area_id)
        return area_id

    def create_route(self, dto: RouteCreate) -> int:
        params = {"route_name": require_text(dto.route_name, "Route name"), "area_id": dto.area_id}
        with atomic(self.session, "create_route"):
            route_id = self.session.exec(INSERT_ROUTE, params=params).scalar_one()
        logger.info("Created route %s", route_id)
        return route_id
