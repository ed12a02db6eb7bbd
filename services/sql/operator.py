import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, DateTime

import pricing
from errors import ConflictError, NotFoundError
from models import ComplaintStatus, ListingStatus, utcnow
from schemas import (
    ActiveComplaint,
    CollectionCreate,
    CollectionPoint,
    CollectionRead,
    CollectionResult,
    OperatorDetails,
    OperatorPerformance,
    RouteRead,
    WarehouseDeposit,
    WarehouseRead,
    days_since,
)
from services.base import OperatorService, atomic
from services.sql.statements import ADD_INVENTORY, ADD_STOCK, MONEY, sql
from validation import require_status, require_weight

logger = logging.getLogger(__name__)

OPERATOR_BY_ID = sql(
    """
    SELECT operator_id, full_name, phone_number, route_id, warehouse_id, status
      FROM operator
     WHERE operator_id = :operator_id
    """
)

ROUTE_WITH_AREA = sql(
    """
    SELECT r.route_id, r.route_name, r.area_id, a.area_name
      FROM route r
      JOIN area a ON a.area_id = r.area_id
     WHERE r.route_id = :route_id
    """
)

WAREHOUSE_WITH_AREA = sql(
    """
    SELECT w.warehouse_id, w.warehouse_name, w.area_id, a.area_name, w.address,
           w.capacity, w.current_inventory
      FROM warehouse w
      JOIN area a ON a.area_id = w.area_id
     WHERE w.warehouse_id = :warehouse_id
    """
)

COLLECTION_POINTS = sql(
    """
    SELECT o.operator_id, o.full_name AS operator_name, r.route_id, r.route_name,
           w.listing_id, c.citizen_id, c.full_name AS citizen_name, c.phone_number,
           c.address, a.area_name, cat.category_name, w.weight, w.estimated_price,
           w.status, t.verification_code
      FROM operator o
      JOIN route r ON r.route_id = o.route_id
      JOIN citizen c ON c.area_id = r.area_id
      JOIN area a ON a.area_id = c.area_id
      JOIN waste_listing w ON w.citizen_id = c.citizen_id
      JOIN category cat ON cat.category_id = w.category_id
      LEFT JOIN transaction_record t ON t.transaction_id = w.transaction_id
     WHERE o.operator_id = :operator_id
       AND w.status = :pending
     ORDER BY w.created_at, w.listing_id
    """,
    weight=MONEY,
    estimated_price=MONEY,
)

CLAIM_LISTING = sql(
    """
    UPDATE waste_listing
       SET status = :collected
     WHERE listing_id = :listing_id
       AND status = :pending
    """
)

INSERT_COLLECTION = sql(
    """
    INSERT INTO collection (collected_date, operator_id, listing_id, warehouse_id, collected_weight, is_verified)
    VALUES (:collected_date, :operator_id, :listing_id, :warehouse_id, :collected_weight, :is_verified)
    RETURNING collection_id
    """,
    binds={"collected_date": DateTime(), "collected_weight": MONEY, "is_verified": Boolean()},
)

LISTING_PRICING = sql(
    """
    SELECT w.citizen_id, w.category_id, c.base_price_per_kg
      FROM waste_listing w
      LEFT JOIN category c ON c.category_id = w.category_id
     WHERE w.listing_id = :listing_id
    """,
    base_price_per_kg=MONEY,
)

INSERT_TRANSACTION = sql(
    """
    INSERT INTO transaction_record
        (transaction_date, citizen_id, operator_id, total_amount, payment_status, payment_method, verification_code)
    VALUES
        (:transaction_date, :citizen_id, :operator_id, :total_amount, :payment_status, :payment_method, :verification_code)
    RETURNING transaction_id
    """,
    binds={"transaction_date": DateTime(), "total_amount": MONEY},
)

LINK_TRANSACTION = sql("UPDATE waste_listing SET transaction_id = :transaction_id WHERE listing_id = :listing_id")

CATEGORY_EXISTS = sql("SELECT 1 FROM category WHERE category_id = :category_id")

COLLECTION_HISTORY = sql(
    """
    SELECT c.collection_id, c.collected_date, c.operator_id, c.listing_id, c.warehouse_id,
           w.warehouse_name, c.collected_weight, c.photo_proof, c.is_verified
      FROM collection c
      LEFT JOIN warehouse w ON w.warehouse_id = c.warehouse_id
     WHERE c.operator_id = :operator_id
     ORDER BY c.collected_date DESC, c.collection_id DESC
     LIMIT :limit
    """,
    collected_date=DateTime(),
    collected_weight=MONEY,
    is_verified=Boolean(),
)

PERFORMANCE = sql(
    """
    SELECT o.operator_id, o.full_name, o.phone_number, o.route_id, o.warehouse_id,
           (SELECT COUNT(*) FROM collection c WHERE c.operator_id = o.operator_id) AS total_pickups,
           (SELECT COALESCE(SUM(c.collected_weight), 0)
              FROM collection c WHERE c.operator_id = o.operator_id) AS total_collected_weight,
           (SELECT COALESCE(SUM(t.total_amount), 0)
              FROM transaction_record t WHERE t.operator_id = o.operator_id) AS total_collected_amount
      FROM operator o
     WHERE o.operator_id = :operator_id
    """,
    total_collected_weight=MONEY,
    total_collected_amount=MONEY,
)

ACTIVE_COMPLAINTS = sql(
    """
    SELECT cp.complaint_id, cp.complaint_type, cp.description, cp.status, cp.created_at,
           c.citizen_id, c.full_name AS citizen_name, c.phone_number,
           cp.operator_id, o.full_name AS operator_name, r.route_name, a.area_name
      FROM complaint cp
      JOIN citizen c ON c.citizen_id = cp.citizen_id
      JOIN area a ON a.area_id = c.area_id
      LEFT JOIN operator o ON o.operator_id = cp.operator_id
      LEFT JOIN route r ON r.route_id = o.route_id
     WHERE cp.operator_id = :operator_id
       AND cp.status IN (:open, :in_progress)
     ORDER BY cp.created_at DESC, cp.complaint_id DESC
    """,
    created_at=DateTime(),
)

SET_COMPLAINT_STATUS = sql("UPDATE complaint SET status = :status WHERE complaint_id = :complaint_id")


class SqlOperatorService(OperatorService):
    backend = "sql"

    def get_operator_details(self, operator_id: str) -> Optional[OperatorDetails]:
        op = self.session.exec(OPERATOR_BY_ID, params={"operator_id": operator_id}).mappings().first()
        if op is None:
            return None

        route = None
        if op["route_id"] is not None:
            row = self.session.exec(ROUTE_WITH_AREA, params={"route_id": op["route_id"]}).mappings().first()
            route = RouteRead.model_validate(dict(row)) if row else None

        warehouse = None
        if op["warehouse_id"] is not None:
            row = self.session.exec(WAREHOUSE_WITH_AREA, params={"warehouse_id": op["warehouse_id"]}).mappings().first()
            warehouse = WarehouseRead.model_validate(dict(row)) if row else None

        return OperatorDetails(
            **op,
            route_name=route.route_name if route else None,
            warehouse_name=warehouse.warehouse_name if warehouse else None,
            route=route,
            warehouse=warehouse,
        )

    def get_my_collection_points(self, operator_id: str) -> List[CollectionPoint]:
        rows = self.session.exec(
            COLLECTION_POINTS, params={"operator_id": operator_id, "pending": ListingStatus.PENDING}
        ).mappings().all()
        return [CollectionPoint.model_validate(dict(row)) for row in rows]

    def _add_stock(self, warehouse_id: int, category_id: int, weight: Decimal) -> None:
        result = self.session.exec(ADD_INVENTORY, params={"weight": float(weight), "warehouse_id": warehouse_id})
        if result.rowcount == 0:
            raise NotFoundError("Warehouse not found")
        self.session.exec(
            ADD_STOCK,
            params={
                "warehouse_id": warehouse_id,
                "category_id": category_id,
                "weight": float(weight),
                "now": utcnow(),
            },
        )

    def collect_waste(self, dto: CollectionCreate) -> CollectionResult:
        weight = require_weight(dto.collected_weight)
        transaction_id = None
        amount = None
        code = None

        with atomic(self.session, "collect_waste"):
            claimed = self.session.exec(
                CLAIM_LISTING,
                params={
                    "collected": ListingStatus.COLLECTED,
                    "listing_id": dto.listing_id,
                    "pending": ListingStatus.PENDING,
                },
            )
            if claimed.rowcount == 0:
                raise ConflictError("Listing is not pending or does not exist")

            collection_id = self.session.exec(
                INSERT_COLLECTION,
                params={
                    "collected_date": utcnow(),
                    "operator_id": dto.operator_id,
                    "listing_id": dto.listing_id,
                    "warehouse_id": dto.warehouse_id,
                    "collected_weight": weight,
                    "is_verified": True,
                },
            ).scalar_one()

            listing = self.session.exec(LISTING_PRICING, params={"listing_id": dto.listing_id}).mappings().one()
            self._add_stock(dto.warehouse_id, listing["category_id"], weight)

            if listing["base_price_per_kg"] is not None:
                amount = pricing.estimate_price(weight, listing["base_price_per_kg"])
                code = pricing.generate_verification_code()
                transaction_id = self.session.exec(
                    INSERT_TRANSACTION,
                    params={
                        "transaction_date": utcnow(),
                        "citizen_id": listing["citizen_id"],
                        "operator_id": dto.operator_id,
                        "total_amount": amount,
                        "payment_status": "Pending",
                        "payment_method": "Cash",
                        "verification_code": code,
                    },
                ).scalar_one()
                self.session.exec(
                    LINK_TRANSACTION, params={"transaction_id": transaction_id, "listing_id": dto.listing_id}
                )

        logger.info(
            "Operator %s collected listing %s (collection %s, transaction %s)",
            dto.operator_id,
            dto.listing_id,
            collection_id,
            transaction_id,
        )
        return CollectionResult(
            success=True,
            collection_id=collection_id,
            transaction_id=transaction_id,
            payment_amount=amount,
            verification_code=code,
            message=pricing.payment_message(amount, code),
        )

    def deposit_waste(self, dto: WarehouseDeposit) -> bool:
        quantity = pricing.to_weight(dto.quantity)
        if quantity <= 0:
            return False
        if self.session.exec(CATEGORY_EXISTS, params={"category_id": dto.category_id}).first() is None:
            logger.info("Deposit rejected: unknown category %s", dto.category_id)
            return False
        try:
            with atomic(self.session, "deposit_waste"):
                self._add_stock(dto.warehouse_id, dto.category_id, quantity)
        except NotFoundError:
            return False

        logger.info("Deposited %s kg of category %s at warehouse %s", quantity, dto.category_id, dto.warehouse_id)
        return True

    def get_my_collection_history(self, operator_id: str) -> List[CollectionRead]:
        rows = self.session.exec(
            COLLECTION_HISTORY, params={"operator_id": operator_id, "limit": self.HISTORY_LIMIT}
        ).mappings().all()
        return [CollectionRead.model_validate(dict(row)) for row in rows]

    def get_my_performance(self, operator_id: str) -> Optional[OperatorPerformance]:
        row = self.session.exec(PERFORMANCE, params={"operator_id": operator_id}).mappings().first()
        if row is None:
            return None
        return OperatorPerformance.model_validate(
            dict(
                row,
                total_collected_weight=pricing.to_money(row["total_collected_weight"]),
                total_collected_amount=pricing.to_money(row["total_collected_amount"]),
            )
        )

    def get_my_complaints(self, operator_id: str) -> List[ActiveComplaint]:
        rows = self.session.exec(
            ACTIVE_COMPLAINTS,
            params={
                "operator_id": operator_id,
                "open": ComplaintStatus.OPEN,
                "in_progress": ComplaintStatus.IN_PROGRESS,
            },
        ).mappings().all()
        return [ActiveComplaint.model_validate(dict(row, days_open=days_since(row["created_at"]))) for row in rows]

    def update_complaint_status(self, complaint_id: int, new_status: str) -> bool:
        require_status(new_status, ComplaintStatus.OPERATOR_SETTABLE)
        with atomic(self.session, "update_complaint_status"):
            result = self.session.exec(SET_COMPLAINT_STATUS, params={"status": new_status, "complaint_id": complaint_id})
        if result.rowcount == 0:
            return False
        logger.info("Complaint %s set to %s by operator", complaint_id, new_status)
        return True
