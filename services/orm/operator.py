import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, update
from sqlmodel import select

import pricing
from errors import ConflictError, NotFoundError
from models import (
    Area,
    Category,
    Citizen,
    Collection,
    Complaint,
    ComplaintStatus,
    ListingStatus,
    Operator,
    Route,
    TransactionRecord,
    Warehouse,
    WarehouseStock,
    WasteListing,
    utcnow,
)
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
from validation import require_status, require_weight

logger = logging.getLogger(__name__)


class OrmOperatorService(OperatorService):
    backend = "orm"

    def get_operator_details(self, operator_id: str) -> Optional[OperatorDetails]:
        op = self.session.get(Operator, operator_id)
        if op is None:
            return None

        route = None
        if op.route_id is not None:
            row = self.session.exec(
                select(Route, Area.area_name)
                .join(Area, Area.area_id == Route.area_id)
                .where(Route.route_id == op.route_id)
            ).first()
            if row:
                route = RouteRead.model_validate(row[0]).model_copy(update={"area_name": row[1]})

        warehouse = None
        if op.warehouse_id is not None:
            row = self.session.exec(
                select(Warehouse, Area.area_name)
                .join(Area, Area.area_id == Warehouse.area_id)
                .where(Warehouse.warehouse_id == op.warehouse_id)
            ).first()
            if row:
                warehouse = WarehouseRead.model_validate(row[0]).model_copy(update={"area_name": row[1]})

        return OperatorDetails(
            operator_id=op.operator_id,
            full_name=op.full_name,
            phone_number=op.phone_number,
            route_id=op.route_id,
            route_name=route.route_name if route else None,
            warehouse_id=op.warehouse_id,
            warehouse_name=warehouse.warehouse_name if warehouse else None,
            status=op.status,
            route=route,
            warehouse=warehouse,
        )

    def get_my_collection_points(self, operator_id: str) -> List[CollectionPoint]:
        rows = self.session.exec(
            select(Operator, Route, WasteListing, Citizen, Area, Category, TransactionRecord.verification_code)
            .join(Route, Route.route_id == Operator.route_id)
            .join(Citizen, Citizen.area_id == Route.area_id)
            .join(Area, Area.area_id == Citizen.area_id)
            .join(WasteListing, WasteListing.citizen_id == Citizen.citizen_id)
            .join(Category, Category.category_id == WasteListing.category_id)
            .outerjoin(TransactionRecord, TransactionRecord.transaction_id == WasteListing.transaction_id)
            .where(Operator.operator_id == operator_id, WasteListing.status == ListingStatus.PENDING)
            .order_by(WasteListing.created_at, WasteListing.listing_id)
        ).all()
        return [
            CollectionPoint(
                operator_id=op.operator_id,
                operator_name=op.full_name,
                route_id=route.route_id,
                route_name=route.route_name,
                listing_id=listing.listing_id,
                citizen_id=citizen.citizen_id,
                citizen_name=citizen.full_name,
                phone_number=citizen.phone_number,
                address=citizen.address,
                area_name=area.area_name,
                category_name=category.category_name,
                weight=listing.weight,
                estimated_price=listing.estimated_price,
                status=listing.status,
                verification_code=code,
            )
            for op, route, listing, citizen, area, category, code in rows
        ]

    # ============================================
    # Collection & deposit
    # ============================================

    def _add_stock(self, warehouse_id: int, category_id: int, weight: Decimal) -> None:
        """Insert-or-increment the category's stock and the warehouse total."""
        now = utcnow()
        result = self.session.exec(
            update(Warehouse)
            .where(Warehouse.warehouse_id == warehouse_id)
            .values(current_inventory=Warehouse.current_inventory + float(weight))
        )
        if result.rowcount == 0:
            raise NotFoundError("Warehouse not found")

        stock = self.session.get(WarehouseStock, (warehouse_id, category_id))
        if stock is None:
            self.session.add(
                WarehouseStock(
                    warehouse_id=warehouse_id,
                    category_id=category_id,
                    current_weight=float(weight),
                    last_updated=now,
                )
            )
        else:
            stock.current_weight += float(weight)
            stock.last_updated = now
            self.session.add(stock)
        self.session.flush()

    def collect_waste(self, dto: CollectionCreate) -> CollectionResult:
        weight = require_weight(dto.collected_weight)
        transaction_id = None
        amount = None
        code = None

        with atomic(self.session, "collect_waste"):
            # concurrent collectors race on this UPDATE; the loser matches no row
            flipped = self.session.exec(
                update(WasteListing)
                .where(
                    WasteListing.listing_id == dto.listing_id,
                    WasteListing.status == ListingStatus.PENDING,
                )
                .values(status=ListingStatus.COLLECTED)
            )
            if flipped.rowcount == 0:
                raise ConflictError("Listing is not pending or does not exist")

            collection = Collection(
                collected_date=utcnow(),
                operator_id=dto.operator_id,
                listing_id=dto.listing_id,
                warehouse_id=dto.warehouse_id,
                collected_weight=weight,
                is_verified=True,
            )
            self.session.add(collection)
            self.session.flush()
            collection_id = collection.collection_id

            listing = self.session.get(WasteListing, dto.listing_id)
            self._add_stock(dto.warehouse_id, listing.category_id, weight)

            category = self.session.get(Category, listing.category_id)
            if category is not None:
                amount = pricing.estimate_price(weight, category.base_price_per_kg)
                code = pricing.generate_verification_code()
                record = TransactionRecord(
                    transaction_date=utcnow(),
                    citizen_id=listing.citizen_id,
                    operator_id=dto.operator_id,
                    total_amount=amount,
                    payment_status="Pending",
                    payment_method="Cash",
                    verification_code=code,
                )
                self.session.add(record)
                self.session.flush()
                transaction_id = record.transaction_id

                listing.transaction_id = transaction_id
                self.session.add(listing)

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
        if self.session.get(Category, dto.category_id) is None:
            logger.info("Deposit rejected: unknown category %s", dto.category_id)
            return False
        try:
            with atomic(self.session, "deposit_waste"):
                self._add_stock(dto.warehouse_id, dto.category_id, quantity)
        except NotFoundError:
            return False

        logger.info("Deposited %s kg of category %s at warehouse %s", quantity, dto.category_id, dto.warehouse_id)
        return True

    # ============================================
    # History & performance
    # ============================================

    def get_my_collection_history(self, operator_id: str) -> List[CollectionRead]:
        rows = self.session.exec(
            select(Collection, Warehouse.warehouse_name)
            .outerjoin(Warehouse, Warehouse.warehouse_id == Collection.warehouse_id)
            .where(Collection.operator_id == operator_id)
            .order_by(Collection.collected_date.desc(), Collection.collection_id.desc())
            .limit(self.HISTORY_LIMIT)
        ).all()
        return [
            CollectionRead.model_validate(collection).model_copy(update={"warehouse_name": name})
            for collection, name in rows
        ]

    def get_my_performance(self, operator_id: str) -> Optional[OperatorPerformance]:
        op = self.session.get(Operator, operator_id)
        if op is None:
            return None

        pickups, weight = self.session.exec(
            select(func.count(Collection.collection_id), func.coalesce(func.sum(Collection.collected_weight), 0))
            .where(Collection.operator_id == operator_id)
        ).one()
        amount = self.session.exec(
            select(func.coalesce(func.sum(TransactionRecord.total_amount), 0))
            .where(TransactionRecord.operator_id == operator_id)
        ).one()

        return OperatorPerformance(
            operator_id=op.operator_id,
            full_name=op.full_name,
            phone_number=op.phone_number,
            route_id=op.route_id,
            warehouse_id=op.warehouse_id,
            total_pickups=pickups,
            total_collected_weight=pricing.to_money(weight),
            total_collected_amount=pricing.to_money(amount),
        )

    # ============================================
    # Complaints
    # ============================================

    def get_my_complaints(self, operator_id: str) -> List[ActiveComplaint]:
        rows = self.session.exec(
            select(Complaint, Citizen, Area.area_name, Operator.full_name, Route.route_name)
            .join(Citizen, Citizen.citizen_id == Complaint.citizen_id)
            .join(Area, Area.area_id == Citizen.area_id)
            .outerjoin(Operator, Operator.operator_id == Complaint.operator_id)
            .outerjoin(Route, Route.route_id == Operator.route_id)
            .where(
                Complaint.operator_id == operator_id,
                Complaint.status.in_(ComplaintStatus.ACTIVE),
            )
            .order_by(Complaint.created_at.desc(), Complaint.complaint_id.desc())
        ).all()
        return [
            ActiveComplaint(
                complaint_id=complaint.complaint_id,
                complaint_type=complaint.complaint_type,
                description=complaint.description,
                status=complaint.status,
                created_at=complaint.created_at,
                citizen_id=citizen.citizen_id,
                citizen_name=citizen.full_name,
                phone_number=citizen.phone_number,
                operator_id=complaint.operator_id,
                operator_name=operator_name,
                route_name=route_name,
                area_name=area_name,
                days_open=days_since(complaint.created_at),
            )
            for complaint, citizen, area_name, operator_name, route_name in rows
        ]

    def update_complaint_status(self, complaint_id: int, new_status: str) -> bool:
        require_status(new_status, ComplaintStatus.OPERATOR_SETTABLE)
        complaint = self.session.get(Complaint, complaint_id)
        if complaint is None:
            return False

        with atomic(self.session, "update_complaint_status"):
            complaint.status = new_status
            self.session.add(complaint)

        logger.info("Complaint %s set to %s by operator", complaint_id, new_status)
        return True
