import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import DateTime

import pricing
from errors import ConflictError, NotFoundError
from models import ComplaintStatus, ListingStatus, Role, utcnow
from schemas import (
    AreaRead,
    CategoryRead,
    CitizenProfile,
    CitizenRegistration,
    ComplaintCreate,
    ListingCreate,
    ListingRead,
    PriceEstimate,
    TransactionRead,
)
from security import hash_password
from services.base import CitizenService, atomic
from services.sql.statements import MONEY, sql
from validation import require_cnic, require_phone, require_text, require_weight, sanitize

logger = logging.getLogger(__name__)

USER_EXISTS = sql("SELECT 1 FROM users WHERE user_id = :cnic")

INSERT_USER = sql(
    """
    INSERT INTO users (user_id, password_hash, role_id, created_at)
    VALUES (:user_id, :password_hash, :role_id, :created_at)
    """,
    binds={"created_at": DateTime()},
)

INSERT_CITIZEN = sql(
    """
    INSERT INTO citizen (citizen_id, full_name, phone_number, area_id, address)
    VALUES (:citizen_id, :full_name, :phone_number, :area_id, :address)
    """
)

CATEGORY_BY_ID = sql(
    "SELECT category_id, category_name, base_price_per_kg, description FROM category WHERE category_id = :category_id",
    base_price_per_kg=MONEY,
)

INSERT_LISTING = sql(
    """
    INSERT INTO waste_listing (created_at, citizen_id, category_id, weight, status, estimated_price)
    VALUES (:created_at, :citizen_id, :category_id, :weight, :status, :estimated_price)
    RETURNING listing_id
    """,
    binds={"created_at": DateTime(), "weight": MONEY, "estimated_price": MONEY},
)

LISTINGS_FOR_CITIZEN = sql(
    """
    SELECT w.listing_id, w.created_at, w.citizen_id, w.category_id, c.category_name,
           w.weight, w.status, w.estimated_price, w.transaction_id
      FROM waste_listing w
      JOIN category c ON c.category_id = w.category_id
     WHERE w.citizen_id = :citizen_id
     ORDER BY w.created_at DESC, w.listing_id DESC
    """,
    created_at=DateTime(),
    weight=MONEY,
    estimated_price=MONEY,
)

CANCEL_LISTING = sql(
    """
    UPDATE waste_listing
       SET status = :cancelled
     WHERE listing_id = :listing_id
       AND citizen_id = :citizen_id
       AND status = :pending
    """
)

TRANSACTIONS_FOR_CITIZEN = sql(
    """
    SELECT transaction_id, transaction_date, citizen_id, operator_id, total_amount,
           payment_status, payment_method, verification_code
      FROM transaction_record
     WHERE citizen_id = :citizen_id
     ORDER BY transaction_date DESC, transaction_id DESC
    """,
    transaction_date=DateTime(),
    total_amount=MONEY,
)

PROFILE = sql(
    """
    SELECT c.citizen_id, c.full_name, c.phone_number, c.address,
           a.area_id, a.area_name, a.city, u.created_at AS member_since
      FROM citizen c
      JOIN area a ON a.area_id = c.area_id
      JOIN users u ON u.user_id = c.citizen_id
     WHERE c.citizen_id = :citizen_id
    """,
    member_since=DateTime(),
)

ALL_AREAS = sql("SELECT area_id, area_name, city FROM area ORDER BY city, area_name")

ALL_CATEGORIES = sql(
    "SELECT category_id, category_name, base_price_per_kg, description FROM category ORDER BY category_name",
    base_price_per_kg=MONEY,
)

INSERT_COMPLAINT = sql(
    """
    INSERT INTO complaint (citizen_id, operator_id, complaint_type, description, status, created_at)
    VALUES (:citizen_id, :operator_id, :complaint_type, :description, :status, :created_at)
    RETURNING complaint_id
    """,
    binds={"created_at": DateTime()},
)


class SqlCitizenService(CitizenService):
    backend = "sql"

    def register_citizen(self, dto: CitizenRegistration) -> str:
        cnic = require_cnic(dto.cnic)
        full_name = require_text(dto.full_name, "Full name")
        phone = require_phone(dto.phone_number)
        require_text(dto.password, "Password")

        with atomic(self.session, "register_citizen"):
            if self.session.exec(USER_EXISTS, params={"cnic": cnic}).first() is not None:
                raise ConflictError("User with this CNIC already exists")

            self.session.exec(
                INSERT_USER,
                params={
                    "user_id": cnic,
                    "password_hash": hash_password(dto.password),
                    "role_id": Role.CITIZEN,
                    "created_at": utcnow(),
                },
            )
            self.session.exec(
                INSERT_CITIZEN,
                params={
                    "citizen_id": cnic,
                    "full_name": full_name,
                    "phone_number": phone,
                    "area_id": dto.area_id,
                    "address": sanitize(dto.address) or None,
                },
            )

        logger.info("Registered citizen %s", cnic)
        return cnic

    def create_waste_listing(self, dto: ListingCreate) -> int:
        weight = require_weight(dto.weight)
        category = self.session.exec(CATEGORY_BY_ID, params={"category_id": dto.category_id}).mappings().first()
        if category is None:
            raise NotFoundError("Category not found")

        with atomic(self.session, "create_waste_listing"):
            listing_id = self.session.exec(
                INSERT_LISTING,
                params={
                    "created_at": utcnow(),
                    "citizen_id": dto.citizen_id,
                    "category_id": dto.category_id,
                    "weight": weight,
                    "status": ListingStatus.PENDING,
                    "estimated_price": pricing.estimate_price(weight, category["base_price_per_kg"]),
                },
            ).scalar_one()

        logger.info("Citizen %s created listing %s", dto.citizen_id, listing_id)
        return listing_id

    def get_my_listings(self, citizen_id: str) -> List[ListingRead]:
        rows = self.session.exec(LISTINGS_FOR_CITIZEN, params={"citizen_id": citizen_id}).mappings().all()
        return [ListingRead.model_validate(dict(row)) for row in rows]

    def cancel_listing(self, listing_id: int, citizen_id: str) -> bool:
        with atomic(self.session, "cancel_listing"):
            result = self.session.exec(
                CANCEL_LISTING,
                params={
                    "cancelled": ListingStatus.CANCELLED,
                    "listing_id": listing_id,
                    "citizen_id": citizen_id,
                    "pending": ListingStatus.PENDING,
                },
            )
        if result.rowcount == 0:
            logger.info("Listing %s not cancelled for %s", listing_id, citizen_id)
            return False
        logger.info("Listing %s cancelled by %s", listing_id, citizen_id)
        return True

    def calculate_price(self, category_id: int, weight: Decimal) -> Decimal:
        category = self.session.exec(CATEGORY_BY_ID, params={"category_id": category_id}).mappings().first()
        return pricing.estimate_price(weight, category["base_price_per_kg"] if category else None)

    def get_price_estimate(self, category_id: int, weight: Decimal) -> PriceEstimate:
        category = self.session.exec(CATEGORY_BY_ID, params={"category_id": category_id}).mappings().first()
        if category is None:
            raise NotFoundError("Category not found")
        return PriceEstimate(
            category_id=category_id,
            category_name=category["category_name"],
            weight=pricing.to_weight(weight),
            base_price_per_kg=category["base_price_per_kg"],
            estimated_price=pricing.estimate_price(weight, category["base_price_per_kg"]),
        )

    def get_my_transactions(self, citizen_id: str) -> List[TransactionRead]:
        rows = self.session.exec(TRANSACTIONS_FOR_CITIZEN, params={"citizen_id": citizen_id}).mappings().all()
        return [TransactionRead.model_validate(dict(row)) for row in rows]

    def get_my_profile(self, citizen_id: str) -> Optional[CitizenProfile]:
        row = self.session.exec(PROFILE, params={"citizen_id": citizen_id}).mappings().first()
        return CitizenProfile.model_validate(dict(row)) if row else None

    def get_areas(self) -> List[AreaRead]:
        return [AreaRead.model_validate(dict(row)) for row in self.session.exec(ALL_AREAS).mappings().all()]

    def get_active_categories(self) -> List[CategoryRead]:
        return [CategoryRead.model_validate(dict(row)) for row in self.session.exec(ALL_CATEGORIES).mappings().all()]

    def file_complaint(self, dto: ComplaintCreate) -> int:
        params = {
            "citizen_id": dto.citizen_id,
            "operator_id": dto.operator_id,
            "complaint_type": require_text(dto.complaint_type, "Complaint type"),
            "description": require_text(dto.description, "Description"),
            "status": ComplaintStatus.OPEN,
            "created_at": utcnow(),
        }
        with atomic(self.session, "file_complaint"):
            complaint_id = self.session.exec(INSERT_COMPLAINT, params=params).scalar_one()

        logger.info("Citizen %s filed complaint %s", dto.citizen_id, complaint_id)
        return complaint_id
