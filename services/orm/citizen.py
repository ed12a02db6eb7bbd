import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlmodel import select

import pricing
from errors import ConflictError, NotFoundError
from models import (
    Area,
    Category,
    Citizen,
    Complaint,
    ComplaintStatus,
    ListingStatus,
    Role,
    TransactionRecord,
    User,
    WasteListing,
    utcnow,
)
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
from validation import require_cnic, require_phone, require_text, require_weight, sanitize

logger = logging.getLogger(__name__)


class OrmCitizenService(CitizenService):
    backend = "orm"

    # ============================================
    # Registration
    # ============================================

    def register_citizen(self, dto: CitizenRegistration) -> str:
        cnic = require_cnic(dto.cnic)
        full_name = require_text(dto.full_name, "Full name")
        phone = require_phone(dto.phone_number)
        require_text(dto.password, "Password")

        with atomic(self.session, "register_citizen"):
            if self.session.get(User, cnic) is not None:
                raise ConflictError("User with this CNIC already exists")

            self.session.add(
                User(user_id=cnic, password_hash=hash_password(dto.password), role_id=Role.CITIZEN)
            )
            # users row must exist before the profile's foreign key is checked
            self.session.flush()
            self.session.add(
                Citizen(
                    citizen_id=cnic,
                    full_name=full_name,
                    phone_number=phone,
                    area_id=dto.area_id,
                    address=sanitize(dto.address) or None,
                )
            )

        logger.info("Registered citizen %s", cnic)
        return cnic

    # ============================================
    # Listings
    # ============================================

    def create_waste_listing(self, dto: ListingCreate) -> int:
        weight = require_weight(dto.weight)
        category = self.session.get(Category, dto.category_id)
        if category is None:
            raise NotFoundError("Category not found")

        listing = WasteListing(
            created_at=utcnow(),
            citizen_id=dto.citizen_id,
            category_id=dto.category_id,
            weight=weight,
            status=ListingStatus.PENDING,
            estimated_price=pricing.estimate_price(weight, category.base_price_per_kg),
        )
        with atomic(self.session, "create_waste_listing"):
            self.session.add(listing)
            self.session.flush()
            listing_id = listing.listing_id

        logger.info("Citizen %s created listing %s", dto.citizen_id, listing_id)
        return listing_id

    def get_my_listings(self, citizen_id: str) -> List[ListingRead]:
        rows = self.session.exec(
            select(WasteListing, Category.category_name)
            .join(Category, Category.category_id == WasteListing.category_id)
            .where(WasteListing.citizen_id == citizen_id)
            .order_by(WasteListing.created_at.desc(), WasteListing.listing_id.desc())
        ).all()
        return [
            ListingRead.model_validate(listing).model_copy(update={"category_name": category_name})
            for listing, category_name in rows
        ]

    def cancel_listing(self, listing_id: int, citizen_id: str) -> bool:
        # one conditional statement: ownership and Pending status are checked by the UPDATE itself
        with atomic(self.session, "cancel_listing"):
            result = self.session.exec(
                update(WasteListing)
                .where(
                    WasteListing.listing_id == listing_id,
                    WasteListing.citizen_id == citizen_id,
                    WasteListing.status == ListingStatus.PENDING,
                )
                .values(status=ListingStatus.CANCELLED)
            )
        if result.rowcount == 0:
            logger.info("Listing %s not cancelled for %s", listing_id, citizen_id)
            return False
        logger.info("Listing %s cancelled by %s", listing_id, citizen_id)
        return True

    # ============================================
    # Pricing
    # ============================================

    def calculate_price(self, category_id: int, weight: Decimal) -> Decimal:
        category = self.session.get(Category, category_id)
        return pricing.estimate_price(weight, category.base_price_per_kg if category else None)

    def get_price_estimate(self, category_id: int, weight: Decimal) -> PriceEstimate:
        category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return PriceEstimate(
            category_id=category_id,
            category_name=category.category_name,
            weight=pricing.to_weight(weight),
            base_price_per_kg=category.base_price_per_kg,
            estimated_price=pricing.estimate_price(weight, category.base_price_per_kg),
        )

    # ============================================
    # Transactions, profile, reference data
    # ============================================

    def get_my_transactions(self, citizen_id: str) -> List[TransactionRead]:
        records = self.session.exec(
            select(TransactionRecord)
            .where(TransactionRecord.citizen_id == citizen_id)
            .order_by(TransactionRecord.transaction_date.desc(), TransactionRecord.transaction_id.desc())
        ).all()
        return [TransactionRead.model_validate(record) for record in records]

    def get_my_profile(self, citizen_id: str) -> Optional[CitizenProfile]:
        row = self.session.exec(
            select(Citizen, Area, User.created_at)
            .join(Area, Area.area_id == Citizen.area_id)
            .join(User, User.user_id == Citizen.citizen_id)
            .where(Citizen.citizen_id == citizen_id)
        ).first()
        if row is None:
            return None
        citizen, area, member_since = row
        return CitizenProfile(
            citizen_id=citizen.citizen_id,
            full_name=citizen.full_name,
            phone_number=citizen.phone_number,
            address=citizen.address,
            area_id=area.area_id,
            area_name=area.area_name,
            city=area.city,
            member_since=member_since,
        )

    def get_areas(self) -> List[AreaRead]:
        areas = self.session.exec(select(Area).order_by(Area.city, Area.area_name)).all()
        return [AreaRead.model_validate(area) for area in areas]

    def get_active_categories(self) -> List[CategoryRead]:
        categories = self.session.exec(select(Category).order_by(Category.category_name)).all()
        return [CategoryRead.model_validate(category) for category in categories]

    def file_complaint(self, dto: ComplaintCreate) -> int:
        complaint = Complaint(
            citizen_id=dto.citizen_id,
            operator_id=dto.operator_id,
            complaint_type=require_text(dto.complaint_type, "Complaint type"),
            description=require_text(dto.description, "Description"),
            status=ComplaintStatus.OPEN,
            created_at=utcnow(),
        )
        with atomic(self.session, "file_complaint"):
            self.session.add(complaint)
            self.session.flush()
            complaint_id = complaint.complaint_id

        logger.info("Citizen %s filed complaint %s", dto.citizen_id, complaint_id)
        return complaint_id
