from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from models import Role
from schemas import (
    AreaRead,
    CancelListingRequest,
    CategoryRead,
    CitizenProfile,
    CitizenRegistration,
    ComplaintCreate,
    ListingCreate,
    ListingRead,
    PriceEstimate,
    PriceEstimateRequest,
    TransactionRead,
)
from services.factory import CitizenServiceDep

from .auth import OptionalSessionDep, require_role

router = APIRouter(tags=["citizen"])

CitizenOnly = Depends(require_role(Role.CITIZEN))


def _acting_citizen(current: Optional[dict], claimed: str) -> str:
    """A logged-in citizen always acts as themselves, whatever the body says."""
    if current and current.get("role_id") == Role.CITIZEN:
        return current["user_id"]
    return claimed


@router.post("/register")
def register(dto: CitizenRegistration, service: CitizenServiceDep):
    """
    Create a citizen account (user + profile) in one transaction.
    """
    citizen_id = service.register_citizen(dto)
    return {"success": True, "citizenID": citizen_id, "message": "Registration successful"}


@router.get("/profile/{citizen_id}", response_model=CitizenProfile, dependencies=[CitizenOnly])
def get_profile(citizen_id: str, service: CitizenServiceDep):
    profile = service.get_my_profile(citizen_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.get("/listings/{citizen_id}", response_model=List[ListingRead], dependencies=[CitizenOnly])
def get_listings(citizen_id: str, service: CitizenServiceDep):
    return service.get_my_listings(citizen_id)


@router.post("/listings", dependencies=[CitizenOnly])
def create_listing(dto: ListingCreate, service: CitizenServiceDep, current: OptionalSessionDep):
    dto = dto.model_copy(update={"citizen_id": _acting_citizen(current, dto.citizen_id)})
    listing_id = service.create_waste_listing(dto)
    return {"success": True, "listingID": listing_id, "message": "Listing created successfully"}


@router.put("/listings/{listing_id}/cancel", dependencies=[CitizenOnly])
def cancel_listing(
    listing_id: int, body: CancelListingRequest, service: CitizenServiceDep, current: OptionalSessionDep
):
    """
    Cancel a listing. Only the owner can cancel, and only while it is Pending.
    """
    if not service.cancel_listing(listing_id, _acting_citizen(current, body.citizen_id)):
        raise HTTPException(status_code=400, detail="Failed to cancel listing")
    return {"success": True, "message": "Listing cancelled successfully"}


@router.get("/transactions/{citizen_id}", response_model=List[TransactionRead], dependencies=[CitizenOnly])
def get_transactions(citizen_id: str, service: CitizenServiceDep):
    return service.get_my_transactions(citizen_id)


@router.get("/categories", response_model=List[CategoryRead])
def get_categories(service: CitizenServiceDep):
    return service.get_active_categories()


@router.get("/areas", response_model=List[AreaRead])
def get_areas(service: CitizenServiceDep):
    return service.get_areas()


@router.post("/price-estimate", response_model=PriceEstimate)
def price_estimate(dto: PriceEstimateRequest, service: CitizenServiceDep):
    return service.get_price_estimate(dto.category_id, dto.weight)


@router.post("/complaints", dependencies=[CitizenOnly])
def file_complaint(dto: ComplaintCreate, service: CitizenServiceDep, current: OptionalSessionDep):
    dto = dto.model_copy(update={"citizen_id": _acting_citizen(current, dto.citizen_id)})
    complaint_id = service.file_complaint(dto)
    return {"success": True, "complaintID": complaint_id, "message": "Complaint submitted"}
