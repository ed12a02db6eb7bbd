from typing import List

from fastapi import APIRouter, Depends, HTTPException

from models import Role
from schemas import (
    ActiveComplaint,
    CollectionCreate,
    CollectionPoint,
    CollectionRead,
    CollectionResult,
    ComplaintStatusUpdate,
    OperatorDetails,
    OperatorPerformance,
    WarehouseDeposit,
)
from services.factory import OperatorServiceDep

from .auth import require_role

router = APIRouter(tags=["operator"], dependencies=[Depends(require_role(Role.OPERATOR))])


@router.get("/details/{operator_id}", response_model=OperatorDetails)
def get_details(operator_id: str, service: OperatorServiceDep):
    details = service.get_operator_details(operator_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Operator not found")
    return details


@router.get("/collections/{operator_id}", response_model=List[CollectionPoint])
def get_collection_points(operator_id: str, service: OperatorServiceDep):
    """
    Pending listings of citizens living in the operator's route area.
    """
    return service.get_my_collection_points(operator_id)


@router.post("/collect", response_model=CollectionResult)
def collect(dto: CollectionCreate, service: OperatorServiceDep):
    """
    Record a pickup: listing -> Collected, collection row, stock, payment.
    All of it commits together or not at all.
    """
    return service.collect_waste(dto)


@router.post("/deposit")
def deposit(dto: WarehouseDeposit, service: OperatorServiceDep):
    if not service.deposit_waste(dto):
        raise HTTPException(status_code=400, detail="Deposit failed")
    return {"success": True, "message": "Waste deposited at warehouse"}


@router.get("/history/{operator_id}", response_model=List[CollectionRead])
def get_history(operator_id: str, service: OperatorServiceDep):
    return service.get_my_collection_history(operator_id)


@router.get("/performance/{operator_id}", response_model=OperatorPerformance)
def get_performance(operator_id: str, service: OperatorServiceDep):
    performance = service.get_my_performance(operator_id)
    if performance is None:
        raise HTTPException(status_code=404, detail="Operator not found")
    return performance


@router.get("/complaints/{operator_id}", response_model=List[ActiveComplaint])
def get_complaints(operator_id: str, service: OperatorServiceDep):
    return service.get_my_complaints(operator_id)


@router.put("/complaint/status")
def update_complaint_status(dto: ComplaintStatusUpdate, service: OperatorServiceDep):
    if not service.update_complaint_status(dto.complaint_id, dto.status):
        raise HTTPException(status_code=404, detail="Complaint not found")
    return {"success": True, "message": "Complaint status updated"}
