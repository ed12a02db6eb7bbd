from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from models import Role
from schemas import (
    AreaCreate,
    AreaRead,
    CategoryCreate,
    CategoryPriceUpdate,
    CategoryRead,
    ComplaintRead,
    ComplaintStatusChange,
    HighYieldArea,
    OperatorAssignment,
    OperatorCreate,
    OperatorPerformanceReport,
    OperatorRead,
    RouteCreate,
    RouteRead,
    TransactionSummary,
    WarehouseCreate,
    WarehouseInventory,
    WarehouseRead,
    WarehouseStockRead,
)
from services.factory import GovernmentServiceDep

from .auth import require_role

router = APIRouter(tags=["government"], dependencies=[Depends(require_role(Role.GOVERNMENT))])


# ============================================
# Warehouses
# ============================================


@router.get("/warehouse-inventory", response_model=List[WarehouseInventory])
def warehouse_inventory(
    service: GovernmentServiceDep,
    warehouse_id: Optional[int] = Query(default=None, alias="warehouseID"),
):
    return service.get_warehouse_inventory(warehouse_id)


@router.get("/warehouses", response_model=List[WarehouseRead])
def list_warehouses(service: GovernmentServiceDep):
    return service.get_all_warehouses()


@router.post("/warehouses")
def create_warehouse(dto: WarehouseCreate, service: GovernmentServiceDep):
    warehouse_id = service.create_warehouse(dto)
    return {"success": True, "warehouseID": warehouse_id, "message": "Warehouse created successfully"}


@router.get("/warehouse-stock", response_model=List[WarehouseStockRead])
def warehouse_stock(
    service: GovernmentServiceDep,
    warehouse_id: Optional[int] = Query(default=None, alias="warehouseID"),
):
    return service.get_warehouse_stock(warehouse_id)


# ============================================
# Reports
# ============================================


@router.get("/reports/high-yield", response_model=List[HighYieldArea])
def high_yield_report(
    service: GovernmentServiceDep,
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
):
    """
    Revenue per area from collected listings, ranked highest first.
    """
    return service.analyze_high_yield_areas(start_date, end_date)


@router.get("/reports/operator-performance", response_model=List[OperatorPerformanceReport])
def operator_performance_report(service: GovernmentServiceDep):
    return service.get_operator_performance_report()


@router.get("/reports/transactions", response_model=List[TransactionSummary])
def transaction_report(service: GovernmentServiceDep):
    return service.get_transaction_summaries()


# ============================================
# Categories
# ============================================


@router.get("/categories", response_model=List[CategoryRead])
def list_categories(service: GovernmentServiceDep):
    return service.get_all_categories()


@router.post("/categories")
def create_category(dto: CategoryCreate, service: GovernmentServiceDep):
    category_id = service.create_category(dto)
    return {"success": True, "categoryID": category_id, "message": "Category created successfully"}


@router.put("/categories/{category_id}/price")
def update_category_price(category_id: int, dto: CategoryPriceUpdate, service: GovernmentServiceDep):
    """
    Change the price per kg; pending listings of the category are repriced.
    """
    if not service.update_category_price(category_id, dto.new_price):
        raise HTTPException(status_code=400, detail="Failed to update price")
    return {"success": True, "message": "Category price updated"}


@router.delete("/categories/{category_id}")
def delete_category(category_id: int, service: GovernmentServiceDep):
    if not service.delete_category(category_id):
        raise HTTPException(status_code=400, detail="Failed to delete category. It has linked records.")
    return {"success": True, "message": "Category deleted successfully"}


# ============================================
# Operators
# ============================================


@router.get("/operators", response_model=List[OperatorRead])
def list_operators(service: GovernmentServiceDep):
    return service.get_all_operators()


@router.post("/operators")
def create_operator(dto: OperatorCreate, service: GovernmentServiceDep):
    """
    Create an operator account. The temporary password is only returned here.
    """
    created = service.create_operator(dto)
    return {"success": True, **created.model_dump(by_alias=True), "message": "Operator account created"}


@router.put("/operators/{operator_id}/assign")
def assign_operator(operator_id: str, dto: OperatorAssignment, service: GovernmentServiceDep):
    if not service.assign_operator_to_route(operator_id, dto.route_id, dto.warehouse_id):
        raise HTTPException(status_code=400, detail="Failed to assign operator")
    return {"success": True, "message": "Operator assigned successfully"}


@router.put("/operators/deactivate/{operator_id}")
def deactivate_operator(operator_id: str, service: GovernmentServiceDep):
    if not service.deactivate_operator(operator_id):
        raise HTTPException(status_code=400, detail="Failed to deactivate operator")
    return {"success": True, "message": "Operator deactivated"}


# ============================================
# Complaints
# ============================================


@router.get("/complaints", response_model=List[ComplaintRead])
def list_complaints(service: GovernmentServiceDep, status: Optional[str] = None):
    return service.get_all_complaints(status)


@router.put("/complaints/{complaint_id}/status")
def update_complaint_status(complaint_id: int, dto: ComplaintStatusChange, service: GovernmentServiceDep):
    if not service.update_complaint_status(complaint_id, dto.new_status):
        raise HTTPException(status_code=400, detail="Failed to update complaint status")
    return {"success": True, "message": "Complaint status updated"}


# ============================================
# Routes & areas
# ============================================


@router.get("/routes", response_model=List[RouteRead])
def list_routes(service: GovernmentServiceDep):
    return service.get_all_routes()


@router.post("/routes")
def create_route(dto: RouteCreate, service: GovernmentServiceDep):
    route_id = service.create_route(dto)
    return {"success": True, "routeID": route_id, "message": "Route created successfully"}


@router.get("/areas", response_model=List[AreaRead])
def list_areas(service: GovernmentServiceDep):
    return service.get_all_areas()


@router.post("/areas")
def create_area(dto: AreaCreate, service: GovernmentServiceDep):
    area_id = service.create_area(dto)
    return {"success": True, "areaID": area_id, "message": "Area created successfully"}
