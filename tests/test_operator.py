from decimal import Decimal

import pytest
from sqlmodel import func, select

import pricing
from conftest import create_listing
from errors import ConflictError
from models import Collection, Complaint, TransactionRecord, Warehouse, WarehouseStock, WasteListing, utcnow
from schemas import CollectionCreate


def collect(client, world, listing_id, weight=4, warehouse_id=None):
    return client.post(
        "/api/operator/collect",
        json={
            "operatorID": world.operator_id,
            "listingID": listing_id,
            "collectedWeight": weight,
            "warehouseID": warehouse_id or world.warehouse_id,
        },
    )


def collection_count(session):
    return session.exec(select(func.count()).select_from(Collection)).one()


class TestCollection:
    def test_collect_records_everything(self, client, world, session):
        listing_id = create_listing(client, world, weight=5)

        response = collect(client, world, listing_id, weight="4.5")

        assert response.status_code == 200
        result = response.json()
        assert result["success"] is True
        assert result["paymentAmount"] == 225.0
        assert len(result["verificationCode"]) == 10
        assert result["verificationCode"] == result["verificationCode"].upper()
        assert result["message"] == f"Collection recorded. Payment of Rs.225.00 pending. Code: {result['verificationCode']}"

        session.expire_all()
        listing = session.get(WasteListing, listing_id)
        assert listing.status == "Collected"
        assert listing.transaction_id == result["transactionID"]
        assert collection_count(session) == 1
        assert session.get(WarehouseStock, (world.warehouse_id, world.plastic_id)).current_weight == pytest.approx(4.5)
        assert session.get(Warehouse, world.warehouse_id).current_inventory == pytest.approx(4.5)

        record = session.get(TransactionRecord, result["transactionID"])
        assert record.payment_status == "Pending"
        assert record.payment_method == "Cash"
        assert record.citizen_id == world.citizen_id

    def test_fractional_weight_is_recorded_once(self, client, world, session):
        listing_id = create_listing(client, world, weight=5)

        result = collect(client, world, listing_id, weight="2.345").json()

        # 2.345 kg is kept as 2.35 kg everywhere
        assert result["paymentAmount"] == 117.5
        session.expire_all()
        collection = session.exec(select(Collection)).one()
        record = session.get(TransactionRecord, result["transactionID"])
        assert collection.collected_weight == Decimal("2.35")
        assert record.total_amount == collection.collected_weight * Decimal("50.00")
        assert session.get(WarehouseStock, (world.warehouse_id, world.plastic_id)).current_weight == pytest.approx(2.35)
        assert session.get(Warehouse, world.warehouse_id).current_inventory == pytest.approx(2.35)

    def test_stock_accumulates(self, client, world, session):
        for weight in (2, 3):
            listing_id = create_listing(client, world, weight=weight)
            assert collect(client, world, listing_id, weight=weight).status_code == 200

        session.expire_all()
        assert session.get(WarehouseStock, (world.warehouse_id, world.plastic_id)).current_weight == pytest.approx(5)
        assert session.get(Warehouse, world.warehouse_id).current_inventory == pytest.approx(5)

    def test_second_collection_conflicts(self, client, world, session):
        listing_id = create_listing(client, world)
        assert collect(client, world, listing_id).status_code == 200

        response = collect(client, world, listing_id)

        assert response.status_code == 409
        session.expire_all()
        assert collection_count(session) == 1

    def test_cancelled_listing_cannot_be_collected(self, client, world):
        listing_id = create_listing(client, world)
        client.put(f"/api/citizen/listings/{listing_id}/cancel", json={"citizenID": world.citizen_id})

        assert collect(client, world, listing_id).status_code == 409

    def test_missing_warehouse_rolls_back(self, client, world, session):
        listing_id = create_listing(client, world)

        response = collect(client, world, listing_id, warehouse_id=999)

        assert response.status_code in (400, 404)
        session.expire_all()
        assert session.get(WasteListing, listing_id).status == "Pending"
        assert collection_count(session) == 0
        assert session.exec(select(WarehouseStock)).all() == []


def test_failure_after_stock_update_rolls_back(services, world, session, monkeypatch):
    listing = WasteListing(
        created_at=utcnow(),
        citizen_id=world.citizen_id,
        category_id=world.plastic_id,
        weight=Decimal("3.00"),
        estimated_price=Decimal("150.00"),
    )
    session.add(listing)
    session.commit()
    listing_id = listing.listing_id

    def broken_code_generator():
        raise RuntimeError("payment gateway unavailable")

    monkeypatch.setattr(pricing, "generate_verification_code", broken_code_generator)

    with pytest.raises(RuntimeError):
        services.operator.collect_waste(
            CollectionCreate(
                operator_id=world.operator_id,
                listing_id=listing_id,
                collected_weight=Decimal("3"),
                warehouse_id=world.warehouse_id,
            )
        )

    session.expire_all()
    assert session.get(WasteListing, listing_id).status == "Pending"
    assert collection_count(session) == 0
    assert session.exec(select(WarehouseStock)).all() == []
    assert session.get(Warehouse, world.warehouse_id).current_inventory == 0
    assert session.exec(select(TransactionRecord)).all() == []


def test_unknown_listing_conflicts(services, world):
    with pytest.raises(ConflictError):
        services.operator.collect_waste(
            CollectionCreate(
                operator_id=world.operator_id,
                listing_id=12345,
                collected_weight=Decimal("1"),
                warehouse_id=world.warehouse_id,
            )
        )


class TestDeposit:
    def test_deposit_increments_stock(self, client, world, session):
        body = {"warehouseID": world.warehouse_id, "categoryID": world.paper_id, "quantity": 7.5}

        assert client.post("/api/operator/deposit", json=body).status_code == 200
        assert client.post("/api/operator/deposit", json=body).status_code == 200

        session.expire_all()
        assert session.get(WarehouseStock, (world.warehouse_id, world.paper_id)).current_weight == pytest.approx(15)
        assert session.get(Warehouse, world.warehouse_id).current_inventory == pytest.approx(15)

    def test_deposit_rounds_quantity_to_stored_scale(self, client, world, session):
        for quantity in ("1.234", "0.005"):
            body = {"warehouseID": world.warehouse_id, "categoryID": world.paper_id, "quantity": quantity}
            assert client.post("/api/operator/deposit", json=body).status_code == 200

        session.expire_all()
        assert session.get(WarehouseStock, (world.warehouse_id, world.paper_id)).current_weight == pytest.approx(1.24)
        assert session.get(Warehouse, world.warehouse_id).current_inventory == pytest.approx(1.24)

    def test_deposit_rounding_to_zero_fails(self, client, world):
        body = {"warehouseID": world.warehouse_id, "categoryID": world.paper_id, "quantity": "0.001"}
        assert client.post("/api/operator/deposit", json=body).status_code == 400

    def test_deposit_unknown_warehouse(self, client, world):
        body = {"warehouseID": 999, "categoryID": world.paper_id, "quantity": 1}

        response = client.post("/api/operator/deposit", json=body)

        assert response.status_code == 400
        assert response.json()["message"] == "Deposit failed"

    def test_deposit_requires_positive_quantity(self, client, world):
        body = {"warehouseID": world.warehouse_id, "categoryID": world.paper_id, "quantity": 0}
        assert client.post("/api/operator/deposit", json=body).status_code == 422


class TestOperatorViews:
    def test_details_include_route_and_warehouse(self, client, world):
        details = client.get(f"/api/operator/details/{world.operator_id}").json()

        assert details["fullName"] == "Imran Ali"
        assert details["route"]["routeName"] == "Gulberg North"
        assert details["route"]["areaName"] == "Gulberg"
        assert details["warehouse"]["warehouseName"] == "Central Depot"

    def test_unknown_operator(self, client, world):
        assert client.get("/api/operator/details/00000-0000000-0").status_code == 404
        assert client.get("/api/operator/performance/00000-0000000-0").status_code == 404

    def test_collection_points_cover_route_area_only(self, client, world):
        mine = create_listing(client, world)
        create_listing(client, world, citizen_id=world.neighbour_id)

        points = client.get(f"/api/operator/collections/{world.operator_id}").json()

        assert [point["listingID"] for point in points] == [mine]
        assert points[0]["citizenName"] == "Ayesha Khan"
        assert points[0]["areaName"] == "Gulberg"
        assert points[0]["categoryName"] == "Plastic"

    def test_history_and_performance(self, client, world):
        listing_id = create_listing(client, world)
        collect(client, world, listing_id, weight=2)

        history = client.get(f"/api/operator/history/{world.operator_id}").json()
        assert len(history) == 1
        assert history[0]["warehouseName"] == "Central Depot"
        assert history[0]["isVerified"] is True

        performance = client.get(f"/api/operator/performance/{world.operator_id}").json()
        assert performance["totalPickups"] == 1
        assert performance["totalCollectedWeight"] == 2.0
        assert performance["totalCollectedAmount"] == 100.0


class TestOperatorComplaints:
    @pytest.fixture
    def complaint_id(self, session, world):
        complaint = Complaint(
            citizen_id=world.citizen_id,
            operator_id=world.operator_id,
            complaint_type="Late pickup",
            description="Arrived two days late",
        )
        session.add(complaint)
        session.commit()
        return complaint.complaint_id

    def test_active_complaints(self, client, world, complaint_id):
        complaints = client.get(f"/api/operator/complaints/{world.operator_id}").json()

        assert [c["complaintID"] for c in complaints] == [complaint_id]
        assert complaints[0]["daysOpen"] == 0
        assert complaints[0]["routeName"] == "Gulberg North"

    def test_resolve_removes_from_active(self, client, world, complaint_id):
        response = client.put("/api/operator/complaint/status", json={"complaintID": complaint_id, "status": "Resolved"})

        assert response.status_code == 200
        assert client.get(f"/api/operator/complaints/{world.operator_id}").json() == []

    def test_operator_cannot_close(self, client, world, complaint_id):
        response = client.put("/api/operator/complaint/status", json={"complaintID": complaint_id, "status": "Closed"})
        assert response.status_code == 400

    def test_unknown_complaint(self, client, world):
        response = client.put("/api/operator/complaint/status", json={"complaintID": 999, "status": "In Progress"})

        assert response.status_code == 404
        assert response.json()["message"] == "Complaint not found"
