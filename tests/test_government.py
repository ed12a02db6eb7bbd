from datetime import timedelta

import pytest

from conftest import create_listing
from models import Category, Complaint, Operator, User, WasteListing, utcnow
from security import verify_password


def collect(client, world, listing_id, weight):
    response = client.post(
        "/api/operator/collect",
        json={
            "operatorID": world.operator_id,
            "listingID": listing_id,
            "collectedWeight": weight,
            "warehouseID": world.warehouse_id,
        },
    )
    assert response.status_code == 200, response.text


class TestWarehouses:
    def test_inventory_figures(self, client, world):
        client.post(
            "/api/operator/deposit",
            json={"warehouseID": world.warehouse_id, "categoryID": world.paper_id, "quantity": 250},
        )

        inventory = client.get("/api/government/warehouse-inventory", params={"warehouseID": world.warehouse_id}).json()

        assert len(inventory) == 1
        assert inventory[0]["capacityUsedPercent"] == 25.0
        assert inventory[0]["availableCapacity"] == 750.0
        assert inventory[0]["categoryCount"] == 1
        assert inventory[0]["areaName"] == "Gulberg"

    def test_create_and_list_warehouses(self, client, world):
        response = client.post(
            "/api/government/warehouses",
            json={"warehouseName": "Harbour Yard", "areaID": world.other_area_id, "address": "Port Road", "capacity": 500},
        )
        assert response.status_code == 200

        names = [w["warehouseName"] for w in client.get("/api/government/warehouses").json()]
        assert names == ["Central Depot", "Harbour Yard"]
        assert len(client.get("/api/government/warehouse-inventory").json()) == 2

    def test_stock_listing(self, client, world):
        client.post(
            "/api/operator/deposit",
            json={"warehouseID": world.warehouse_id, "categoryID": world.plastic_id, "quantity": 12},
        )

        stock = client.get("/api/government/warehouse-stock").json()

        assert [(s["categoryName"], s["currentWeight"]) for s in stock] == [("Plastic", 12.0)]


class TestCategories:
    def test_create_category(self, client, world):
        response = client.post(
            "/api/government/categories",
            json={"categoryName": "Glass", "basePricePerKg": 8, "description": "Bottles and jars"},
        )

        assert response.status_code == 200
        names = [c["categoryName"] for c in client.get("/api/government/categories").json()]
        assert names == ["Glass", "Paper", "Plastic"]

    def test_negative_price_rejected(self, client, world):
        response = client.post("/api/government/categories", json={"categoryName": "Glass", "basePricePerKg": -1})
        assert response.status_code == 400

    def test_price_update_reprices_pending_only(self, client, world, session):
        pending = create_listing(client, world, weight="3.33")
        collected = create_listing(client, world, weight=2)
        collect(client, world, collected, 2)

        response = client.put(f"/api/government/categories/{world.plastic_id}/price", json={"newPrice": 60.15})

        assert response.status_code == 200
        session.expire_all()
        # 3.33 * 60.15 = 200.2995
        assert str(session.get(WasteListing, pending).estimated_price) == "200.30"
        assert str(session.get(WasteListing, collected).estimated_price) == "100.00"
        assert str(session.get(Category, world.plastic_id).base_price_per_kg) == "60.15"

    def test_price_update_unknown_category(self, client, world):
        response = client.put("/api/government/categories/999/price", json={"newPrice": 10})

        assert response.status_code == 400
        assert response.json()["message"] == "Failed to update price"

    def test_delete_unused_category(self, client, world, session):
        assert client.delete(f"/api/government/categories/{world.paper_id}").status_code == 200
        session.expire_all()
        assert session.get(Category, world.paper_id) is None

    def test_delete_referenced_category_fails(self, client, world, session):
        create_listing(client, world)

        response = client.delete(f"/api/government/categories/{world.plastic_id}")

        assert response.status_code == 400
        session.expire_all()
        assert session.get(Category, world.plastic_id) is not None

    def test_delete_unknown_category(self, client, world):
        assert client.delete("/api/government/categories/999").status_code == 400


class TestOperators:
    def test_create_operator_returns_temporary_password(self, client, world, session):
        response = client.post(
            "/api/government/operators",
            json={"cnic": "42201-9999999-9", "fullName": "Zain Raza", "phoneNumber": "03331234567"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["operatorID"] == "42201-9999999-9"
        session.expire_all()
        user = session.get(User, "42201-9999999-9")
        valid, _ = verify_password(body["temporaryPassword"], user.password_hash)
        assert valid
        assert session.get(Operator, "42201-9999999-9").status == "Available"

    def test_new_operator_can_log_in(self, client, world):
        body = client.post(
            "/api/government/operators",
            json={"cnic": "42201-9999999-9", "fullName": "Zain Raza"},
        ).json()

        login = client.post("/api/auth/login", json={"cnic": "42201-9999999-9", "password": body["temporaryPassword"]})

        assert login.status_code == 200
        assert login.json()["user"]["operatorID"] == "42201-9999999-9"

    def test_duplicate_operator(self, client, world):
        response = client.post("/api/government/operators", json={"cnic": world.citizen_id, "fullName": "Someone"})
        assert response.status_code == 409

    def test_assign_and_deactivate(self, client, world, session):
        route = client.post("/api/government/routes", json={"routeName": "Clifton Loop", "areaID": world.other_area_id})
        route_id = route.json()["routeID"]

        assigned = client.put(
            f"/api/government/operators/{world.operator_id}/assign",
            json={"routeID": route_id, "warehouseID": world.warehouse_id},
        )
        assert assigned.status_code == 200
        operators = client.get("/api/government/operators").json()
        assert operators[0]["routeName"] == "Clifton Loop"

        assert client.put(f"/api/government/operators/deactivate/{world.operator_id}").status_code == 200
        session.expire_all()
        op = session.get(Operator, world.operator_id)
        assert (op.status, op.route_id, op.warehouse_id) == ("Offline", None, None)

    def test_assign_to_missing_route(self, client, world):
        response = client.put(
            f"/api/government/operators/{world.operator_id}/assign",
            json={"routeID": 999, "warehouseID": world.warehouse_id},
        )
        assert response.status_code == 400

    def test_deactivate_unknown_operator(self, client, world):
        assert client.put("/api/government/operators/deactivate/00000-0000000-0").status_code == 400


class TestComplaints:
    @pytest.fixture
    def complaints(self, session, world):
        older = Complaint(
            citizen_id=world.citizen_id,
            complaint_type="Billing",
            description="Wrong amount",
            status="Resolved",
            created_at=utcnow() - timedelta(days=3),
        )
        newer = Complaint(
            citizen_id=world.citizen_id,
            operator_id=world.operator_id,
            complaint_type="Rude staff",
            description="Operator was rude",
        )
        session.add_all([older, newer])
        session.commit()
        return older.complaint_id, newer.complaint_id

    def test_all_complaints_newest_first(self, client, world, complaints):
        older, newer = complaints
        listed = client.get("/api/government/complaints").json()

        assert [c["complaintID"] for c in listed] == [newer, older]
        assert listed[0]["operatorName"] == "Imran Ali"
        assert listed[0]["citizenName"] == "Ayesha Khan"

    def test_filter_by_status(self, client, world, complaints):
        older, _ = complaints
        listed = client.get("/api/government/complaints", params={"status": "Resolved"}).json()
        assert [c["complaintID"] for c in listed] == [older]

    def test_close_complaint(self, client, world, complaints, session):
        _, newer = complaints

        response = client.put(f"/api/government/complaints/{newer}/status", json={"newStatus": "Closed"})

        assert response.status_code == 200
        session.expire_all()
        assert session.get(Complaint, newer).status == "Closed"

    def test_unknown_status_rejected(self, client, world, complaints):
        _, newer = complaints
        response = client.put(f"/api/government/complaints/{newer}/status", json={"newStatus": "Ignored"})
        assert response.status_code == 400

    def test_unknown_complaint(self, client, world):
        response = client.put("/api/government/complaints/999/status", json={"newStatus": "Closed"})
        assert response.status_code == 400


class TestReports:
    def test_high_yield_ranks_by_revenue(self, client, world, session):
        small = create_listing(client, world, weight=1)
        big = create_listing(client, world, weight=10, citizen_id=world.neighbour_id)
        create_listing(client, world, weight=50)
        collect(client, world, small, 1)
        collect(client, world, big, 10)

        report = client.get("/api/government/reports/high-yield").json()

        assert [(r["areaName"], r["revenueRank"]) for r in report] == [("Clifton", 1), ("Gulberg", 2)]
        assert report[0]["totalRevenue"] == 500.0
        assert report[0]["totalListings"] == 1
        assert report[1]["totalWeight"] == 1.0

    def test_high_yield_date_window(self, client, world):
        listing_id = create_listing(client, world, weight=1)
        collect(client, world, listing_id, 1)

        future = (utcnow() + timedelta(days=1)).isoformat()
        assert client.get("/api/government/reports/high-yield", params={"startDate": future}).json() == []
        past = (utcnow() - timedelta(days=1)).isoformat()
        assert len(client.get("/api/government/reports/high-yield", params={"startDate": past, "endDate": future}).json()) == 1

    def test_operator_performance_report(self, client, world, session):
        listing_id = create_listing(client, world, weight=3)
        collect(client, world, listing_id, 3)

        report = client.get("/api/government/reports/operator-performance").json()

        assert report == [
            {
                "operatorID": world.operator_id,
                "fullName": "Imran Ali",
                "totalCollections": 1,
                "totalWeightKg": 3.0,
                "complaints": 0,
                "rating": "Excellent",
            }
        ]

    def test_transaction_summaries(self, client, world):
        listing_id = create_listing(client, world, weight=2)
        collect(client, world, listing_id, 2)

        summaries = client.get("/api/government/reports/transactions").json()

        assert len(summaries) == 1
        assert summaries[0]["citizenName"] == "Ayesha Khan"
        assert summaries[0]["operatorName"] == "Imran Ali"
        assert summaries[0]["itemCount"] == 1
        assert summaries[0]["totalWeight"] == 2.0
        assert summaries[0]["totalAmount"] == 100.0


class TestRoutesAndAreas:
    def test_create_area_and_route(self, client, world):
        area = client.post("/api/government/areas", json={"areaName": "Saddar", "city": "Rawalpindi"})
        assert area.status_code == 200

        route = client.post("/api/government/routes", json={"routeName": "Saddar Ring", "areaID": area.json()["areaID"]})
        assert route.status_code == 200

        routes = client.get("/api/government/routes").json()
        saddar = next(r for r in routes if r["routeName"] == "Saddar Ring")
        assert saddar["areaName"] == "Saddar"
        assert [a["city"] for a in client.get("/api/government/areas").json()] == ["Karachi", "Lahore", "Rawalpindi"]

    def test_route_for_unknown_area(self, client, world):
        response = client.post("/api/government/routes", json={"routeName": "Nowhere", "areaID": 999})
        assert response.status_code == 400
