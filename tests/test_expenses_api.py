from __future__ import annotations

from decimal import Decimal

from fastapi.testclient import TestClient


def test_expense_crud_round_trip(crew_and_vessel, auth_headers):
    from fleet_ledger.main import create_app

    _, vessel_id = crew_and_vessel
    with TestClient(create_app()) as client:
        created = client.post(
            f"/api/vessels/{vessel_id}/expenses",
            json={
                "expenseDate": "2024-03-10T00:00:00Z",
                "total": "42.50",
                "description": "Deck paint",
            },
            headers=auth_headers,
        )
        assert created.status_code == 200
        expense = created.json()
        assert expense["category"] == "Other"
        assert expense["paymentMethod"] == "Unknown"
        assert expense["status"] == "pending"

        patched = client.patch(
            f"/api/expenses/{expense['id']}",
            json={"category": "Maintenance", "status": None, "notes": "Two coats"},
            headers=auth_headers,
        )
        assert patched.status_code == 200
        assert patched.json()["category"] == "Maintenance"
        assert patched.json()["status"] == "pending"
        assert patched.json()["notes"] == "Two coats"

        listed = client.get(f"/api/vessels/{vessel_id}/expenses", headers=auth_headers)
        assert [Decimal(e["total"]) for e in listed.json()] == [Decimal("42.50")]

        assert client.get("/api/expenses/999", headers=auth_headers).status_code == 404
        assert client.get("/api/vessels/999/expenses", headers=auth_headers).status_code == 404
