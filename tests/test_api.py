from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from backend.app.config import ApiSettings
from backend.app.main import create_app


@pytest.fixture
def client(tmp_path):
    settings = ApiSettings(db_path=":memory:", export_dir=tmp_path / "exports")
    return TestClient(create_app(settings))


@pytest.fixture
def vehicle_id(client):
    response = client.post(
        "/vehicles",
        json={"name": "Dzire", "plate_number": "KA01AB1234", "current_odo": "1000"},
    )
    assert response.status_code == 201
    return response.json()["vehicle_id"]


def trip_payload(vehicle_id, **overrides):
    payload = {
        "vehicle_id": vehicle_id,
        "driver_id": "drv-1",
        "duty_start": "2026-03-01T08:00:00",
        "duty_end": "2026-03-01T20:00:00",
        "start_km": "1000",
        "end_km": "1060",
        "segments": [{"category": "uber", "revenue": "1000"}],
        "fuel_entries": [{"fuel_type": "cng", "quantity": "6", "amount": "500"}],
        "toll_other": "14.74",
    }
    payload.update(overrides)
    return payload


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_one_way_estimate(client):
    response = client.post("/estimates", json={"trip_type": "one-way", "km": 100, "extra_charges": 50})

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["total"]) == 3650
    assert [f"{i['label']}: {i['amount']}" for i in body["line_items"]] == [
        "Base Fare (100 km × ₹36): ₹3600",
        "Extra Charges: ₹50",
    ]


def test_share_estimate_returns_text_and_link(client):
    response = client.post("/estimates/share", json={"trip_type": "city", "km": 10})

    body = response.json()
    assert "*Total: ₹400*" in body["text"]
    assert "*" not in body["plain_text"]
    assert body["share_url"].startswith("https://wa.me/?text=")


def test_trip_lifecycle_updates_odometer_and_financials(client, vehicle_id):
    preview = client.post("/trips/preview", json=trip_payload(vehicle_id)).json()
    assert preview["segments"][0]["km"] == "60"

    created = client.post("/trips", json=trip_payload(vehicle_id))
    assert created.status_code == 201
    trip = created.json()
    assert trip["driver_payout"] == "585.26"
    assert trip["profit"] == "400.00"
    assert trip["total_km"] == "60"

    [vehicle] = client.get("/vehicles").json()
    assert vehicle["current_odo"] == "1060"

    financials = client.get(f"/vehicles/{vehicle_id}/financials").json()
    assert financials["owner_profit"] == "400.00"

    client.post("/maintenance", json={"vehicle_id": vehicle_id, "cost": "100", "maintenance_type": "Water Wash"})
    [fleet_row] = client.get("/fleet/financials").json()
    assert fleet_row["net_owner_profit"] == "300.00"

    dashboard = client.get("/dashboard").json()
    assert dashboard["expenses"] == "514.74"

    updated = client.put(
        f"/trips/{trip['trip_id']}",
        json=trip_payload(vehicle_id, segments=[{"category": "personal", "revenue": "1000"}]),
    )
    assert updated.status_code == 200
    assert updated.json()["driver_payout"] == "250.00"
    assert [t["trip_id"] for t in client.get("/trips").json()] == [trip["trip_id"]]


def test_invalid_odometer_is_rejected(client, vehicle_id):
    response = client.post("/trips", json=trip_payload(vehicle_id, end_km="1000"))

    assert response.status_code == 422
    assert response.json()["detail"] == "End KM must be greater than Start KM"
    assert client.get("/trips").json() == []


def test_aware_and_naive_duty_times_list_together(client, vehicle_id):
    utc_trip = client.post(
        "/trips",
        json=trip_payload(vehicle_id, duty_start="2026-03-01T08:00:00Z", duty_end="2026-03-01T20:00:00Z"),
    ).json()
    local_trip = client.post(
        "/trips",
        json=trip_payload(
            vehicle_id,
            duty_start="2026-03-02T08:00:00",
            duty_end="2026-03-02T20:00:00",
            start_km="1060",
            end_km="1100",
        ),
    ).json()

    response = client.get("/trips")

    assert response.status_code == 200
    assert [t["trip_id"] for t in response.json()] == [local_trip["trip_id"], utc_trip["trip_id"]]
    assert not utc_trip["duty_start"].endswith(("Z", "+00:00"))
    assert client.get("/dashboard").status_code == 200
    assert client.get("/trips/export.xlsx").status_code == 200


def test_unknown_vehicle_is_not_found(client):
    response = client.post("/trips", json=trip_payload("missing"))
    assert response.status_code == 404


def test_settings_patch_and_reset(client):
    response = client.patch("/settings/logic", json={"uber_driver_share": 50})
    assert response.json()["logic"]["uber_driver_share"] == "50"

    response = client.patch("/settings/tariffs/city", json={"minimum_base_charge": 450})
    assert response.json()["tariffs"]["city"]["minimum_base_charge"] == "450"
    assert Decimal(client.post("/estimates", json={"trip_type": "city", "km": 10}).json()["total"]) == 450

    assert client.patch("/settings/logic", json={"surge": 2}).status_code == 422
    assert client.patch("/settings/tariffs/airport", json={"rate_per_km": 2}).status_code == 404

    reset = client.post("/settings/reset").json()
    assert reset["logic"]["uber_driver_share"] == "60"


def test_drivers_endpoints(client):
    created = client.post("/drivers", json={"name": "Ravi", "mobile": "9999999999"}).json()

    assert client.delete(f"/drivers/{created['driver_id']}").status_code == 204
    assert client.get("/drivers").json() == []
    assert client.delete(f"/drivers/{created['driver_id']}").status_code == 404


def test_ledger_export_download(client, vehicle_id):
    client.post("/trips", json=trip_payload(vehicle_id))

    response = client.get("/trips/export.xlsx")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
