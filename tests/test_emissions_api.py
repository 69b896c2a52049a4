"""End-to-end tests for the calculate-only and reporting endpoints."""

from datetime import datetime, timedelta, timezone

import pytest

from app.carbon_model import EmissionsEstimator
from app.climatiq import get_estimator
from app.main import app

from conftest import StubRemote


def test_health(client):
    assert client.get("/").json()["status"] == "OK"


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"activityType": "commute", "distance": 100, "transportMode": "car"}, 21.0),
        ({"activityType": "commute", "distance": "8", "transportMode": "bicycle"}, 0.0),
        ({"activityType": "food", "foodType": "beef", "quantity": 1000, "unit": "g"}, 27.0),
        ({"activityType": "electricity", "energyConsumed": 10, "energyUnit": "kwh"}, 4.75),
    ],
)
def test_calculate_with_fallback(client, payload, expected):
    response = client.post("/api/emissions/calculate", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["unit"] == "kg"
    assert body["co2e"] == pytest.approx(expected)


def test_calculate_uses_remote_result(client):
    remote = StubRemote(result=12.34)
    app.dependency_overrides[get_estimator] = lambda: EmissionsEstimator(remote=remote)

    response = client.post(
        "/api/emissions/calculate", json={"activityType": "electricity", "energyConsumed": 5}
    )

    assert response.json()["co2e"] == 12.34
    assert remote.calls[0].parameters == {"energy": 5.0, "energy_unit": "kWh"}


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"distance": 5}, "Activity type is required"),
        ({"activityType": "gardening"}, "Invalid activity type"),
        ({"activityType": "commute", "distance": "nan"}, "Distance must be a non-negative number"),
        ({"activityType": "electricity", "energyConsumed": -2}, "Energy consumed must be a non-negative number"),
    ],
)
def test_calculate_rejects_invalid_input(client, payload, message):
    response = client.post("/api/emissions/calculate", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"] == message


def test_calculate_does_not_persist(client):
    client.post("/api/emissions/calculate", json={"activityType": "food", "quantity": 1})
    assert client.get("/api/activities/").json() == []


def test_total_emissions(client):
    client.post("/api/activities/", json={"activityType": "food", "foodType": "beef", "quantity": 1, "date": "2024-03-01T10:00:00"})
    client.post("/api/activities/", json={"activityType": "commute", "distance": 100, "date": "2024-03-05T10:00:00"})
    client.post("/api/activities/", json={"activityType": "commute", "distance": 50, "transportMode": "train", "date": "2024-03-06T10:00:00"})
    client.post("/api/activities/", json={"userId": "bob", "activityType": "food", "quantity": 10})

    body = client.get("/api/emissions/total").json()

    assert body["success"] is True
    assert body["count"] == 3
    assert body["totalCo2e"] == pytest.approx(27.0 + 21.0 + 2.05)
    assert body["breakdownByActivity"]["commute"] == pytest.approx(23.05)
    assert body["breakdownByActivity"]["food"] == pytest.approx(27.0)
    assert len(body["activities"]) == 3

    ranged = client.get("/api/emissions/total", params={"startDate": "2024-03-04T00:00:00"}).json()
    assert ranged["count"] == 2
    assert ranged["totalCo2e"] == pytest.approx(23.05)


def _recent(days_ago: int) -> str:
    moment = datetime.now(timezone.utc) - timedelta(days=days_ago)
    return moment.replace(hour=12, minute=0, second=0, microsecond=0, tzinfo=None).isoformat()


def test_emissions_by_day(client):
    client.post("/api/activities/", json={"activityType": "food", "quantity": 1, "date": _recent(2)})
    client.post("/api/activities/", json={"activityType": "food", "quantity": 2, "date": _recent(2)})
    client.post("/api/activities/", json={"activityType": "food", "quantity": 1, "date": _recent(1)})
    client.post("/api/activities/", json={"activityType": "food", "quantity": 5, "date": _recent(30)})

    body = client.get("/api/emissions/by-period", params={"period": "day", "days": 7}).json()

    assert body["period"] == "day"
    assert body["data"] == [
        {"date": _recent(2)[:10], "co2e": pytest.approx(6.0)},
        {"date": _recent(1)[:10], "co2e": pytest.approx(2.0)},
    ]


def test_emissions_by_week_totals_all_recent_activity(client):
    for days_ago in (1, 2, 3):
        client.post("/api/activities/", json={"activityType": "food", "quantity": 1, "date": _recent(days_ago)})

    body = client.get("/api/emissions/by-period", params={"period": "week"}).json()

    assert body["period"] == "week"
    assert sum(group["co2e"] for group in body["data"]) == pytest.approx(6.0)
    for group in body["data"]:
        assert datetime.fromisoformat(group["date"]).weekday() == 6


def test_emissions_by_period_rejects_unknown_period(client):
    assert client.get("/api/emissions/by-period", params={"period": "month"}).status_code == 422


def test_calculate_response_keys(client):
    response = client.post(
        "/api/emissions/calculate",
        json={"activityType": "commute", "distance": 50, "transportMode": "train"},
    )

    body = response.json()
    assert set(body) == {"success", "co2e", "unit"}
    assert body["co2e"] == pytest.approx(2.05)


def test_report_keys(client):
    client.post("/api/activities/", json={"activityType": "food", "quantity": 1})

    totals = client.get("/api/emissions/total").json()
    assert set(totals) == {"success", "totalCo2e", "count", "breakdownByActivity", "activities"}
    assert "co2e" in totals["activities"][0]

    period = client.get("/api/emissions/by-period").json()
    assert set(period["data"][0]) == {"date", "co2e"}


def test_calculate_rejects_boolean_distance(client):
    response = client.post(
        "/api/emissions/calculate", json={"activityType": "commute", "distance": True}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Distance must be a non-negative number"
