"""Tests for the HTTP API."""

from fastapi.testclient import TestClient

from nutriscan.api.app import create_app
from nutriscan.containers import AppContainer
from nutriscan.services.connectivity import ConnectivityMonitor
from tests.conftest import FakeRemoteSink, InMemoryPersistence


def test_health_endpoint(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_evaluate_returns_flags_and_score(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        response = client.post(
            "/evaluate",
            json={
                "nutrients": {"carbs": 52, "sugar": 4, "fiber": 6},
                "condition": "diabetic",
            },
        )

    assert response.status_code == 200
    body = response.json()
    assert [flag["level"] for flag in body["flags"]] == ["critical", "good"]
    assert body["highest_level"] == "critical"
    assert body["health_score"] == 50
    assert body["recommendations"][-1] == "Drink plenty of water with meals"


def test_invalid_nutrients_return_422(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        response = client.post(
            "/scans", json={"nutrients": {"sodium": -1}, "condition": "hypertensive"}
        )
        queue_response = client.get("/queue")

    assert response.status_code == 422
    assert "sodium" in response.json()["detail"]
    assert queue_response.json()["pending_count"] == 0


def test_unknown_condition_is_rejected(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        response = client.post(
            "/evaluate", json={"nutrients": {}, "condition": "keto"}
        )

    assert response.status_code == 422


def test_scan_is_queued_while_offline_and_synced_on_reconnect(
    container: AppContainer, monitor: ConnectivityMonitor, sink: FakeRemoteSink
) -> None:
    monitor.set_online(False)

    with TestClient(create_app(container)) as client:
        created = client.post(
            "/scans",
            json={
                "nutrients": {"sodium": 890, "calories": 485},
                "condition": "hypertensive",
                "dish_name": "Jollof Rice",
            },
        )
        queued = client.get("/queue").json()

        reconnected = client.post("/connectivity", json={"online": True})

    assert created.status_code == 201
    record = created.json()
    assert record["sync_state"] == "pending"
    assert record["dish_name"] == "Jollof Rice"
    assert record["flags"][0]["level"] == "critical"
    assert queued["pending_count"] == 1
    assert queued["online"] is False
    assert [item["id"] for item in queued["records"]] == [record["id"]]
    assert reconnected.json() == {"online": True, "changed": True}
    # delivered, or still durably queued if shutdown interrupted the drain
    assert sink.submitted == [record["id"]] or container.queue.pending_count() == 1


def test_sync_endpoint_starts_drain(
    container: AppContainer, sink: FakeRemoteSink
) -> None:
    container.scan_service.set_offline_mode(True)

    with TestClient(create_app(container)) as client:
        client.post("/scans", json={"nutrients": {"protein": 30}})
        response = client.post("/sync")

    assert response.status_code == 202
    assert response.json()["status"] in {"accepted", "already_draining"}


def test_offline_mode_round_trip(
    container: AppContainer, persistence: InMemoryPersistence
) -> None:
    with TestClient(create_app(container)) as client:
        assert client.get("/offline-mode").json() == {"enabled": False}
        updated = client.put("/offline-mode", json={"enabled": True})
        current = client.get("/offline-mode").json()

    assert updated.json() == {"enabled": True}
    assert current == {"enabled": True}
    assert persistence.blobs["offline_mode"] == b"true"


def test_persistence_failure_returns_503(
    container: AppContainer, persistence: InMemoryPersistence
) -> None:
    persistence.fail_saves = True

    with TestClient(create_app(container)) as client:
        response = client.post("/scans", json={"nutrients": {"fat": 10}})

    assert response.status_code == 503


def test_offline_mode_toggle(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        first = client.post("/offline-mode/toggle")
        second = client.post("/offline-mode/toggle")

    assert first.json() == {"enabled": True}
    assert second.json() == {"enabled": False}


def test_oversized_amount_returns_422(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        response = client.post(
            "/evaluate", json={"nutrients": {"sodium": 10**400}, "condition": "normal"}
        )

    assert response.status_code == 422
