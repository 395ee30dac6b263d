"""Tests for the web status API."""

import asyncio
from typing import Any, Callable, Iterator, List

import pytest
from fastapi.testclient import TestClient

from netreach.reachability import MockReachabilityFacility, Reachability
from netreach.web.app import create_app
from tests.test_harness import simulate_offline, simulate_wifi


@pytest.fixture
def web_reachability(mock_facility: MockReachabilityFacility) -> Iterator[Reachability]:
    """Provide a hostname monitor delivering on its own thread."""
    monitor = Reachability.with_hostname(
        "example.com", facility=mock_facility, is_mobile_device=False
    )
    yield monitor
    monitor.close()


@pytest.fixture
def test_client(web_reachability: Reachability) -> Iterator[TestClient]:
    """Create a test client for the FastAPI app with its lifespan running."""
    app = create_app(web_reachability)
    with TestClient(app) as client:
        yield client


class TestGetStatus:
    """Tests for GET /api/status."""

    def test_status_not_reachable(self, test_client: TestClient) -> None:
        """Test status when there is no network path."""
        response = test_client.get("/api/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "not_reachable"
        assert data["description"] == "No connection"
        assert data["watching"] is False
        assert data["target"] == "example.com"

    def test_status_wifi(
        self, test_client: TestClient, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test status on a Wi-Fi network."""
        simulate_wifi(mock_facility)

        data = test_client.get("/api/status").json()

        assert data["status"] == "wifi"
        assert data["description"] == "WiFi network"

    def test_status_closed_monitor(
        self, test_client: TestClient, web_reachability: Reachability
    ) -> None:
        """Test status after the monitor has been closed."""
        web_reachability.close()

        data = test_client.get("/api/status").json()

        assert data["status"] == "not_reachable"
        assert data["target"] is None


class TestWatchEndpoints:
    """Tests for POST /api/watch/start and /api/watch/stop."""

    def test_start_and_stop(self, test_client: TestClient, web_reachability: Reachability) -> None:
        """Test toggling change notifications."""
        response = test_client.post("/api/watch/start")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "watching": True,
            "message": "Watching started",
        }
        assert web_reachability.is_watching

        response = test_client.post("/api/watch/stop")
        assert response.status_code == 200
        assert response.json()["watching"] is False
        assert not web_reachability.is_watching

    def test_start_twice(self, test_client: TestClient) -> None:
        """Test that starting twice succeeds both times."""
        assert test_client.post("/api/watch/start").status_code == 200
        assert test_client.post("/api/watch/start").json()["watching"] is True

    def test_start_failure(
        self, test_client: TestClient, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that a registration failure maps to 503."""
        mock_facility.fail_set_callback = True

        response = test_client.post("/api/watch/start")

        assert response.status_code == 503
        assert "Unable to register callback" in response.json()["detail"]

    def test_stop_when_idle(self, test_client: TestClient) -> None:
        """Test that stopping an idle monitor succeeds."""
        response = test_client.post("/api/watch/stop")

        assert response.status_code == 200
        assert response.json()["watching"] is False


class TestStatusWebSocket:
    """Tests for WS /ws."""

    def test_snapshot_on_connect(self, test_client: TestClient) -> None:
        """Test that a client first receives the current status."""
        with test_client.websocket_connect("/ws") as websocket:
            event = websocket.receive_json()

        assert event["type"] == "status_snapshot"
        assert event["data"]["status"] == "not_reachable"

    def test_changes_are_streamed(
        self,
        test_client: TestClient,
        web_reachability: Reachability,
        mock_facility: MockReachabilityFacility,
    ) -> None:
        """Test that published statuses reach connected clients in order."""
        web_reachability.start_watching()

        with test_client.websocket_connect("/ws") as websocket:
            assert websocket.receive_json()["type"] == "status_snapshot"

            simulate_wifi(mock_facility)
            first = websocket.receive_json()
            simulate_offline(mock_facility)
            second = websocket.receive_json()

        assert first["type"] == "status_changed"
        assert first["data"] == {"status": "wifi", "description": "WiFi network"}
        assert second["data"]["status"] == "not_reachable"

    def test_monitor_calls_leave_event_loop(
        self,
        test_client: TestClient,
        web_reachability: Reachability,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that blocking monitor calls run on worker threads, not the event loop."""
        calls: List[str] = []

        def where() -> str:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                return "worker thread"
            return "event loop"

        def recording(fn: Callable[[], Any]) -> Callable[[], Any]:
            def wrapper() -> Any:
                calls.append(where())
                return fn()

            return wrapper

        monkeypatch.setattr(
            web_reachability, "current_status", recording(web_reachability.current_status)
        )
        monkeypatch.setattr(
            web_reachability, "start_watching", recording(web_reachability.start_watching)
        )
        monkeypatch.setattr(
            web_reachability, "stop_watching", recording(web_reachability.stop_watching)
        )

        assert test_client.get("/api/status").status_code == 200
        assert test_client.post("/api/watch/start").status_code == 200
        assert test_client.post("/api/watch/stop").status_code == 200
        with test_client.websocket_connect("/ws") as websocket:
            assert websocket.receive_json()["type"] == "status_snapshot"

        assert len(calls) == 4
        assert calls == ["worker thread"] * 4

    def test_lifespan_unsubscribes(self, web_reachability: Reachability) -> None:
        """Test that the app stops observing the monitor on shutdown."""
        app = create_app(web_reachability)

        with TestClient(app):
            assert web_reachability._publisher.subscriber_count == 1  # pylint: disable=protected-access

        assert web_reachability._publisher.subscriber_count == 0  # pylint: disable=protected-access
