from __future__ import annotations

from dataclasses import replace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from labops.controllers.reservation_controller import router as reservation_router
from labops.controllers.statistics_controller import router as statistics_router
from labops.services.conflict_service import ConflictService
from labops.services.statistics_service import StatisticsEngine
from labops.services.workflow_service import ReservationWorkflowService
from labops.utils.config import get_settings


def _build_test_settings():
    get_settings.cache_clear()
    return replace(get_settings(), conflict_buffer_days=1, statistics_top_items_limit=5)


def _build_test_app() -> tuple[FastAPI, ReservationWorkflowService]:
    settings = _build_test_settings()
    conflict_service = ConflictService(settings=settings)
    statistics_engine = StatisticsEngine(settings=settings)
    workflow_service = ReservationWorkflowService(
        settings=settings,
        conflict_service=conflict_service,
        statistics_engine=statistics_engine,
    )

    app = FastAPI()
    app.include_router(reservation_router)
    app.include_router(statistics_router)
    app.state.conflict_service = conflict_service
    app.state.statistics_engine = statistics_engine
    app.state.workflow_service = workflow_service
    return app, workflow_service


def _rows() -> list[dict]:
    return [
        {"id": "1", "device": "Scope-1", "region": "Lab-A", "startDate": "2024-01-01", "endDate": "2024-01-05", "requestedBy": "alice", "status": "new"},
        {"id": "2", "device": "scope-1", "region": "lab-a", "startDate": "2024-01-03", "endDate": "2024-01-08", "requestedBy": "bob", "status": "New"},
        {"id": "3", "device": "scope-2", "region": "lab-a", "startDate": "2024-01-03", "endDate": "2024-01-08", "requestedBy": "bob", "status": "new"},
        {"id": "4", "device": "scope-1", "region": "lab-a", "startDate": "2024-05-01", "endDate": "2024-05-04", "requestedBy": "carol", "status": "resolved"},
        {"id": "5", "device": "scope-1", "region": "lab-a", "startDate": "2024-05-10", "endDate": "2024-05-02", "requestedBy": "carol", "status": "resolved"},
        {"id": "6", "device": "", "region": "lab-a", "startDate": None, "endDate": None, "requestedBy": "dave", "status": "new", "valid": False},
    ]


def test_health() -> None:
    app, _ = _build_test_app()
    with TestClient(app) as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_conflicts_require_loaded_batch() -> None:
    app, _ = _build_test_app()
    with TestClient(app) as client:
        response = client.post("/conflicts")
    assert response.status_code == 400


def test_reservation_workflow_end_to_end() -> None:
    app, workflow_service = _build_test_app()

    with TestClient(app) as client:
        load_response = client.post("/reservations", json={"reservations": _rows()})
        assert load_response.status_code == 200, load_response.text
        assert load_response.json() == {"total_rows": 6, "valid_rows": 4, "skipped_rows": 2}

        summary_response = client.get("/reservations/summary")
        assert summary_response.status_code == 200
        summary = summary_response.json()
        assert summary["data_loaded"] is True
        assert summary["new_reservations"] == 3
        assert summary["resolved_reservations"] == 1

        conflicts_response = client.post("/conflicts")
        assert conflicts_response.status_code == 200, conflicts_response.text
        report = conflicts_response.json()
        assert report["summary"] == {
            "total_new": 3,
            "conflict_groups": 1,
            "total_conflicted": 2,
            "total_valid": 1,
        }
        group = report["conflict_groups"][0]
        assert group["primary_id"] == "1"
        assert group["reservations"][0]["suggestion"] is None
        assert group["reservations"][1]["suggestion"] == (
            "Reschedule: 2024-01-06 → 2024-01-10 (Duration: 5 days)"
        )
        assert [item["id"] for item in report["valid_reservations"]] == ["3"]
        assert workflow_service.get_latest_conflict_report() is not None

        stats_response = client.get(
            "/statistics", params={"months_back": 0, "reference_date": "2024-06-15"}
        )
        assert stats_response.status_code == 200, stats_response.text
        stats = stats_response.json()
        assert stats["summary"]["total_reservations"] == 1
        assert stats["rankings"]["top_devices"]["lab-a"][0]["total_days"] == 4
        assert len(stats["heatmap"]["months"]) == 12

        bad_response = client.get("/statistics", params={"months_back": 2})
        assert bad_response.status_code == 400

        cache_response = client.get("/statistics/cache")
        assert cache_response.status_code == 200
        assert cache_response.json()["size"] == 1

        clear_response = client.post("/statistics/cache/clear")
        assert clear_response.json() == {"status": "CLEARED"}
        assert client.get("/statistics/cache").json()["size"] == 0

        reset_response = client.delete("/reservations")
        assert reset_response.json() == {"status": "RESET"}
        assert client.get("/reservations/summary").json()["data_loaded"] is False


def test_reload_clears_statistics_cache() -> None:
    app, workflow_service = _build_test_app()

    with TestClient(app) as client:
        client.post("/reservations", json={"reservations": _rows()})
        client.get("/statistics", params={"months_back": 0, "reference_date": "2024-06-15"})
        assert len(workflow_service.statistics_engine.cache) == 1

        client.post("/reservations", json={"reservations": _rows()[:2]})
        assert len(workflow_service.statistics_engine.cache) == 0


def test_negative_months_back_is_rejected_by_query_validation() -> None:
    app, _ = _build_test_app()
    with TestClient(app) as client:
        response = client.get("/statistics", params={"months_back": -1})
    assert response.status_code == 422


def test_unparseable_rows_are_skipped_not_rejected() -> None:
    app, workflow_service = _build_test_app()
    rows = [
        _rows()[0],
        {"id": "7", "device": "scope-1", "region": "lab-a", "startDate": None, "endDate": "2024-01-05", "requestedBy": "erin", "status": "new"},
    ]

    with TestClient(app) as client:
        response = client.post("/reservations", json={"reservations": rows})

    assert response.status_code == 200, response.text
    assert response.json() == {"total_rows": 2, "valid_rows": 1, "skipped_rows": 1}
    assert [item.id for item in workflow_service.get_all_reservations()] == ["1"]
