from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from planner.gateway import DATASET_LESSONS
from planner.models import Activity, LessonPlan
from webapi.planner_api import create_app


@pytest.fixture
def client(gateway):
    with TestClient(create_app(gateway)) as test_client:
        yield test_client


def _data(response):
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True, body
    return body["data"]


def test_health(client):
    assert client.get("/health").json() == {"success": True, "version": "0.1.0"}


def test_list_sheets(client):
    data = _data(client.get("/sheets"))
    assert [s["sheet"] for s in data["sheets"]] == ["LKG", "UKG", "Reception"]


def test_unknown_sheet_is_404(client):
    assert client.get("/sheets/Year9/lessons").status_code == 404


def test_lessons_fall_back_to_sample(client):
    data = _data(client.get("/sheets/LKG/lessons"))

    assert data["origin"] == "sample"
    assert data["lessonNumbers"] == ["1", "2", "3"]
    assert data["allLessonsData"]["1"]["categoryOrder"] == ["Welcome", "Kodaly Songs", "Goodbye"]
    assert data["sources"]["1"] == {"kind": "base"}


def test_import_then_read(client, gateway, scenario_rows):
    summary = _data(client.post("/sheets/UKG/import", json={"rows": scenario_rows}))
    assert summary["lessons"] == 1

    data = _data(client.get("/sheets/UKG/lessons"))
    assert data["origin"] == "local"
    lesson = data["allLessonsData"]["1"]
    assert lesson["totalTime"] == 5
    assert lesson["title"] == "Standard Lesson"
    assert gateway.read_local(DATASET_LESSONS, "UKG")["lessonNumbers"] == ["1"]


def test_unusable_import_reports_failure(client):
    response = client.post("/sheets/LKG/import", json={"rows": []})

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    assert body["data"]["degraded"] is True
    assert _data(client.get("/sheets/LKG/lessons"))["origin"] == "placeholder"


def test_import_body_validated(client):
    assert client.post("/sheets/LKG/import", json={"rows": "nope"}).status_code == 422


def test_refresh_picks_up_storage_changes(client, gateway, three_lesson_rows):
    from planner.parser import parse_rows

    assert _data(client.get("/sheets/Reception/lessons"))["origin"] == "sample"
    gateway.write_local(DATASET_LESSONS, "Reception", parse_rows(three_lesson_rows).to_dataset().to_wire())

    data = _data(client.post("/sheets/Reception/refresh"))
    assert data["origin"] == "local"
    assert data["lessonNumbers"] == ["1", "2", "3"]


def test_title_and_tags(client, scenario_rows):
    _data(client.post("/sheets/LKG/import", json={"rows": scenario_rows}))

    titled = _data(client.put("/sheets/LKG/lessons/1/title", json={"title": "First Day"}))
    assert titled["title"] == "First Day"

    tagged = _data(client.post("/sheets/LKG/lessons/1/eyfs", json={"statement": "Speaking: Hello"}))
    assert tagged["eyfsStatements"] == ["Speaking: Hello"]

    untagged = _data(client.delete("/sheets/LKG/lessons/1/eyfs", params={"statement": "Speaking: Hello"}))
    assert untagged["eyfsStatements"] == []

    lesson = _data(client.get("/sheets/LKG/lessons"))["allLessonsData"]["1"]
    assert lesson["title"] == "First Day"


def test_unknown_lesson_is_404(client):
    assert client.put("/sheets/LKG/lessons/42/title", json={"title": "x"}).status_code == 404
    assert client.post("/sheets/LKG/lessons/42/eyfs", json={"statement": "Speaking: x"}).status_code == 404


def test_plan_lifecycle(client):
    plan = LessonPlan(class_name="LKG", lesson_number="2", title="My Plan")
    plan.add_activity(Activity(name="Scarf Dance", category="Scarf Songs", time=6))

    saved = _data(client.post("/sheets/LKG/plans", json=plan.to_wire()))
    assert saved["lessonId"] == "2"

    plans = _data(client.get("/sheets/LKG/plans"))
    assert [p["id"] for p in plans["plans"]] == [plan.id]

    lessons = _data(client.get("/sheets/LKG/lessons"))
    assert lessons["sources"]["2"] == {"kind": "plan", "planId": plan.id}
    assert lessons["allLessonsData"]["2"]["title"] == "My Plan"

    _data(client.delete(f"/sheets/LKG/plans/{plan.id}"))
    assert client.delete(f"/sheets/LKG/plans/{plan.id}").status_code == 404
    assert _data(client.get("/sheets/LKG/lessons"))["sources"]["2"] == {"kind": "base"}


def test_plan_with_wrong_duration_rejected(client):
    plan = LessonPlan(class_name="LKG")
    plan.add_activity(Activity(name="Hello", category="Welcome", time=3))
    payload = plan.to_wire()
    payload["duration"] = 99

    assert client.post("/sheets/LKG/plans", json=payload).status_code == 422


def test_plan_for_other_class_rejected(client):
    payload = LessonPlan(class_name="UKG").to_wire()
    assert client.post("/sheets/LKG/plans", json=payload).status_code == 422


def test_library(client):
    data = _data(client.get("/sheets/UKG/library"))
    assert data["total"] == len(data["activities"]) == 6
    assert data["activities"][0]["activity"] == "Hello Friends"


def test_statement_catalog(client):
    data = _data(client.get("/sheets/LKG/eyfs"))
    assert len(data["allStatements"]) == 27
    assert "Speaking" in data["structuredStatements"]

    replaced = _data(client.put("/sheets/LKG/eyfs", json={"statements": ["Speaking: one", "Speaking: two"]}))
    assert replaced["structuredStatements"] == {"Speaking": ["one", "two"]}
    assert replaced["remote"]["ok"] is False

    assert _data(client.get("/sheets/LKG/eyfs"))["allStatements"] == ["Speaking: one", "Speaking: two"]


def test_flush_with_nothing_pending(client):
    data = _data(client.post("/outbox/flush"))
    assert data == {"results": [], "pending": 0}


def test_single_statement_add_and_remove(client):
    added = _data(client.post("/sheets/UKG/eyfs/statement", json={"statement": "Music: Keeps a beat"}))
    assert added["allStatements"][-1] == "Music: Keeps a beat"
    assert added["structuredStatements"]["Music"] == ["Keeps a beat"]

    removed = _data(client.delete("/sheets/UKG/eyfs/statement", params={"statement": "Music: Keeps a beat"}))
    assert "Music: Keeps a beat" not in removed["allStatements"]
    assert "Music" not in removed["structuredStatements"]


def test_add_library_activity_to_plan(client):
    favourite = _data(client.get("/sheets/LKG/library"))["activities"][0]
    plan = LessonPlan(class_name="LKG")
    _data(client.post("/sheets/LKG/plans", json=plan.to_wire()))

    body = {"name": favourite["activity"], "category": favourite["category"]}
    added = _data(client.post(f"/sheets/LKG/plans/{plan.id}/activities", json=body))

    assert added["plan"]["duration"] == favourite["time"]
    assert added["plan"]["activities"][0]["activity"] == favourite["activity"]
    assert client.post("/sheets/LKG/plans/missing/activities", json=body).status_code == 404
    missing = {"name": "Nope", "category": "Welcome"}
    assert client.post(f"/sheets/LKG/plans/{plan.id}/activities", json=missing).status_code == 404
