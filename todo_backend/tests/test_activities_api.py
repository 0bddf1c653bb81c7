import json
import math

import pytest
from fastapi.testclient import TestClient

from src.todolog.main import create_app
from src.todolog.settings import Settings


def create_todo(client, title="Buy milk", description=None):
    payload = {"title": title}
    if description is not None:
        payload["description"] = description
    res = client.post("/api/v1/todos/", json=payload)
    assert res.status_code == 201
    return res.json()


def activities_for(client, todo_id):
    res = client.get(f"/api/v1/activities/todo/{todo_id}")
    assert res.status_code == 200
    return res.json()


class TestActivityRecording:
    def test_create_records_one_create_activity(self, client):
        todo = create_todo(client, "Buy milk")

        activities = activities_for(client, todo["id"])
        assert len(activities) == 1
        activity = activities[0]
        assert activity["action"] == "CREATE"
        assert activity["todo_id"] == todo["id"] == 1
        assert activity["description"] == 'Todo "Buy milk" was created'
        assert activity["old_value"] is None
        assert json.loads(activity["new_value"]) == todo
        assert activity["todo_title"] == "Buy milk"

    def test_request_provenance_is_recorded(self, client):
        res = client.post("/api/v1/todos/", json={"title": "Who"}, headers={"User-Agent": "pytest-agent"})
        activity = activities_for(client, res.json()["id"])[0]
        assert activity["user_agent"] == "pytest-agent"
        assert activity["user_ip"] == "testclient"

    def test_status_only_update(self, client):
        todo = create_todo(client, "Buy milk")

        res = client.put(f"/api/v1/todos/{todo['id']}", json={"completed": True})
        assert res.status_code == 200

        latest = activities_for(client, todo["id"])[0]
        assert latest["action"] == "UPDATE"
        assert latest["description"] == "Status changed from pending to completed"
        old = json.loads(latest["old_value"])
        new = json.loads(latest["new_value"])
        assert old["completed"] is False
        assert new["completed"] is True
        assert {k: v for k, v in new.items() if k != "completed"} == {
            k: v for k, v in old.items() if k != "completed"
        }

    def test_update_lists_every_changed_field_once(self, client):
        todo = create_todo(client, "Old", description="OldD")

        res = client.put(
            f"/api/v1/todos/{todo['id']}",
            json={"title": "New", "description": " NewD ", "completed": True},
        )
        assert res.status_code == 200

        description = activities_for(client, todo["id"])[0]["description"]
        assert description == (
            'Title changed from "Old" to "New", '
            'Description changed from "OldD" to "NewD", '
            "Status changed from pending to completed"
        )

    def test_unchanged_fields_have_no_change_line(self, client):
        todo = create_todo(client, "Keep", description="Same")

        client.put(f"/api/v1/todos/{todo['id']}", json={"title": "Keep", "description": "Other"})

        description = activities_for(client, todo["id"])[0]["description"]
        assert description == 'Description changed from "Same" to "Other"'
        assert "Title" not in description

    def test_identical_update_appends_nothing(self, client):
        todo = create_todo(client, "Buy milk")

        res = client.put(f"/api/v1/todos/{todo['id']}", json={"title": "Buy milk"})
        assert res.status_code == 400
        assert res.json()["error"] == "NoChangeError"
        assert len(activities_for(client, todo["id"])) == 1

    def test_delete_records_snapshot_and_keeps_history(self, client):
        todo = create_todo(client, "Buy milk")
        client.put(f"/api/v1/todos/{todo['id']}", json={"completed": True})
        before_delete = client.get(f"/api/v1/todos/{todo['id']}").json()

        assert client.delete(f"/api/v1/todos/{todo['id']}").status_code == 204
        assert client.get(f"/api/v1/todos/{todo['id']}").status_code == 404

        history = activities_for(client, todo["id"])
        assert [a["action"] for a in history] == ["DELETE", "UPDATE", "CREATE"]
        deleted = history[0]
        assert deleted["new_value"] is None
        assert deleted["description"] == 'Todo "Buy milk" was deleted'
        assert json.loads(deleted["old_value"]) == before_delete
        assert all(a["todo_id"] == todo["id"] for a in history)
        assert all(a["todo_title"] is None for a in history)

        listed = client.get(f"/api/v1/activities/?todo_id={todo['id']}").json()
        assert listed["pagination"]["total"] == 3
        assert all(a["todo_title"] is None for a in listed["activities"])

    def test_failed_create_appends_nothing(self, client):
        client.post("/api/v1/todos/", json={"title": " "})
        assert client.get("/api/v1/activities/stats").json()["total"] == 0


class TestActivityListing:
    def seed(self, client, count):
        return [create_todo(client, f"Task {i}")["id"] for i in range(count)]

    def test_newest_first_with_titles(self, client):
        self.seed(client, 3)
        body = client.get("/api/v1/activities/").json()
        assert [a["todo_title"] for a in body["activities"]] == ["Task 2", "Task 1", "Task 0"]
        assert [a["id"] for a in body["activities"]] == sorted((a["id"] for a in body["activities"]), reverse=True)

    @pytest.mark.parametrize("limit", [1, 2, 3, 7, 50])
    def test_pages_is_ceiling_of_total_over_limit(self, client, limit):
        self.seed(client, 7)
        body = client.get(f"/api/v1/activities/?limit={limit}&page=1").json()
        assert body["pagination"] == {
            "page": 1,
            "limit": limit,
            "total": 7,
            "pages": math.ceil(7 / limit),
        }
        assert len(body["activities"]) == min(limit, 7)

    def test_pages_do_not_overlap(self, client):
        self.seed(client, 5)
        page1 = client.get("/api/v1/activities/?limit=2&page=1").json()["activities"]
        page2 = client.get("/api/v1/activities/?limit=2&page=2").json()["activities"]
        page3 = client.get("/api/v1/activities/?limit=2&page=3").json()["activities"]
        ids = [a["id"] for a in page1 + page2 + page3]
        assert len(ids) == len(set(ids)) == 5

    def test_page_past_the_end_is_empty(self, client):
        self.seed(client, 3)
        body = client.get("/api/v1/activities/?limit=2&page=5").json()
        assert body["activities"] == []
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["pages"] == 2

    def test_filter_by_todo_id(self, client):
        first, second = self.seed(client, 2)
        client.put(f"/api/v1/todos/{second}", json={"completed": True})

        body = client.get(f"/api/v1/activities/?todo_id={second}").json()
        assert body["pagination"]["total"] == 2
        assert {a["todo_id"] for a in body["activities"]} == {second}

    def test_invalid_page_and_limit(self, client):
        assert client.get("/api/v1/activities/?page=0").status_code == 422
        assert client.get("/api/v1/activities/?limit=0").status_code == 422

    def test_limit_is_capped(self, store):
        capped = TestClient(create_app(store=store, settings=Settings(activity_page_size=2, activity_max_page_size=3)))
        self.seed(capped, 5)
        assert capped.get("/api/v1/activities/").json()["pagination"]["limit"] == 2
        assert capped.get("/api/v1/activities/?limit=100").json()["pagination"]["limit"] == 3


class TestSingleActivity:
    def test_get_and_delete(self, client):
        todo = create_todo(client)
        activity_id = activities_for(client, todo["id"])[0]["id"]

        res = client.get(f"/api/v1/activities/{activity_id}")
        assert res.status_code == 200
        assert res.json()["action"] == "CREATE"

        res_del = client.delete(f"/api/v1/activities/{activity_id}")
        assert res_del.status_code == 200
        assert res_del.json() == {"message": "Activity deleted successfully"}
        assert client.get(f"/api/v1/activities/{activity_id}").status_code == 404
        # the todo itself is untouched
        assert client.get(f"/api/v1/todos/{todo['id']}").status_code == 200

    def test_missing_activity(self, client):
        res = client.get("/api/v1/activities/4242")
        assert res.status_code == 404
        assert res.json() == {"error": "NotFoundError", "message": "Activity not found"}
        assert client.delete("/api/v1/activities/4242").status_code == 404


class TestClearAndStats:
    def test_clear_all(self, client):
        for i in range(3):
            create_todo(client, f"Task {i}")

        res = client.delete("/api/v1/activities/")
        assert res.status_code == 200
        assert res.json() == {"message": "All activities cleared successfully", "deletedCount": 3}
        assert client.get("/api/v1/activities/").json()["pagination"]["total"] == 0
        assert client.delete("/api/v1/activities/").json()["deletedCount"] == 0

    def test_stats(self, client):
        ids = [create_todo(client, f"Task {i}")["id"] for i in range(3)]
        client.put(f"/api/v1/todos/{ids[0]}", json={"completed": True})
        client.delete(f"/api/v1/todos/{ids[1]}")

        stats = client.get("/api/v1/activities/stats").json()
        assert set(stats) == {"total", "today", "byAction", "last7Days"}
        assert stats["total"] == 5
        assert stats["today"] == 5
        assert stats["byAction"] == [
            {"action": "CREATE", "count": 3},
            {"action": "DELETE", "count": 1},
            {"action": "UPDATE", "count": 1},
        ]
        assert sum(row["count"] for row in stats["byAction"]) == stats["total"]
        assert len(stats["last7Days"]) == 1
        assert stats["last7Days"][0]["count"] == 5

    def test_stats_on_empty_log(self, client):
        assert client.get("/api/v1/activities/stats").json() == {
            "total": 0,
            "today": 0,
            "byAction": [],
            "last7Days": [],
        }
