# tests/test_task_extra.py
# PURPOSE: search, filters, ordering, bulk operations and the X-Total-Count header on /api/v1/tasks.

from typing import Dict


def _create_task(client, title: str, **fields) -> Dict:
    """Helper: create a task and return response JSON."""
    payload = {"title": title, "due_date": "2025-06-01", "due_time": "12:00"}
    payload.update(fields)
    r = client.post("/api/v1/tasks/", json=payload)
    assert r.status_code == 201
    return r.json()


def test_search_by_q(auth_client):
    t1 = _create_task(auth_client, "Hello world", description="greeting")
    t2 = _create_task(auth_client, "Buy milk", description="shopping")
    t3 = _create_task(auth_client, "HELLO again", description="caps")

    r = auth_client.get("/api/v1/tasks/?q=hello")
    assert r.status_code == 200
    titles = [t["title"] for t in r.json()]
    assert t1["title"] in titles
    assert t3["title"] in titles
    assert t2["title"] not in titles


def test_bulk_delete(auth_client):
    t1 = _create_task(auth_client, "Delete me 1")
    t2 = _create_task(auth_client, "Delete me 2")
    t3 = _create_task(auth_client, "Keep me")

    r = auth_client.post("/api/v1/tasks/bulk_delete", json={"ids": [t1["id"], t2["id"]]})
    assert r.status_code == 200
    assert r.json()["deleted"] == 2

    ids = [t["id"] for t in auth_client.get("/api/v1/tasks/").json()]
    assert ids == [t3["id"]]


def test_bulk_complete(auth_client):
    t1 = _create_task(auth_client, "Finish homework")
    t2 = _create_task(auth_client, "Write report")

    r = auth_client.post("/api/v1/tasks/bulk_complete", json={"ids": [t1["id"], t2["id"], 9999]})
    assert r.status_code == 200
    assert r.json()["updated"] == 2

    got = {t["id"]: t for t in auth_client.get("/api/v1/tasks/").json()}
    assert got[t1["id"]]["completed"] is True
    assert got[t2["id"]]["completed"] is True


def test_bulk_requires_ids(auth_client):
    r = auth_client.post("/api/v1/tasks/bulk_delete", json={"ids": []})
    assert r.status_code == 422


def test_total_count_matches_results(auth_client):
    _create_task(auth_client, "Count A", priority="low")
    _create_task(auth_client, "Count B", priority="high")
    _create_task(auth_client, "Count C", priority="high")

    r = auth_client.get("/api/v1/tasks/?priority=high")
    assert r.status_code == 200
    results = r.json()
    total = int(r.headers.get("X-Total-Count", "-1"))
    assert total == len(results) == 2


def test_pagination_keeps_total(auth_client):
    for i in range(5):
        _create_task(auth_client, f"Page {i}", due_time=f"0{i}:00")

    r = auth_client.get("/api/v1/tasks/?limit=2&offset=2")
    assert r.headers["X-Total-Count"] == "5"
    assert [t["title"] for t in r.json()] == ["Page 2", "Page 3"]


def test_status_and_category_filters(auth_client):
    done = _create_task(auth_client, "Done", category="work")
    _create_task(auth_client, "Open work", category="work")
    _create_task(auth_client, "Open home", category="home")
    auth_client.patch(f"/api/v1/tasks/{done['id']}/complete")

    pending = auth_client.get("/api/v1/tasks/?status=pending").json()
    assert sorted(t["title"] for t in pending) == ["Open home", "Open work"]
    completed = auth_client.get("/api/v1/tasks/?status=completed").json()
    assert [t["title"] for t in completed] == ["Done"]
    work = auth_client.get("/api/v1/tasks/?category=work&status=pending").json()
    assert [t["title"] for t in work] == ["Open work"]

    assert [t["title"] for t in auth_client.get("/api/v1/tasks/pending").json()] == ["Open work", "Open home"]


def test_invalid_filter_values_are_422(auth_client):
    assert auth_client.get("/api/v1/tasks/?status=archived").status_code == 422
    r = auth_client.get("/api/v1/tasks/?priority=urgent")
    assert r.status_code == 422
    assert r.json()["details"][0]["loc"] == ["query", "priority"]
    assert auth_client.get("/api/v1/tasks/?order_by=title").status_code == 422


def test_order_by_due_and_priority(auth_client):
    _create_task(auth_client, "Late", due_date="2025-06-02", due_time="08:00", priority="low")
    _create_task(auth_client, "Early", due_date="2025-06-01", due_time="09:00", priority="high")
    _create_task(auth_client, "Middle", due_date="2025-06-01", due_time="17:00", priority="medium")

    by_due = [t["title"] for t in auth_client.get("/api/v1/tasks/").json()]
    assert by_due == ["Early", "Middle", "Late"]

    by_priority = [
        t["title"] for t in auth_client.get("/api/v1/tasks/?order_by=priority&order_dir=desc").json()
    ]
    assert by_priority == ["Early", "Middle", "Late"]

    by_priority_asc = [t["title"] for t in auth_client.get("/api/v1/tasks/?order_by=priority").json()]
    assert by_priority_asc == ["Late", "Middle", "Early"]
