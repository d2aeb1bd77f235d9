import pytest

from fieldops.routers.tasks import clean_assigned
from tests.fixtures_data import auth_headers, make_company, make_user


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ([1, "2", "", None, "x", 3.0, 4.5, True], [1, 2, 3]),
        ([], []),
        (None, []),
    ],
)
def test_clean_assigned(raw, expected):
    assert clean_assigned(raw) == expected


def test_task_lifecycle(client, db_session):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")
    headers = auth_headers(user)

    created = client.post(
        "/api/tasks",
        json={"description": "Order copper pipe", "assigned": [user.id, ""], "due": "2024-07-01"},
        headers=headers,
    )
    assert created.status_code == 201
    task = created.json()
    assert task["status"] == "pending"
    assert task["assigned"] == [user.id]
    assert task["due"] == "2024-07-01"

    completed = client.put(f"/api/tasks/{task['id']}/complete", headers=headers).json()
    assert completed["status"] == "completed"
    assert completed["completed_at"] is not None

    other = client.post("/api/tasks", json={"description": "Call back Mrs Lee"}, headers=headers).json()

    cleared = client.delete("/api/tasks/completed", headers=headers).json()
    assert cleared["deleted"] == 1
    assert [row["id"] for row in client.get("/api/tasks", headers=headers).json()] == [other["id"]]

    assert client.delete(f"/api/tasks/{other['id']}", headers=headers).status_code == 200
    assert client.get("/api/tasks", headers=headers).json() == []


def test_delete_completed_only_touches_own_company(client, db_session):
    first = make_company(db_session, "First")
    second = make_company(db_session, "Second")
    first_user = make_user(db_session, first, email="a@first.test")
    second_user = make_user(db_session, second, email="b@second.test")

    theirs = client.post("/api/tasks", json={"description": "Theirs"}, headers=auth_headers(second_user)).json()
    client.put(f"/api/tasks/{theirs['id']}/complete", headers=auth_headers(second_user))

    client.delete("/api/tasks/completed", headers=auth_headers(first_user))

    assert len(client.get("/api/tasks", headers=auth_headers(second_user)).json()) == 1
    assert client.put(f"/api/tasks/{theirs['id']}/complete", headers=auth_headers(first_user)).status_code == 404


def test_blank_description_is_rejected(client, db_session):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")

    response = client.post("/api/tasks", json={"description": "   "}, headers=auth_headers(user))

    assert response.status_code == 400


def test_god_mode_clears_completed_tasks_of_the_switched_company_only(client, db_session):
    first = make_company(db_session, "First")
    second = make_company(db_session, "Second")
    first_user = make_user(db_session, first, email="a@first.test")
    second_user = make_user(db_session, second, email="b@second.test")
    superadmin = make_user(db_session, None, email="root@platform.test", role="superadmin")

    for user in (first_user, second_user):
        headers = auth_headers(user)
        task = client.post("/api/tasks", json={"description": "Done"}, headers=headers).json()
        client.put(f"/api/tasks/{task['id']}/complete", headers=headers)

    cleared = client.delete(
        "/api/tasks/completed", headers=auth_headers(superadmin, company_id=first.id, god_mode=True)
    )

    assert cleared.json()["deleted"] == 1
    assert client.get("/api/tasks", headers=auth_headers(first_user)).json() == []
    assert len(client.get("/api/tasks", headers=auth_headers(second_user)).json()) == 1


def test_god_mode_without_company_cannot_clear_tasks(client, db_session):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")
    task = client.post("/api/tasks", json={"description": "Done"}, headers=auth_headers(user)).json()
    client.put(f"/api/tasks/{task['id']}/complete", headers=auth_headers(user))
    superadmin = make_user(db_session, None, email="root@platform.test", role="superadmin")

    response = client.delete("/api/tasks/completed", headers=auth_headers(superadmin, god_mode=True))

    assert response.status_code == 400
    assert len(client.get("/api/tasks", headers=auth_headers(user)).json()) == 1
